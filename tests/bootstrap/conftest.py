"""Shared fixtures for the bootstrap test suite.

Each test gets a scratch platform tree (``app/``, ``conf/``), a clean
``PLATFORMKIT_*`` environment, an isolated ``sys.path``, and no leftover
application singleton or bootstrap log handlers.
"""

from __future__ import annotations

import importlib
import logging
import os
import sys
import textwrap
import uuid
from pathlib import Path
from typing import Callable, Iterator

import pytest

from PlatformKit.Bootstrap.application import Application
from PlatformKit.Bootstrap.logging_config import LOGGER_NAME
from PlatformKit.Bootstrap.settings import (
    BootOptions,
    PlatformSettings,
    invalidate_default_settings_cache,
)


@pytest.fixture(autouse=True)
def _isolate_bootstrap(monkeypatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.upper().startswith("PLATFORMKIT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(sys, "path", list(sys.path))
    invalidate_default_settings_cache()
    yield
    Application.reset()
    invalidate_default_settings_cache()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_platformkit_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def platform_root(tmp_path: Path) -> Path:
    root = tmp_path / "platform"
    (root / "app").mkdir(parents=True)
    (root / "conf").mkdir()
    return root.resolve()


@pytest.fixture
def settings(platform_root: Path) -> PlatformSettings:
    return PlatformSettings(platform_root=platform_root)


@pytest.fixture
def boot_options(settings: PlatformSettings) -> BootOptions:
    return BootOptions(settings=settings, configure_logging=False, load_entry_points=False)


def write_text(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
    return path


@pytest.fixture
def handler_package(platform_root: Path) -> Iterator[Callable[[str], str]]:
    """Create an importable package under ``app/`` exposing ``EchoHandler``.

    Returns a factory taking the handler name to publish in the package
    manifest and returning the generated package name.
    """

    created = []

    def _create(handler_name: str = "echo") -> str:
        package = f"sitepkg_{uuid.uuid4().hex[:10]}"
        base = platform_root / "app" / package
        write_text(base / "__init__.py", "")
        write_text(
            base / "handlers.py",
            """
            from PlatformKit.Bootstrap.handler import Handler


            class EchoHandler(Handler):
                def initialize(self):
                    self.greeting = "hello from " + self.name

                def run(self):
                    return {
                        "greeting": self.greeting,
                        "app_root": self.context.environment["APP_ROOT"],
                    }
            """,
        )
        write_text(
            base / "manifest.xml",
            f"""
            <?xml version="1.0" encoding="utf-8"?>
            <manifest name="{package}" version="1.0">
              <handler name="{handler_name}" class="{package}.handlers:EchoHandler"/>
            </manifest>
            """,
        )
        created.append(package)
        importlib.invalidate_caches()
        return package

    yield _create

    for name in list(sys.modules):
        if any(name == package or name.startswith(package + ".") for package in created):
            del sys.modules[name]


@pytest.fixture
def write_file() -> Callable[[Path, str], Path]:
    return write_text
