"""Command line interface tests."""

from __future__ import annotations

import json
import sys

import pytest
from typer.testing import CliRunner

from PlatformKit.Bootstrap.cli import app

QUIET_ENV = {"PLATFORMKIT_LOGGING__LEVEL": "ERROR"}


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, platform_root, *args):
    return runner.invoke(app, ["--platform-root", str(platform_root), *args], env=QUIET_ENV)


def _flat(result):
    return " ".join(result.output.split())


def test_version(runner):
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.stdout.strip() == "platformkit 0.1.0"


def test_run_prints_handler_result(runner, platform_root, handler_package):
    handler_package("echo")

    result = _invoke(runner, platform_root, "run", "echo")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout.strip().splitlines()[-1])
    assert payload == {"greeting": "hello from echo", "app_root": str(platform_root / "app")}


def test_run_unknown_handler_fails(runner, platform_root):
    result = _invoke(runner, platform_root, "run", "missing")

    assert result.exit_code == 1
    assert "No handler registered under name 'missing'" in _flat(result)


def test_run_can_skip_broken_configuration(runner, platform_root, handler_package, write_file):
    handler_package("echo")
    write_file(platform_root / "conf" / "broken.xml", "<configuration>")

    failed = _invoke(runner, platform_root, "run", "echo")
    skipped = _invoke(runner, platform_root, "run", "echo", "--skip-configuration")

    assert failed.exit_code == 1
    assert skipped.exit_code == 0, skipped.output


def test_manifests_json(runner, platform_root, handler_package, write_file):
    package = handler_package("echo")
    write_file(platform_root / "app" / "broken" / "manifest.xml", "<manifest><open></manifest>")

    result = _invoke(runner, platform_root, "manifests", "--format", "json")

    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [row["valid"] for row in rows] == [False, True]
    assert rows[1]["name"] == package
    assert rows[1]["version"] == "1.0"
    assert rows[1]["handlers"] == ["echo"]


def test_manifests_table(runner, platform_root, handler_package):
    handler_package("echo")

    result = _invoke(runner, platform_root, "manifests")

    assert result.exit_code == 0, result.output
    assert "Package" in _flat(result)


def test_manifests_unknown_format(runner, platform_root):
    result = _invoke(runner, platform_root, "manifests", "--format", "yaml")

    assert result.exit_code == 2


def test_config_check_reports_cache_bins(runner, platform_root, write_file):
    write_file(
        platform_root / "conf" / "cache.xml",
        """
        <configuration>
          <cache><bin name="pages" provider="memory"/></cache>
        </configuration>
        """,
    )

    result = _invoke(runner, platform_root, "config-check")

    assert result.exit_code == 0, result.output
    assert "Cache bins: pages" in _flat(result)


def test_config_check_rejects_unknown_provider(runner, platform_root, write_file):
    path = write_file(
        platform_root / "conf" / "cache.xml",
        '<configuration><cache><bin name="pages" provider="redis"/></cache></configuration>',
    )

    result = _invoke(runner, platform_root, "config-check", str(path))

    assert result.exit_code == 1
    assert "Unknown cache provider" in _flat(result)


def test_config_check_without_files(runner, platform_root):
    result = _invoke(runner, platform_root, "config-check")

    assert result.exit_code == 0
    assert "No configuration files found" in _flat(result)


def test_run_reports_handler_module_import_failure(runner, platform_root, write_file):
    write_file(platform_root / "app" / "cli_raising_pkg" / "__init__.py", "")
    write_file(
        platform_root / "app" / "cli_raising_pkg" / "handlers.py",
        "raise ValueError('broken at import')\n",
    )
    write_file(
        platform_root / "app" / "cli_raising_pkg" / "manifest.xml",
        '<manifest name="raising"><handler name="web" class="cli_raising_pkg.handlers:Web"/></manifest>',
    )

    try:
        result = _invoke(runner, platform_root, "run", "web")
    finally:
        for name in ("cli_raising_pkg.handlers", "cli_raising_pkg"):
            sys.modules.pop(name, None)

    assert result.exit_code == 1
    assert "Cannot load handler 'web'" in _flat(result)


def test_config_check_rejects_unsupported_bin_options(runner, platform_root, write_file):
    write_file(
        platform_root / "conf" / "cache.xml",
        '<configuration><cache><bin name="pages" provider="memory" size="1"/></cache></configuration>',
    )

    result = _invoke(runner, platform_root, "config-check")

    assert result.exit_code == 1
    assert "does not accept options" in _flat(result)
