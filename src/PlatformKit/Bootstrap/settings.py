# === NAVMAP v1 ===
# {
#   "module": "PlatformKit.Bootstrap.settings",
#   "purpose": "Platform settings models, environment overrides, and boot options",
#   "sections": [
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "cachesettings", "name": "CacheSettings", "anchor": "class-cachesettings", "kind": "class"},
#     {"id": "platformsettings", "name": "PlatformSettings", "anchor": "class-platformsettings", "kind": "class"},
#     {"id": "bootoptions", "name": "BootOptions", "anchor": "class-bootoptions", "kind": "class"},
#     {"id": "get-default-settings", "name": "get_default_settings", "anchor": "function-get-default-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Platform settings resolved from defaults, environment, and explicit overrides.

The platform layout is a single platform root from which the ``app``,
``conf``, ``lib`` and ``web`` directories are derived unless explicitly
overridden.  Every field can be
supplied through ``PLATFORMKIT_*`` environment variables; nested sections use a
double underscore (for example ``PLATFORMKIT_LOGGING__LEVEL=DEBUG``).
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "ENV_PREFIX",
    "PLATFORM_DIRECTORIES",
    "LoggingSettings",
    "CacheSettings",
    "PlatformSettings",
    "BootOptions",
    "get_default_settings",
    "invalidate_default_settings_cache",
]

ENV_PREFIX = "PLATFORMKIT_"

# Field name -> directory name beneath ``platform_root``.
PLATFORM_DIRECTORIES: Dict[str, str] = {
    "app_root": "app",
    "conf_root": "conf",
    "lib_root": "lib",
    "web_root": "web",
}

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _normalize_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(value).expanduser().resolve()


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(validate_assignment=True)

    level: str = Field(default="INFO", description="Logging level name")
    max_log_size_mb: int = Field(default=10, gt=0, description="Rotate JSON logs past this size")
    retention_days: int = Field(default=14, ge=1, description="Compress then delete older logs")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for JSONL log files; console only when unset"
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        upper = str(value).upper()
        if upper not in _VALID_LEVELS:
            raise ValueError(f"level must be one of {list(_VALID_LEVELS)}, got '{value}'")
        return upper

    @field_validator("log_dir", mode="before")
    @classmethod
    def normalize_log_dir(cls, value: Any) -> Optional[Path]:
        return _normalize_path(value)

    def level_int(self) -> int:
        """Convert the level name to the ``logging`` module integer."""
        return getattr(logging, self.level)


class CacheSettings(BaseModel):
    """Cache defaults applied before any configuration file is processed."""

    model_config = ConfigDict(validate_assignment=True)

    default_provider: Optional[str] = Field(
        default=None,
        description="Provider kind or 'module:Class' reference used for unconfigured bins",
    )
    directory: Optional[Path] = Field(
        default=None, description="Base directory for file cache providers; platform_root/cache when unset"
    )

    @field_validator("directory", mode="before")
    @classmethod
    def normalize_directory(cls, value: Any) -> Optional[Path]:
        return _normalize_path(value)


class PlatformSettings(BaseSettings):
    """Directory layout and ambient settings for a platform installation."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    platform_root: Path = Field(default_factory=Path.cwd)
    app_root: Optional[Path] = None
    conf_root: Optional[Path] = None
    lib_root: Optional[Path] = None
    web_root: Optional[Path] = None
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @field_validator("platform_root", mode="before")
    @classmethod
    def normalize_platform_root(cls, value: Any) -> Path:
        return _normalize_path(value) or Path.cwd()

    @field_validator("app_root", "conf_root", "lib_root", "web_root", mode="before")
    @classmethod
    def normalize_roots(cls, value: Any) -> Optional[Path]:
        return _normalize_path(value)

    @model_validator(mode="after")
    def derive_roots(self) -> "PlatformSettings":
        for field_name, directory in PLATFORM_DIRECTORIES.items():
            if getattr(self, field_name) is None:
                setattr(self, field_name, self.platform_root / directory)
        return self

    def roots(self) -> Dict[str, Path]:
        """Return the platform directories keyed by their conventional constant names."""

        return {
            "PLATFORM_ROOT": self.platform_root,
            "APP_ROOT": self.app_root,
            "CONF_ROOT": self.conf_root,
            "LIB_ROOT": self.lib_root,
            "WEB_ROOT": self.web_root,
        }


class BootOptions(BaseModel):
    """Options controlling which components an application sets up on boot."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Optional[PlatformSettings] = None
    configure_logging: bool = True
    load_configuration: bool = True
    scan_manifests: bool = True
    load_entry_points: bool = True

    def resolve_settings(self) -> PlatformSettings:
        """Return explicit settings or the memoised defaults."""

        if self.settings is not None:
            return self.settings
        return get_default_settings()


_DEFAULT_SETTINGS_LOCK = threading.Lock()
_DEFAULT_SETTINGS_CACHE: Optional[PlatformSettings] = None


def get_default_settings(*, copy: bool = False) -> PlatformSettings:
    """Return memoised :class:`PlatformSettings` built from defaults and environment."""

    global _DEFAULT_SETTINGS_CACHE  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        if _DEFAULT_SETTINGS_CACHE is None:
            _DEFAULT_SETTINGS_CACHE = PlatformSettings()
        cached = _DEFAULT_SETTINGS_CACHE
    if copy:
        return cached.model_copy(deep=True)
    return cached


def invalidate_default_settings_cache() -> None:
    """Invalidate the cached default settings."""

    global _DEFAULT_SETTINGS_CACHE  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        _DEFAULT_SETTINGS_CACHE = None
