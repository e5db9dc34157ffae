# === NAVMAP v1 ===
# {
#   "module": "PlatformKit.Bootstrap.cache",
#   "purpose": "Application caching API: providers, bin factory, and cache controller",
#   "sections": [
#     {"id": "providers", "name": "Cache Providers", "anchor": "PRV", "kind": "api"},
#     {"id": "cachebin", "name": "CacheBin", "anchor": "class-cachebin", "kind": "class"},
#     {"id": "cache", "name": "Cache", "anchor": "class-cache", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Application caching API.

Cached values live in named *bins*. The :class:`Cache` controller owned by
the application lazily asks the :class:`CacheBin` factory for one provider per
bin; the factory in turn is configured from ``<cache><bin .../></cache>``
elements of the configuration documents. Bins without a configured provider
fall back to the default provider and finally to :class:`NullCacheProvider`,
which caches nothing.
"""

from __future__ import annotations

import importlib
import inspect
import json
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, Union

from .errors import CacheError, InvalidConfigurationError

__all__ = [
    "DEFAULT_BIN",
    "PROVIDER_KINDS",
    "CacheProvider",
    "AbstractCacheProvider",
    "NullCacheProvider",
    "MemoryCacheProvider",
    "FileCacheProvider",
    "CacheBin",
    "Cache",
    "write_json_atomic",
]

logger = logging.getLogger(__name__)

DEFAULT_BIN = "default"

ProviderReference = Union[str, Type["CacheProvider"]]


# --- Cache Providers ---


class CacheProvider(ABC):
    """Universal cache interface."""

    @abstractmethod
    def get(self, cid: str) -> Any:
        """Return the cached value for ``cid`` or ``None``."""

    @abstractmethod
    def set(self, cid: str, value: Any) -> None:
        """Cache ``value`` under ``cid``."""

    @abstractmethod
    def clear(self, cid: Optional[str] = None) -> None:
        """Clear ``cid``, or every cached value when ``cid`` is ``None``."""

    @abstractmethod
    def commit(self) -> None:
        """Persist staged values."""


class AbstractCacheProvider(CacheProvider):
    """Base implementation of a cache provider with an explicit lifecycle."""

    def shutdown(self) -> None:
        """Release provider resources."""

    def close(self) -> None:
        """Commit and shut down this cache; shutdown runs even if the commit fails."""

        try:
            self.commit()
        finally:
            self.shutdown()

    def __enter__(self) -> "AbstractCacheProvider":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class NullCacheProvider(CacheProvider):
    """Cache provider that does not actually cache."""

    def get(self, cid: str) -> Any:
        return None

    def set(self, cid: str, value: Any) -> None:
        pass

    def clear(self, cid: Optional[str] = None) -> None:
        pass

    def commit(self) -> None:
        pass


class MemoryCacheProvider(AbstractCacheProvider):
    """Per-process dictionary cache."""

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, cid: str) -> Any:
        with self._lock:
            return self._values.get(cid)

    def set(self, cid: str, value: Any) -> None:
        with self._lock:
            self._values[cid] = value

    def clear(self, cid: Optional[str] = None) -> None:
        with self._lock:
            if cid is None:
                self._values.clear()
            else:
                self._values.pop(cid, None)

    def commit(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._values)


def write_json_atomic(path: Path, payload: object) -> Path:
    """Atomically persist ``payload`` as JSON to ``path``."""

    resolved = path.expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(resolved.parent), delete=False
    ) as handle:
        try:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.flush()
            os.fsync(handle.fileno())
        except BaseException:
            handle.close()
            Path(handle.name).unlink(missing_ok=True)
            raise
        temp_name = handle.name
    Path(temp_name).replace(resolved)
    return resolved


class FileCacheProvider(AbstractCacheProvider):
    """JSON file cache; writes are staged in memory until :meth:`commit`."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._values: Optional[Dict[str, Any]] = None
        self._dirty = False
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if self._values is not None:
            return self._values
        values: Dict[str, Any] = {}
        if self.path.exists():
            try:
                payload = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning(
                    "cache file unreadable; starting empty",
                    extra={"stage": "cache", "path": str(self.path), "error": str(exc)},
                )
            else:
                if isinstance(payload, dict):
                    values = payload
                else:
                    logger.warning(
                        "cache file is not a JSON object; starting empty",
                        extra={"stage": "cache", "path": str(self.path)},
                    )
        self._values = values
        return values

    def get(self, cid: str) -> Any:
        with self._lock:
            return self._load().get(cid)

    def set(self, cid: str, value: Any) -> None:
        with self._lock:
            self._load()[cid] = value
            self._dirty = True

    def clear(self, cid: Optional[str] = None) -> None:
        with self._lock:
            values = self._load()
            if cid is None:
                if values:
                    values.clear()
                    self._dirty = True
            elif cid in values:
                del values[cid]
                self._dirty = True

    def commit(self) -> None:
        with self._lock:
            if not self._dirty or self._values is None:
                return
            try:
                write_json_atomic(self.path, self._values)
            except (TypeError, ValueError) as exc:
                raise CacheError(f"Cache values for {self.path} are not JSON serialisable") from exc
            except OSError as exc:
                raise CacheError(f"Unable to write cache file {self.path}: {exc}") from exc
            self._dirty = False


PROVIDER_KINDS: Dict[str, Type[CacheProvider]] = {
    "null": NullCacheProvider,
    "memory": MemoryCacheProvider,
    "file": FileCacheProvider,
}


def _resolve_provider(reference: ProviderReference) -> Type[CacheProvider]:
    if isinstance(reference, type):
        candidate: Any = reference
    elif reference in PROVIDER_KINDS:
        candidate = PROVIDER_KINDS[reference]
    elif ":" in reference:
        module_name, _, attribute = reference.partition(":")
        try:
            candidate = getattr(importlib.import_module(module_name), attribute)
        except (ImportError, AttributeError) as exc:
            raise CacheError(f"Cannot import cache provider '{reference}': {exc}") from exc
    else:
        raise CacheError(
            f"Unknown cache provider '{reference}'. "
            f"Expected one of {sorted(PROVIDER_KINDS)} or a 'module:Class' reference"
        )
    if not (isinstance(candidate, type) and issubclass(candidate, CacheProvider)):
        raise CacheError(f"Cache provider '{reference}' is not a CacheProvider subclass")
    return candidate


_SAFE_BIN = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class _ProviderEntry:
    factory: Type[CacheProvider]
    options: Dict[str, Any] = field(default_factory=dict)


class CacheBin:
    """Bin-based cache provider factory configured from ``cache/bin`` elements."""

    XPATH = "cache/bin"

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory is not None else None
        self._providers: Dict[str, _ProviderEntry] = {}
        self._default: Optional[_ProviderEntry] = None

    def xpaths(self) -> Sequence[str]:
        return [self.XPATH]

    def match_configuration(self, xpath: str, data: Any) -> None:
        """Register the provider described by one ``<bin>`` element.

        Raises:
            InvalidConfigurationError: If the element has no ``provider``
                attribute or names a provider that cannot be resolved.
        """

        if not isinstance(data, Mapping):
            raise InvalidConfigurationError(
                f"{xpath}: cache bin configuration requires 'provider' attribute"
            )
        provider = data.get("@provider")
        if not provider:
            raise InvalidConfigurationError(f"{xpath}: missing 'provider' attribute")
        bin_name = data.get("@name") or None
        options = {
            key[1:]: value
            for key, value in data.items()
            if key.startswith("@") and key not in ("@name", "@provider")
        }
        try:
            self.register_provider(provider, bin_name, **options)
        except CacheError as exc:
            raise InvalidConfigurationError(f"{xpath}: {exc}") from exc

    def register_provider(
        self, provider: ProviderReference, bin: Optional[str] = None, **options: Any
    ) -> None:
        """Register a cache provider for ``bin``, or the fallback when ``bin`` is ``None``.

        Raises:
            CacheError: If the provider cannot be resolved or does not accept
                ``options``.
        """

        entry = _ProviderEntry(_resolve_provider(provider), dict(options))
        _check_options(entry)
        if bin is None:
            self._default = entry
        else:
            self._providers[bin] = entry
        logger.debug(
            "cache provider registered",
            extra={"stage": "cache", "bin": bin or "*", "provider": entry.factory.__name__},
        )

    def configured_bins(self) -> List[str]:
        return sorted(self._providers)

    def create_cache(self, bin: str) -> CacheProvider:
        """Instantiate the cache provider for ``bin``.

        Returns:
            Provider instance; :class:`NullCacheProvider` if none configured.
        """

        named = self._providers.get(bin)
        entry = named or self._default
        if entry is None:
            return NullCacheProvider()
        options = dict(entry.options)
        if issubclass(entry.factory, FileCacheProvider):
            options["path"] = self._file_path(bin, options.get("path"), shared=named is None)
        try:
            return entry.factory(**options)
        except TypeError as exc:
            raise CacheError(
                f"Cannot create cache provider {entry.factory.__name__} for bin '{bin}': {exc}"
            ) from exc

    def _file_path(
        self, bin: str, configured: Optional[Union[str, Path]], *, shared: bool = False
    ) -> Path:
        """Return the JSON file backing ``bin``.

        A ``path`` on the fallback entry is shared by every unconfigured bin,
        so it names a directory holding one file per bin.
        """

        base = self.directory or Path.cwd()
        filename = f"{_SAFE_BIN.sub('_', bin)}.json"
        if configured is None:
            return base / filename
        path = Path(configured).expanduser()
        if not path.is_absolute():
            path = base / path
        return path / filename if shared else path


def _check_options(entry: _ProviderEntry) -> None:
    options = dict(entry.options)
    if issubclass(entry.factory, FileCacheProvider):
        # ``path`` is always supplied when the provider is created.
        options.setdefault("path", "")
    try:
        signature = inspect.signature(entry.factory)
    except (TypeError, ValueError):
        return
    try:
        signature.bind(**options)
    except TypeError as exc:
        raise CacheError(
            f"Cache provider {entry.factory.__name__} does not accept options "
            f"{sorted(entry.options)}: {exc}"
        ) from exc


class Cache:
    """Cache controller dispatching bin operations to lazily created providers."""

    def __init__(self, factory: Optional[CacheBin] = None) -> None:
        self.factory = factory or CacheBin()
        self._bins: Dict[str, CacheProvider] = {}
        self._lock = threading.Lock()

    def provider(self, bin: str = DEFAULT_BIN) -> CacheProvider:
        with self._lock:
            provider = self._bins.get(bin)
            if provider is None:
                provider = self.factory.create_cache(bin)
                self._bins[bin] = provider
            return provider

    def get(self, cid: str, bin: str = DEFAULT_BIN) -> Any:
        return self.provider(bin).get(cid)

    def set(self, cid: str, value: Any, bin: str = DEFAULT_BIN, commit: bool = False) -> None:
        """Cache ``value``; ``commit`` may have no effect depending on the provider."""

        provider = self.provider(bin)
        provider.set(cid, value)
        if commit:
            provider.commit()

    def clear(self, cid: Optional[str] = None, bin: str = DEFAULT_BIN) -> None:
        self.provider(bin).clear(cid)

    def open_bins(self) -> List[str]:
        return sorted(self._bins)

    def commit(self) -> None:
        for provider in list(self._bins.values()):
            provider.commit()

    def shutdown(self) -> None:
        """Close every open provider and forget it.

        Every provider is closed even when an earlier one fails; the first
        failure is raised once all of them have been processed.
        """

        with self._lock:
            providers, self._bins = self._bins, {}
        first_error: Optional[Exception] = None
        for bin, provider in providers.items():
            try:
                if isinstance(provider, AbstractCacheProvider):
                    provider.close()
                else:
                    provider.commit()
            except Exception as exc:
                logger.warning(
                    "cache bin failed to close",
                    extra={"stage": "cache", "bin": bin, "error": str(exc)},
                )
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
