# === NAVMAP v1 ===
# {
#   "module": "JavaDB",
#   "purpose": "Package initialization for JavaDB",
#   "sections": [
#     {"id": "getattr", "name": "__getattr__", "anchor": "function-getattr", "kind": "function"},
#     {"id": "dir", "name": "__dir__", "anchor": "function-dir", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Public API for building an index of Maven artifact SHA-1 hashes.

The crawler walks a Maven repository into a local cache, the builder loads
that cache into an SQLite or MySQL database, and the storage engines answer
lookups by hash or coordinates.  Heavy submodules are imported lazily.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

_EXPORT_MAP = {
    "ArchiveType": "JavaDB.types",
    "Index": "JavaDB.types",
    "Crawler": "JavaDB.crawler",
    "CrawlerOption": "JavaDB.crawler",
    "CrawlReport": "JavaDB.crawler",
    "Builder": "JavaDB.builder",
    "BuildReport": "JavaDB.builder",
    "run_build": "JavaDB.builder",
    "CancellationToken": "JavaDB.cancellation",
    "JavaDBError": "JavaDB.errors",
    "CrawlError": "JavaDB.errors",
    "BuildError": "JavaDB.errors",
    "DatabaseError": "JavaDB.errors",
    "get_settings": "JavaDB.settings",
}

__all__ = ["__version__", *_EXPORT_MAP]


def __getattr__(name: str) -> Any:
    module_name = _EXPORT_MAP.get(name)
    if module_name is None:
        raise AttributeError(f"module 'JavaDB' has no attribute {name!r}")
    value = getattr(import_module(module_name), name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(_EXPORT_MAP))
