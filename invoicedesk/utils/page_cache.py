"""Per-application cache of listing page data, invalidated by path.

Entries are tagged with the path's version from the ``page_versions`` table.
``revalidate_path`` bumps that version inside the caller's transaction, so
every worker process sees the invalidation once the write commits.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Hashable, Optional, Tuple

from cachetools import LRUCache
from flask import current_app
from sqlalchemy import select, text

from invoicedesk import db
from invoicedesk.models import PageVersion

DEFAULT_MAX_ENTRIES = 256

_MISSING = object()


class PageCache:
    """Bounded LRU store of loader results keyed by ``(path, key)``."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._entries: LRUCache = LRUCache(maxsize=max_entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    def get(self, path: str, key: Hashable, version: int) -> Any:
        """Return the value stored for ``version`` or ``_MISSING``."""
        with self._lock:
            entry: Optional[Tuple[int, Any]] = self._entries.get((path, key))
        if entry is None or entry[0] != version:
            return _MISSING
        return entry[1]

    # ------------------------------------------------------------------
    def put(self, path: str, key: Hashable, version: int, value: Any) -> None:
        with self._lock:
            entry = self._entries.get((path, key))
            if entry is not None and entry[0] > version:
                return
            self._entries[(path, key)] = (version, value)

    # ------------------------------------------------------------------
    def invalidate(self, path: str) -> int:
        with self._lock:
            stale = [entry_key for entry_key in self._entries if entry_key[0] == path]
            for entry_key in stale:
                del self._entries[entry_key]
        return len(stale)


# ----------------------------------------------------------------------
def _get_cache() -> PageCache:
    app = current_app._get_current_object()
    cache = app.extensions.get("page_cache")
    if cache is None:
        max_entries = app.config.get("PAGE_CACHE_MAX_ENTRIES", DEFAULT_MAX_ENTRIES)
        cache = app.extensions["page_cache"] = PageCache(max_entries)
    return cache


def _normalise_path(path: str) -> str:
    return path.rstrip("/") or "/"


def page_version(path: str) -> int:
    """Return the stored version for ``path``; 0 before its first write."""
    stmt = select(PageVersion.version).where(
        PageVersion.path == _normalise_path(path)
    )
    return db.session.execute(stmt).scalar() or 0


def cached_page_data(path: str, key: Hashable, loader: Callable[[], Any]) -> Any:
    """Return cached data for ``path``/``key``, calling ``loader`` on a miss.

    The version is read before loading. A result loaded while a write bumps
    the version is stored under the old version and never served.
    """
    path = _normalise_path(path)
    cache = _get_cache()
    version = page_version(path)
    value = cache.get(path, key, version)
    if value is _MISSING:
        value = loader()
        cache.put(path, key, version, value)
    return value


def is_cached(path: str, key: Hashable) -> bool:
    path = _normalise_path(path)
    return _get_cache().get(path, key, page_version(path)) is not _MISSING


def revalidate_path(path: str) -> None:
    """Mark every cached entry for ``path`` as stale.

    The version bump joins the current transaction; the caller commits it
    together with the write that made the page stale.
    """
    path = _normalise_path(path)
    params = {"path": path}
    db.session.execute(
        text(
            "INSERT INTO page_versions (path, version) "
            "SELECT CAST(:path AS VARCHAR(255)), 0 WHERE NOT EXISTS "
            "(SELECT 1 FROM page_versions WHERE path = :path)"
        ),
        params,
    )
    db.session.execute(
        text("UPDATE page_versions SET version = version + 1 WHERE path = :path"),
        params,
    )
    dropped = _get_cache().invalidate(path)
    current_app.logger.debug(
        "Revalidated %s (%d cached entries dropped)", path, dropped
    )
