"""ETag Cache: per-path version tag and last-known value, consulted before every remote read.

Invariants:
    - Entries never expire; only a newer fetch or a local write replaces them
    - An "unchanged" response leaves the entry untouched
    - put() replaces the whole entry (no field-by-field merge with stale data)

Design Decisions:
    - Owned by the Runtime, not a module global: each test builds its own instance
    - Unbounded: one entry per writer per session plus one per team, bounded by team size
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CachedEntry:
    etag: str | None
    sha: str | None
    value: Any


class EtagCache:
    """Process-wide map from logical path to CachedEntry."""

    def __init__(self) -> None:
        self._entries: dict[str, CachedEntry] = {}

    def get(self, path: str) -> CachedEntry | None:
        return self._entries.get(path)

    def put(self, path: str, etag: str | None, sha: str | None, value: Any) -> CachedEntry:
        entry = CachedEntry(etag=etag, sha=sha, value=value)
        self._entries[path] = entry
        return entry

    def invalidate(self, path: str) -> None:
        self._entries.pop(path, None)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
