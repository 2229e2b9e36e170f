"""Per-process descriptor cache.

Maps raw stats key -> resolved MetricDescriptor. Entries are created lazily by
the resolver on first sight of a key and then reused for the lifetime of the
cache. Unresolved keys are never stored, so a key that is not configured is
re-resolved on every scrape.

Lookup and insert happen inside one critical section: two scrapes that meet the
same new key concurrently end up sharing a single descriptor.
"""
from __future__ import annotations

import threading
from collections.abc import Callable, Iterator

from .descriptors import MetricDescriptor
from .resolution import Resolution

__all__ = ["DescriptorCache"]


class DescriptorCache:
    def __init__(self, resolver: Callable[[str], Resolution]) -> None:
        self._resolver = resolver
        self._entries: dict[str, MetricDescriptor] = {}
        self._lock = threading.Lock()

    def get(self, raw_key: str) -> MetricDescriptor | None:
        with self._lock:
            return self._entries.get(raw_key)

    def lookup(self, raw_key: str) -> Resolution:
        """Return the cached descriptor, resolving and inserting it on a miss."""
        with self._lock:
            desc = self._entries.get(raw_key)
            if desc is not None:
                return desc
            result = self._resolver(raw_key)
            if isinstance(result, MetricDescriptor):
                self._entries[raw_key] = result
            return result

    def snapshot(self) -> list[MetricDescriptor]:
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, raw_key: object) -> bool:
        with self._lock:
            return raw_key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._entries))
