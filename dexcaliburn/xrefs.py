"""Deduplicating cross-reference table for reflective invocations."""

from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Tuple

from .model import CallLocation, MethodSignature, XrefKey, XrefRecord

__all__ = ["XrefTable"]


class XrefTable:
    """Thread-safe mapping of (method, call site) to an occurrence count.

    Handlers fire on arbitrary application threads, so the lookup and the
    increment happen under one lock.  Records are never evicted and
    :meth:`snapshot` leaves the counts untouched.
    """

    __slots__ = ("_counts", "_lock")

    def __init__(self) -> None:
        self._counts: Dict[XrefKey, int] = {}
        self._lock = threading.Lock()

    def record(self, method: MethodSignature, location: CallLocation) -> int:
        """Fold one observation into the table and return the updated count."""

        key = (method, location)
        with self._lock:
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
        return count

    def count(self, method: MethodSignature, location: CallLocation) -> int:
        with self._lock:
            return self._counts.get((method, location), 0)

    def snapshot(self) -> Tuple[XrefRecord, ...]:
        """Return the records in first-seen order."""

        with self._lock:
            items: List[Tuple[XrefKey, int]] = list(self._counts.items())
        return tuple(XrefRecord(method, location, count) for (method, location), count in items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)

    def __iter__(self) -> Iterator[XrefRecord]:
        return iter(self.snapshot())
