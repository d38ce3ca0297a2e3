"""Classification of scanned content against the stored library."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import Iterable


class Disposition(enum.Enum):
    NEW = "new"  # found, not stored: import
    UNCHANGED = "unchanged"  # found and stored: skip
    ORPHANED = "orphaned"  # stored, not found: report, never delete


@dataclass(frozen=True)
class Reconciliation:
    new: frozenset[str]
    unchanged: frozenset[str]
    orphaned: frozenset[str]


def reconcile(stored: Iterable[str], found: Iterable[str]) -> Reconciliation:
    """Partition the union of stored and found digests."""
    stored_set = frozenset(stored)
    found_set = frozenset(found)
    return Reconciliation(
        new=found_set - stored_set,
        unchanged=found_set & stored_set,
        orphaned=stored_set - found_set,
    )


class Reconciler:
    """Incremental form of :func:`reconcile` for a streaming scan.

    ``stored`` must be read once, before any work is dispatched, so every
    decision is taken against the same snapshot. ``claim`` is safe to call
    from worker threads; the first caller to see a new digest owns its
    import and later copies of the same bytes are reported as unchanged.
    """

    def __init__(self, stored: Iterable[str]) -> None:
        self._stored = frozenset(stored)
        self._found: set[str] = set()
        self._lock = threading.Lock()

    def claim(self, digest: str) -> Disposition:
        with self._lock:
            first_sighting = digest not in self._found
            self._found.add(digest)
        if digest in self._stored or not first_sighting:
            return Disposition.UNCHANGED
        return Disposition.NEW

    def orphaned(self) -> frozenset[str]:
        """Stored digests not found so far. Meaningful once the walk is done."""
        with self._lock:
            return self._stored - self._found

    def result(self) -> Reconciliation:
        with self._lock:
            found = frozenset(self._found)
        return reconcile(self._stored, found)
