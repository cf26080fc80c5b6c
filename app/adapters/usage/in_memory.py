"""In-memory usage store.

Notes:
- Per-process only: running multiple workers multiplies the effective quota.
- Thread-safe: uses a lock around the shared table.
- Nothing survives a restart; meant for tests and single-process demos.
"""

from __future__ import annotations

import threading
from typing import Callable, TypeVar

from app.adapters.usage.base import AbstractUsageStore, StoreTransaction, UsageTable

T = TypeVar("T")


class InMemoryUsageStore(AbstractUsageStore):
    """Usage table held in a dict guarded by a lock."""

    def __init__(self, initial: UsageTable | None = None) -> None:
        self._lock = threading.RLock()
        self._table: UsageTable = dict(initial or {})

    def read(self) -> UsageTable:
        with self._lock:
            return dict(self._table)

    def transact(self, mutate: Callable[[UsageTable], T]) -> StoreTransaction[T]:
        with self._lock:
            table = dict(self._table)
            result = mutate(table)
            changed = table != self._table
            if changed:
                self._table = table
            return StoreTransaction(result=result, changed=changed, persisted=True)
