"""Usage store interfaces.

A usage store persists a flat ``key -> count`` table. It knows nothing about
identities or days; the ledger owns the key format and pruning policy and
hands the store a mutation to apply atomically.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

UsageTable = dict[str, int]

T = TypeVar("T")


@dataclass(frozen=True)
class StoreTransaction(Generic[T]):
    """Outcome of a read-modify-write cycle.

    Attributes:
        result: Value returned by the mutation function.
        changed: Whether the mutation modified the table.
        persisted: False when the updated table could not be written; the
            in-memory result is still valid for the current request.
    """

    result: T
    changed: bool
    persisted: bool


def coerce_table(raw: Any) -> tuple[UsageTable, bool]:
    """Validate decoded store content into a usage table.

    Returns:
        Tuple of (table, had_invalid_entries). Non-object payloads become an
        empty table; entries whose value is not a non-negative integer are
        dropped.
    """
    if not isinstance(raw, dict):
        return {}, raw is not None

    table: UsageTable = {}
    invalid = False
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            invalid = True
            continue
        table[str(key)] = value
    return table, invalid


class AbstractUsageStore(ABC):
    """Interface for persisted usage counter tables."""

    @abstractmethod
    def read(self) -> UsageTable:
        """Return a snapshot of the table.

        Must never raise; unreadable or corrupt content yields ``{}``.
        """
        raise NotImplementedError

    @abstractmethod
    def transact(self, mutate: Callable[[UsageTable], T]) -> StoreTransaction[T]:
        """Apply ``mutate`` to the table under exclusive access and persist it.

        The table passed to ``mutate`` is private to this call and may be
        modified in place. Concurrent transactions are serialized so no
        update is lost. Write failures are reported via
        ``StoreTransaction.persisted`` rather than raised.
        """
        raise NotImplementedError
