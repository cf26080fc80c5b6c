"""Usage counter storage adapters.

The ledger depends on :class:`AbstractUsageStore` only, so the JSON file
store can be replaced by an embedded or external key-value store with
atomic updates without touching the HTTP layer.
"""

from app.adapters.usage.base import AbstractUsageStore, StoreTransaction, UsageTable
from app.adapters.usage.in_memory import InMemoryUsageStore
from app.adapters.usage.json_file import JsonFileUsageStore

__all__ = [
    "AbstractUsageStore",
    "InMemoryUsageStore",
    "JsonFileUsageStore",
    "StoreTransaction",
    "UsageTable",
]
