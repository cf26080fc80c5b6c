"""JSON file usage store with advisory file locking.

Notes:
- The whole table is one JSON object on disk, rewritten in place.
- Reads take a shared ``flock``; read-modify-write cycles take an in-process
  lock plus an exclusive ``flock``, so concurrent requests in this process
  and in sibling worker processes never lose an update.
- POSIX only (``fcntl``).
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import threading
from pathlib import Path
from typing import IO, Callable, TypeVar

from app.adapters.usage.base import AbstractUsageStore, StoreTransaction, UsageTable, coerce_table

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JsonFileUsageStore(AbstractUsageStore):
    """Usage table persisted as a single JSON object file.

    Corrupt or unreadable content is treated as an empty table and logged;
    the store never blocks a request because of bad persisted state.
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize the store, creating ``{}`` at ``path`` when absent.

        Args:
            path: Location of the JSON file. Parent directories are created.
        """
        self._path = Path(path)
        self._lock = threading.Lock()
        self._ensure_file()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_file(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # "x" fails if another worker created the file first
            with open(self._path, "x", encoding="utf-8") as fh:
                fh.write("{}")
        except FileExistsError:
            pass
        except OSError as exc:
            logger.error(
                "usage_store.init_failed",
                extra={"path": str(self._path), "error": str(exc)},
            )

    def _decode(self, contents: str) -> UsageTable:
        if not contents.strip():
            return {}

        try:
            raw = json.loads(contents)
        except ValueError as exc:
            logger.warning(
                "usage_store.corrupt",
                extra={"path": str(self._path), "error": str(exc), "size": len(contents)},
            )
            return {}

        table, invalid = coerce_table(raw)
        if invalid:
            logger.warning(
                "usage_store.invalid_entries_dropped",
                extra={"path": str(self._path), "kept": len(table)},
            )
        return table

    def read(self) -> UsageTable:
        """Read the table under a shared lock."""
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                fcntl.flock(fh.fileno(), fcntl.LOCK_SH)
                try:
                    contents = fh.read()
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "usage_store.read_failed",
                extra={"path": str(self._path), "error": str(exc)},
            )
            return {}

        return self._decode(contents)

    def _write_locked(self, fh: IO[str], table: UsageTable) -> bool:
        try:
            fh.seek(0)
            fh.truncate()
            json.dump(table, fh, indent=2, sort_keys=True)
            fh.flush()
            os.fsync(fh.fileno())
        except OSError as exc:
            logger.error(
                "usage_store.write_failed",
                extra={"path": str(self._path), "error": str(exc), "entries": len(table)},
            )
            return False
        return True

    def transact(self, mutate: Callable[[UsageTable], T]) -> StoreTransaction[T]:
        """Run one exclusive read-modify-write cycle against the file."""
        with self._lock:
            try:
                fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
                fh = os.fdopen(fd, "r+", encoding="utf-8")
            except OSError as exc:
                logger.error(
                    "usage_store.open_failed",
                    extra={"path": str(self._path), "error": str(exc)},
                )
                table: UsageTable = {}
                result = mutate(table)
                return StoreTransaction(result=result, changed=bool(table), persisted=False)

            with fh:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                try:
                    try:
                        contents = fh.read()
                    except (OSError, UnicodeDecodeError) as exc:
                        logger.warning(
                            "usage_store.read_failed",
                            extra={"path": str(self._path), "error": str(exc)},
                        )
                        contents = ""
                    table = self._decode(contents)
                    before = dict(table)
                    result = mutate(table)
                    changed = table != before
                    persisted = self._write_locked(fh, table) if changed else True
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

        return StoreTransaction(result=result, changed=changed, persisted=persisted)
