"""In-memory keyed store for portfolios and broker accounts."""

import copy
import threading
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from src.core.logger import logger

T = TypeVar("T")


class InMemoryStore(Generic[T]):
    """A lock-guarded dict of records keyed by id.

    Records are deep-copied on the way in and out, so a caller mutating a
    returned object never changes stored state. Concurrent writers to the
    same id are serialized; the last write wins.
    """

    def __init__(self, name: str = "store") -> None:
        """
        Args:
            name (str): Label used in log messages.
        """
        self.name = name
        self._records: Dict[str, T] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[T]:
        """
        Fetch a copy of one record.

        Args:
            key (str): Record id.

        Returns:
            Optional[T]: The record, or None if absent.
        """
        with self._lock:
            record = self._records.get(key)
            return copy.deepcopy(record) if record is not None else None

    def list(self, predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        """Copies of all records (insertion order) matching ``predicate``."""
        with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._records.values()
                if predicate is None or predicate(record)
            ]

    def put(self, key: str, record: T) -> None:
        """Insert or replace the record stored under ``key``."""
        with self._lock:
            action = "updated" if key in self._records else "added"
            self._records[key] = copy.deepcopy(record)
        logger.info(f"InMemoryStore[{self.name}]: {action} {key}")

    def delete(self, key: str) -> bool:
        """Remove a record. Returns False when ``key`` was not stored."""
        with self._lock:
            removed = self._records.pop(key, None) is not None
        if removed:
            logger.info(f"InMemoryStore[{self.name}]: deleted {key}")
        return removed

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
