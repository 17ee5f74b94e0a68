"""
Process-local storage backend.

Records live in per-type dicts. Every read and write hands out a deep copy,
so a caller must go through ``save`` to change stored state, the same as
with the SQL backend. One re-entrant lock serialises transactions.
"""
import copy
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Type, TypeVar

from jobwork.core.errors import NotFound
from jobwork.storage.base import Storage

T = TypeVar("T")


def _sort_key(value):
    # None sorts first; everything else compares natively
    return (value is not None, value)


class MemoryStorage(Storage):
    """In-memory entity store, for development and tests."""

    backend_name = "memory"

    def __init__(self):
        self._tables: Dict[type, Dict[str, object]] = {}
        self._lock = threading.RLock()

    def _table(self, kind: type) -> Dict[str, object]:
        return self._tables.setdefault(kind, {})

    @contextmanager
    def transaction(self):
        with self._lock:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield
            except Exception:
                self._tables = snapshot
                raise

    def insert(self, entity: T) -> T:
        with self._lock:
            self._table(type(entity))[entity.id] = copy.deepcopy(entity)
        return copy.deepcopy(entity)

    def get(self, kind: Type[T], entity_id: str, lock: bool = False) -> Optional[T]:
        with self._lock:
            found = self._table(kind).get(entity_id)
            return copy.deepcopy(found) if found is not None else None

    def find(self, kind: Type[T], order_by: Optional[str] = None,
             descending: bool = False, **criteria) -> List[T]:
        def matches(entity) -> bool:
            for key, expected in criteria.items():
                actual = getattr(entity, key)
                if isinstance(expected, (list, tuple, set)):
                    if actual not in expected:
                        return False
                elif actual != expected:
                    return False
            return True

        with self._lock:
            rows = [e for e in self._table(kind).values() if matches(e)]
            if order_by:
                rows.sort(key=lambda e: _sort_key(getattr(e, order_by)), reverse=descending)
            return copy.deepcopy(rows)

    def save(self, entity: T) -> T:
        with self._lock:
            table = self._table(type(entity))
            if entity.id not in table:
                raise NotFound(type(entity).__name__)
            table[entity.id] = copy.deepcopy(entity)
        return copy.deepcopy(entity)

    def delete(self, kind: Type, entity_id: str) -> None:
        with self._lock:
            self._table(kind).pop(entity_id, None)
