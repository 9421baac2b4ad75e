"""In-memory entity store (thread-safe); used by tests and AID_STORE=memory."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from aid_orchestrator.errors import EntityNotFound, StoreError
from aid_orchestrator.models import Container, Image, Solver
from aid_orchestrator.utils.logger import get_logger

RecordT = TypeVar("RecordT", bound=BaseModel)


class InMemoryRepository(Generic[RecordT]):
    def __init__(self, kind: str, key: Callable[[RecordT], str], lock: threading.RLock) -> None:
        self._kind = kind
        self._key = key
        self._lock = lock
        self._data: Dict[str, RecordT] = {}

    def create(self, record: RecordT) -> RecordT:
        uid = self._key(record)
        with self._lock:
            if uid in self._data:
                raise StoreError(f"{self._kind} {uid} already exists")
            self._data[uid] = record
            return record

    def find_by_uid(self, uid: str) -> RecordT:
        with self._lock:
            try:
                return self._data[uid]
            except KeyError:
                raise EntityNotFound(self._kind, uid) from None

    def update(self, uid: str, **changes: Any) -> RecordT:
        with self._lock:
            current = self.find_by_uid(uid)
            updated = current.model_copy(update=changes)
            if self._key(updated) != uid:
                raise StoreError(f"cannot change the uid of {self._kind} {uid}")
            self._data[uid] = updated
            return updated

    def delete(self, uid: str) -> None:
        with self._lock:
            if uid not in self._data:
                raise EntityNotFound(self._kind, uid)
            del self._data[uid]

    def list_all(self) -> List[RecordT]:
        with self._lock:
            return list(self._data.values())


class InMemoryStore:
    """Simple in-memory implementation of the entity store."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or get_logger("aid-orchestrator.store")
        lock = threading.RLock()
        self.images: InMemoryRepository[Image] = InMemoryRepository("image", lambda r: r.uid, lock)
        self.containers: InMemoryRepository[Container] = InMemoryRepository("container", lambda r: r.uid, lock)
        self.solvers: InMemoryRepository[Solver] = InMemoryRepository("solver", lambda r: r.uid, lock)
        self.logger.warning("Using in-memory entity store - state will not survive a restart")

    def ping(self) -> bool:
        return True
