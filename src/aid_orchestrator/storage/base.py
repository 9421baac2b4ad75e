"""Entity store contract used by the lifecycle orchestrator."""

from __future__ import annotations

from typing import Any, List, Protocol, TypeVar

from aid_orchestrator.models import Container, Image, Solver

RecordT = TypeVar("RecordT")


class EntityRepository(Protocol[RecordT]):
    """
    Typed CRUD over one entity kind, addressed by uid.

    Each call is atomic. ``find_by_uid``, ``update`` and ``delete`` raise
    ``EntityNotFound`` for an unknown uid; any other failure is ``StoreError``.
    """

    def create(self, record: RecordT) -> RecordT: ...

    def find_by_uid(self, uid: str) -> RecordT: ...

    def update(self, uid: str, **changes: Any) -> RecordT: ...

    def delete(self, uid: str) -> None: ...

    def list_all(self) -> List[RecordT]: ...


class EntityStore(Protocol):
    images: EntityRepository[Image]
    containers: EntityRepository[Container]
    solvers: EntityRepository[Solver]

    def ping(self) -> bool: ...
