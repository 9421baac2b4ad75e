# postgres_store.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

import psycopg
from psycopg.rows import dict_row
from pydantic import BaseModel

from aid_orchestrator import config
from aid_orchestrator.errors import EntityNotFound, StoreError
from aid_orchestrator.models import Container, Image, Solver
from aid_orchestrator.utils.logger import get_logger

RecordT = TypeVar("RecordT", bound=BaseModel)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS solvers (
      uid        TEXT PRIMARY KEY,
      name       TEXT NOT NULL,
      class_path TEXT NOT NULL,
      vendor     TEXT NOT NULL,
      package    TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS images (
      uid        TEXT PRIMARY KEY,
      title      TEXT NOT NULL,
      solver     TEXT NOT NULL REFERENCES solvers(uid),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS containers (
      uid        TEXT PRIMARY KEY,
      port       TEXT NOT NULL,
      image      TEXT NOT NULL REFERENCES images(uid),
      running    BOOLEAN NOT NULL DEFAULT FALSE,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS containers_image_idx ON containers (image)",
)


class PostgresRepository(Generic[RecordT]):
    """
    CRUD over a single table. Every call opens its own autocommit
    connection, so each statement is its own transaction.
    """

    def __init__(
        self,
        dsn: str,
        kind: str,
        table: str,
        columns: Sequence[str],
        to_row: Callable[[RecordT], Dict[str, Any]],
        from_row: Callable[[Dict[str, Any]], RecordT],
    ) -> None:
        self.dsn = dsn
        self.kind = kind
        self.table = table
        self.columns = tuple(columns)
        self._to_row = to_row
        self._from_row = from_row

    def _execute(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        try:
            with psycopg.connect(self.dsn, autocommit=True) as conn, conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, params)
                return cur.fetchall() if cur.description else []
        except psycopg.Error as e:
            raise StoreError(f"{self.kind} store failure: {e}") from e

    def create(self, record: RecordT) -> RecordT:
        row = self._to_row(record)
        cols = ",".join(self.columns)
        marks = ",".join(["%s"] * len(self.columns))
        rows = self._execute(
            f"INSERT INTO {self.table}({cols}) VALUES ({marks}) RETURNING {cols}",
            [row[c] for c in self.columns],
        )
        return self._from_row(rows[0])

    def find_by_uid(self, uid: str) -> RecordT:
        rows = self._execute(
            f"SELECT {','.join(self.columns)} FROM {self.table} WHERE uid=%s",
            (uid,),
        )
        if not rows:
            raise EntityNotFound(self.kind, uid)
        return self._from_row(rows[0])

    def update(self, uid: str, **changes: Any) -> RecordT:
        unknown = set(changes) - set(self.columns)
        if unknown or "uid" in changes:
            raise StoreError(f"cannot update {sorted(unknown or ['uid'])} on {self.kind}")
        if not changes:
            return self.find_by_uid(uid)
        assignments = ",".join(f"{c}=%s" for c in changes)
        rows = self._execute(
            f"UPDATE {self.table} SET {assignments} WHERE uid=%s RETURNING {','.join(self.columns)}",
            [*changes.values(), uid],
        )
        if not rows:
            raise EntityNotFound(self.kind, uid)
        return self._from_row(rows[0])

    def delete(self, uid: str) -> None:
        rows = self._execute(f"DELETE FROM {self.table} WHERE uid=%s RETURNING uid", (uid,))
        if not rows:
            raise EntityNotFound(self.kind, uid)

    def list_all(self) -> List[RecordT]:
        rows = self._execute(
            f"SELECT {','.join(self.columns)} FROM {self.table} ORDER BY uid", ()
        )
        return [self._from_row(r) for r in rows]


def _solver_row(s: Solver) -> Dict[str, Any]:
    return {"uid": s.uid, "name": s.name, "class_path": s.class_path,
            "vendor": s.vendor, "package": s.package}


def _solver_from_row(r: Dict[str, Any]) -> Solver:
    return Solver(name=r["name"], class_path=r["class_path"],
                  vendor=r["vendor"], package=r["package"])


class PostgresStore:
    """
    Entity store backed by PostgreSQL.

    On first connect it creates the tables if they don't exist; an
    unreachable database is a StoreError rather than a silent fallback.
    """

    def __init__(self, dsn: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.dsn = dsn or config.POSTGRES_URL
        self.logger = logger or get_logger("aid-orchestrator.store")
        try:
            with psycopg.connect(self.dsn, autocommit=True) as conn, conn.cursor() as cur:
                for statement in SCHEMA:
                    cur.execute(statement)
        except psycopg.Error as e:
            self.logger.error(f"PostgreSQL store unavailable: {e}")
            raise StoreError(f"Cannot connect to PostgreSQL: {e}") from e
        self.logger.info("PostgreSQL store enabled")

        self.solvers: PostgresRepository[Solver] = PostgresRepository(
            self.dsn, "solver", "solvers",
            ("uid", "name", "class_path", "vendor", "package"),
            _solver_row, _solver_from_row,
        )
        self.images: PostgresRepository[Image] = PostgresRepository(
            self.dsn, "image", "images",
            ("uid", "title", "solver", "created_at"),
            lambda i: i.model_dump(), Image.model_validate,
        )
        self.containers: PostgresRepository[Container] = PostgresRepository(
            self.dsn, "container", "containers",
            ("uid", "port", "image", "running", "created_at"),
            lambda c: c.model_dump(), Container.model_validate,
        )

    def ping(self) -> bool:
        try:
            with psycopg.connect(self.dsn, connect_timeout=3) as conn, conn.cursor() as cur:
                cur.execute("SELECT 1")
            return True
        except psycopg.Error:
            return False
