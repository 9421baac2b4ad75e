"""
Storage module for the AID orchestrator.

This module provides the entity store: PostgreSQL for persistence and an
in-memory variant for tests and throwaway sessions.
"""

from __future__ import annotations

from aid_orchestrator.storage.base import EntityRepository, EntityStore
from aid_orchestrator.storage.memory import InMemoryStore
from aid_orchestrator.storage.postgres_store import PostgresStore

__all__ = ["EntityRepository", "EntityStore", "InMemoryStore", "PostgresStore"]
