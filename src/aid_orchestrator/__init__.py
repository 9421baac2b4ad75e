"""
AID Orchestrator - package manager and local daemon for containerised ML solvers.

This package provides:
- Dockerfile and runner generation from a package descriptor (aid.toml)
- Docker image builds and container create/start/stop/remove
- A persisted record of images, containers and solvers (PostgreSQL)
- A RESTful API and CLI for the lifecycle verbs and for inference
"""

from __future__ import annotations

__version__ = "1.0.0"

# Core exports
from aid_orchestrator.core.orchestrator import LifecycleOrchestrator
from aid_orchestrator.storage.memory import InMemoryStore
from aid_orchestrator.storage.postgres_store import PostgresStore
from aid_orchestrator.utils.logger import get_logger

__all__ = [
    "InMemoryStore",
    "LifecycleOrchestrator",
    "PostgresStore",
    "get_logger",
    "__version__",
]
