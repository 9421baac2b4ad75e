"""
Main entry point for the AID orchestrator daemon.

This module wires the store, the runtime and the orchestrator together
and serves the HTTP API.
"""

from __future__ import annotations

import logging
from typing import Optional

from aid_orchestrator import config
from aid_orchestrator.core.orchestrator import LifecycleOrchestrator
from aid_orchestrator.runtime.docker_runtime import DockerRuntime
from aid_orchestrator.storage.base import EntityStore
from aid_orchestrator.utils.logger import get_logger


def open_store(backend: str = config.STORE_BACKEND, logger: Optional[logging.Logger] = None) -> EntityStore:
    """Construct the configured entity store ("postgres" or "memory")."""
    if backend == "memory":
        from aid_orchestrator.storage.memory import InMemoryStore
        return InMemoryStore(logger=logger)
    if backend == "postgres":
        from aid_orchestrator.storage.postgres_store import PostgresStore
        return PostgresStore(config.POSTGRES_URL, logger=logger)
    raise ValueError(f"Unknown store backend '{backend}', expected postgres or memory")


def build_orchestrator(logger: Optional[logging.Logger] = None) -> LifecycleOrchestrator:
    logger = logger or get_logger()
    return LifecycleOrchestrator(
        open_store(logger=logger.getChild("store")),
        DockerRuntime(logger=logger.getChild("runtime")),
        models_dir=config.MODELS_DIR,
        logger=logger.getChild("orchestrator"),
    )


def run(host: str = config.API_HOST, port: int = config.API_PORT) -> None:
    """Start the API server; blocks until uvicorn exits."""
    import uvicorn

    from aid_orchestrator.api.app import create_app

    logger = get_logger()
    logger.info("Starting the server...")
    app = create_app(build_orchestrator(logger), logger=logger.getChild("api"))
    logger.info(f"Starting API server on {host}:{port}...")
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=True
    )
    logger.info("Server is shutting down gracefully...")


if __name__ == "__main__":
    run()
