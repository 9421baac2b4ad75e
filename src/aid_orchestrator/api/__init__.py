"""
API module for the AID orchestrator.

This module provides the FastAPI-based REST API for the lifecycle verbs.
"""

from __future__ import annotations

from aid_orchestrator.api.app import create_app

__all__ = ["create_app", "run_server"]


def run_server() -> None:
    """Run the API server."""
    from aid_orchestrator.main import run

    run()
