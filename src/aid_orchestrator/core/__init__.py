"""
Core business logic for the AID orchestrator.

This module contains the container and image lifecycle orchestration.
"""

from __future__ import annotations

from aid_orchestrator.core.orchestrator import LifecycleOrchestrator

__all__ = ["LifecycleOrchestrator"]
