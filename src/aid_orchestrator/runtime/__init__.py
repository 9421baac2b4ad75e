"""
Runtime module for the AID orchestrator.

This module wraps the container engine and the HTTP surface of running solvers.
"""

from __future__ import annotations

from aid_orchestrator.runtime.base import RuntimeClient
from aid_orchestrator.runtime.docker_runtime import DockerRuntime
from aid_orchestrator.runtime.inference import InferenceClient

__all__ = ["DockerRuntime", "InferenceClient", "RuntimeClient"]
