"""
Utilities module for the AID orchestrator.

This module provides common utilities like logging configuration.
"""

from __future__ import annotations

from aid_orchestrator.utils.logger import get_logger

__all__ = ["get_logger"]
