"""
Logging configuration for the AID orchestrator.

Components do not share a module-level logger: each one takes an optional
``logger`` argument and falls back to ``get_logger("aid-orchestrator.<component>")``.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

SERVICE_NAME = "aid-orchestrator"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name. If None, uses the service name. Child names
            (``aid-orchestrator.runtime``) propagate to the configured root.

    Returns:
        Configured logger instance.
    """
    if name is None:
        name = SERVICE_NAME

    root = logging.getLogger(SERVICE_NAME)
    if not root.handlers:
        configure_logger(root)

    return logging.getLogger(name)


def configure_logger(logger_instance: logging.Logger) -> None:
    """
    Configure a logger instance with file and console handlers.

    Args:
        logger_instance: Logger instance to configure.
    """
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logger_instance.setLevel(getattr(logging, level, logging.INFO))

    formatter = logging.Formatter(
        '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'
    )

    log_file = os.environ.get("LOG_FILE")
    if not log_file:
        log_dir = Path(__file__).parent.parent.parent.parent / "logs"
        log_file = log_dir / "combined.log"

    try:
        if isinstance(log_file, str):
            log_file = Path(log_file)

        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger_instance.addHandler(file_handler)
    except OSError as e:
        # If file logging fails, just use console
        print(f"Warning: Could not set up file logging: {e}", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger_instance.addHandler(console_handler)


__all__ = ["SERVICE_NAME", "configure_logger", "get_logger"]
