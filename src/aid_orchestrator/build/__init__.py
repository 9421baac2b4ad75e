"""
Build module for the AID orchestrator.

This module turns a package descriptor into Dockerfiles and runner scripts.
"""

from __future__ import annotations

from aid_orchestrator.build.artifacts import ArtifactGenerator
from aid_orchestrator.build.descriptor import load_package, load_package_meta
from aid_orchestrator.build.renderer import TemplateRenderer

__all__ = ["ArtifactGenerator", "TemplateRenderer", "load_package", "load_package_meta"]
