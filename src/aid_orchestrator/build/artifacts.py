"""
Build artifact generation: per-solver Dockerfiles and runner scripts.

Given a package directory, ``ArtifactGenerator`` writes ``docker_<solver>``
and ``runner_<solver>.py`` next to the package sources. Output depends only
on the templates, the solver records and the optional ``setup.sh`` /
``prepip.sh`` snippets, so regenerating is always safe.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from aid_orchestrator.build.descriptor import load_package
from aid_orchestrator.build.renderer import DOCKERFILE_TEMPLATE, RUNNER_TEMPLATE, TemplateRenderer
from aid_orchestrator.errors import ArtifactIOFailure, MalformedDescriptor
from aid_orchestrator.models import Solver
from aid_orchestrator.utils.logger import get_logger

PathLike = Union[str, Path]

SETUP_SNIPPET = "setup.sh"
PREPIP_SNIPPET = "prepip.sh"
RUNNER_EXT = "py"

NO_COMMAND_PLACEHOLDER = "echo There is no command for extra installation"
PARSE_ERROR_PLACEHOLDER = "echo An error occurred in parsing setup file"


def dockerfile_name(solver_name: str) -> str:
    return f"docker_{solver_name}"


def runner_name(solver_name: str) -> str:
    return f"runner_{solver_name}.{RUNNER_EXT}"


def split_class_path(solver: Solver) -> Tuple[str, str, str]:
    """Split ``package/file/class``; anything but three non-empty parts is malformed."""
    parts = solver.class_path.split("/")
    if len(parts) != 3 or not all(parts):
        raise MalformedDescriptor(
            f"Solver {solver.name} has class '{solver.class_path}', expected package/file/class"
        )
    return parts[0], parts[1], parts[2]


class ArtifactGenerator:
    def __init__(
        self,
        renderer: Optional[TemplateRenderer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.logger = logger or get_logger("aid-orchestrator.artifacts")

    def read_snippet(self, path: Path) -> str:
        """
        Join the non-empty lines of a shell snippet with ``&&``.

        A missing (or blank) snippet becomes a no-op echo. An unreadable one
        is logged and degrades to an error echo instead of failing the build.
        """
        if not path.exists():
            return NO_COMMAND_PLACEHOLDER
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning(f"Cannot open file {path}: {e}")
            return PARSE_ERROR_PLACEHOLDER
        commands = [line for line in text.splitlines() if line.strip()]
        return " && ".join(commands) if commands else NO_COMMAND_PLACEHOLDER

    def _write(self, path: Path, content: str) -> Path:
        try:
            with path.open("w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            raise ArtifactIOFailure(f"Cannot write {path}: {e}") from e
        return path

    def generate_dockerfile(self, solver_name: str, package_dir: PathLike) -> Path:
        package_dir = Path(package_dir)
        content = self.renderer.render(DOCKERFILE_TEMPLATE, {
            "solver_name": solver_name,
            "setup": self.read_snippet(package_dir / SETUP_SNIPPET),
            "prepip": self.read_snippet(package_dir / PREPIP_SNIPPET),
        })
        target = self._write(package_dir / dockerfile_name(solver_name), content)
        self.logger.info(f"Generated {target}")
        return target

    def generate_runner(self, solver: Solver, package_dir: PathLike) -> Path:
        package, filename, classname = split_class_path(solver)
        content = self.renderer.render(RUNNER_TEMPLATE, {
            "package": package,
            "filename": filename,
            "classname": classname,
        })
        target = self._write(Path(package_dir) / runner_name(solver.name), content)
        self.logger.info(f"Generated {target}")
        return target

    def generate_runners(self, solvers: Sequence[Solver], package_dir: PathLike) -> List[Path]:
        # validate every class path before touching the filesystem
        for solver in solvers:
            split_class_path(solver)
        return [self.generate_runner(s, package_dir) for s in solvers]

    def generate_all(self, package_dir: PathLike) -> List[Path]:
        """Render a runner and a Dockerfile for every solver in the package's aid.toml."""
        descriptor = load_package(package_dir)
        written = self.generate_runners(descriptor.solvers, package_dir)
        for solver in descriptor.solvers:
            written.append(self.generate_dockerfile(solver.name, package_dir))
        return written
