"""Loading of package descriptors (aid.toml) and their companion files."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from aid_orchestrator.config import DESCRIPTOR_FILE
from aid_orchestrator.errors import MalformedDescriptor, NotFoundError
from aid_orchestrator.models import PackageDescriptor, PackageMeta, PretrainedModel, Solver

PathLike = Union[str, Path]


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise MalformedDescriptor(f"Cannot parse {path}: {e}") from e


def load_package(package_dir: PathLike) -> PackageDescriptor:
    """
    Parse ``<package_dir>/aid.toml``.

    Raises:
        NotFoundError: the descriptor does not exist.
        MalformedDescriptor: the descriptor cannot be parsed or lacks
            required keys.
    """
    path = Path(package_dir) / DESCRIPTOR_FILE
    if not path.is_file():
        raise NotFoundError("package", str(package_dir))
    data = _read_toml(path)

    info = data.get("package")
    if not isinstance(info, dict):
        raise MalformedDescriptor(f"{path} has no [package] table")
    vendor, name = info.get("vendor"), info.get("name")
    if not vendor or not name:
        raise MalformedDescriptor(f"{path} must declare package.vendor and package.name")

    solvers: List[Solver] = []
    for entry in data.get("solvers", []):
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("class"):
            raise MalformedDescriptor(f"{path}: every [[solvers]] entry needs name and class")
        solvers.append(Solver(name=entry["name"], class_path=entry["class"],
                              vendor=vendor, package=name))

    try:
        return PackageDescriptor(vendor=vendor, name=name,
                                 tagline=info.get("tagline", ""), solvers=solvers)
    except ValidationError as e:
        raise MalformedDescriptor(f"{path}: {e}") from e


def _read_optional(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def load_package_meta(package_dir: PathLike) -> PackageMeta:
    """Solvers plus pretrained.toml, README.md and requirements.txt, where present."""
    package_dir = Path(package_dir)
    descriptor = load_package(package_dir)

    pretrained: List[PretrainedModel] = []
    pretrained_file = package_dir / "pretrained.toml"
    if pretrained_file.is_file():
        for entry in _read_toml(pretrained_file).get("models", []):
            try:
                pretrained.append(PretrainedModel.model_validate(entry))
            except ValidationError as e:
                raise MalformedDescriptor(f"{pretrained_file}: {e}") from e

    return PackageMeta(
        solvers=descriptor.solvers,
        pretrained=pretrained,
        readme=_read_optional(package_dir / "README.md"),
        requirements=_read_optional(package_dir / "requirements.txt"),
    )
