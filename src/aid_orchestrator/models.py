"""Entity records shared by the store, the orchestrator and the API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Solver(BaseModel):
    """A named executable unit declared in a package descriptor."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    class_path: str = Field(..., alias="class", description="package/file/class triple")
    vendor: str = ""
    package: str = ""

    @property
    def uid(self) -> str:
        return f"{self.vendor}/{self.package}/{self.name}"


class Image(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str
    title: str
    solver: str = Field(..., description="uid of the Solver this image was built for")
    created_at: datetime = Field(default_factory=_now)


class Container(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., description="first 10 characters of the runtime container id")
    port: str
    image: str = Field(..., description="uid of the Image this container runs")
    running: bool = False
    created_at: datetime = Field(default_factory=_now)


class PretrainedModel(BaseModel):
    name: str
    url: str = ""


class PackageDescriptor(BaseModel):
    """Parsed contents of a package's aid.toml."""

    vendor: str
    name: str
    tagline: str = ""
    solvers: List[Solver] = Field(default_factory=list)

    def solver(self, name: str) -> Optional[Solver]:
        return next((s for s in self.solvers if s.name == name), None)


class PackageMeta(BaseModel):
    solvers: List[Solver] = Field(default_factory=list)
    pretrained: List[PretrainedModel] = Field(default_factory=list)
    readme: str = ""
    requirements: str = ""


class BuildResult(BaseModel):
    """Outcome of a successful image build."""

    image: Image
    log_id: str
    log: List[str] = Field(default_factory=list)


__all__ = [
    "BuildResult",
    "Container",
    "Image",
    "PackageDescriptor",
    "PackageMeta",
    "PretrainedModel",
    "Solver",
]
