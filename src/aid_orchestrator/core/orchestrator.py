from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, TypeVar

from aid_orchestrator import config
from aid_orchestrator.build.artifacts import ArtifactGenerator, dockerfile_name
from aid_orchestrator.build.descriptor import load_package, load_package_meta
from aid_orchestrator.core.locks import KeyedLock
from aid_orchestrator.errors import (
    ArtifactIOFailure,
    EntityNotFound,
    InvalidStateTransition,
    NotFoundError,
)
from aid_orchestrator.models import BuildResult, Container, Image, PackageMeta, Solver
from aid_orchestrator.runtime.base import RuntimeClient
from aid_orchestrator.runtime.inference import InferenceClient
from aid_orchestrator.storage.base import EntityRepository, EntityStore
from aid_orchestrator.utils.logger import get_logger

RecordT = TypeVar("RecordT")

ENTITY_KINDS = ("container", "image", "package")


def _validate_port(host_port: Any) -> str:
    port = str(host_port).strip()
    if not port.isdigit() or not 1 <= int(port) <= 65535:
        raise ValueError(f"Invalid host port '{host_port}'")
    return port


def _validate_segment(value: str, what: str) -> str:
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"Invalid {what} name '{value}'")
    return value


def _find(repo: EntityRepository[RecordT], uid: str) -> Optional[RecordT]:
    try:
        return repo.find_by_uid(uid)
    except EntityNotFound:
        return None


class LifecycleOrchestrator:
    """
    Sequences artifact generation, the container runtime and the entity store
    for the build/create/start/stop/remove verbs.

    The store is only written after the matching runtime call succeeded.
    Guard check, runtime call and store update for one identifier run under
    a per-identifier lock, so two concurrent ``start`` calls on the same
    container cannot both pass the ``running=False`` guard. Builds also hold
    their package, which serializes the shared Solver writes and keeps
    ``remove_package`` out while a build of that package is in flight.
    """

    def __init__(
        self,
        store: EntityStore,
        runtime: RuntimeClient,
        *,
        artifacts: Optional[ArtifactGenerator] = None,
        inference: Optional[InferenceClient] = None,
        models_dir: Path = config.MODELS_DIR,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or get_logger("aid-orchestrator.orchestrator")
        self.store = store
        self.runtime = runtime
        self.artifacts = artifacts or ArtifactGenerator(logger=self.logger.getChild("artifacts"))
        self.inference = inference or InferenceClient(logger=self.logger.getChild("inference"))
        self.models_dir = Path(models_dir)
        self._locks = KeyedLock()

    # ---------- helpers ----------

    def package_dir(self, vendor: str, package: str) -> Path:
        return self.models_dir / _validate_segment(vendor, "vendor") / _validate_segment(package, "package")

    @staticmethod
    def image_name(vendor: str, package: str, solver: str) -> str:
        return f"{vendor}-{package}-{solver}".lower()

    # ---------- build ----------

    def build(self, vendor: str, package: str, solver_name: str, *, rebuild: bool = False) -> BuildResult:
        image_uid = self.image_name(vendor, package, solver_name)
        # package before image, everywhere both are held
        with self._locks.hold(f"package:{vendor}/{package}"), self._locks.hold(f"image:{image_uid}"):
            pkg_dir = self.package_dir(vendor, package)
            descriptor = load_package(pkg_dir)
            solver = descriptor.solver(solver_name)
            if solver is None:
                raise NotFoundError("solver", f"{vendor}/{package}/{solver_name}")

            existing = _find(self.store.images, image_uid)
            if existing is not None and not rebuild:
                raise InvalidStateTransition(image_uid, "image already exists")

            self.artifacts.generate_runners(descriptor.solvers, pkg_dir)
            dockerfile = pkg_dir / dockerfile_name(solver_name)
            if not dockerfile.exists():
                self.artifacts.generate_dockerfile(solver_name, pkg_dir)

            result = self.runtime.build_image(image_uid, str(dockerfile))

            for declared in descriptor.solvers:
                if _find(self.store.solvers, declared.uid) is None:
                    self.store.solvers.create(declared)
            image = existing or self.store.images.create(
                Image(uid=image_uid, title=f"{vendor}/{package}/{solver_name}", solver=solver.uid)
            )
            self.logger.info(f"Successfully built image {image.uid} (log {result['log_id']})")
            return BuildResult(image=image, log_id=result["log_id"], log=result.get("log", []))

    # ---------- containers ----------

    def create(self, image_uid: str, host_port: Any) -> Container:
        port = _validate_port(host_port)
        with self._locks.hold(f"image:{image_uid}"):
            image = self.store.images.find_by_uid(image_uid)
            runtime_id = self.runtime.create_container(image.uid, port)
            container = self.store.containers.create(
                Container(uid=runtime_id[:10], port=port, image=image.uid)
            )
        self.logger.info(f"Successfully created container for {image.title}")
        self.logger.info(f"The reference for the created container is {container.uid}")
        return container

    def start(self, container_uid: str) -> Container:
        with self._locks.hold(f"container:{container_uid}"):
            container = self.store.containers.find_by_uid(container_uid)
            if container.running:
                raise InvalidStateTransition(container.uid, "container has already been started")
            self.runtime.start_container(container.uid)
            container = self.store.containers.update(container.uid, running=True)
        self.logger.info(f"Successfully started {container_uid}")
        return container

    def stop(self, container_uid: str) -> Container:
        with self._locks.hold(f"container:{container_uid}"):
            container = self.store.containers.find_by_uid(container_uid)
            if not container.running:
                raise InvalidStateTransition(container.uid, "container is not running")
            self.runtime.stop_container(container.uid)
            container = self.store.containers.update(container.uid, running=False)
        self.logger.info(f"Successfully stopped {container_uid}")
        return container

    def remove_container(self, container_uid: str) -> None:
        with self._locks.hold(f"container:{container_uid}"):
            container = self.store.containers.find_by_uid(container_uid)
            if container.running:
                raise InvalidStateTransition(container.uid, "container is running, you must stop it first")
            self.runtime.remove_container(container.uid)
            self.store.containers.delete(container.uid)
        self.logger.info(f"Successfully removed the container {container_uid}")

    # ---------- images / packages ----------

    def remove_image(self, image_uid: str) -> None:
        with self._locks.hold(f"image:{image_uid}"):
            image = self.store.images.find_by_uid(image_uid)
            dependents = [c.uid for c in self.store.containers.list_all() if c.image == image.uid]
            if dependents:
                raise InvalidStateTransition(
                    image.uid, f"image is used by containers {', '.join(dependents)}, remove them first"
                )
            self.runtime.remove_image(image.uid)
            self.store.images.delete(image.uid)
        self.logger.info(f"Successfully removed the image {image_uid}")

    def remove_package(self, identifier: str) -> None:
        parts = identifier.split("/")
        if len(parts) != 2:
            raise ValueError(f"Package identifier must be vendor/package, got '{identifier}'")
        vendor, package = parts
        pkg_dir = self.package_dir(vendor, package)
        with self._locks.hold(f"package:{vendor}/{package}"):
            if not pkg_dir.is_dir():
                raise NotFoundError("package", identifier)
            solvers = [s for s in self.store.solvers.list_all() if s.vendor == vendor and s.package == package]
            solver_uids = {s.uid for s in solvers}
            images = [i.uid for i in self.store.images.list_all() if i.solver in solver_uids]
            if images:
                raise InvalidStateTransition(
                    identifier, f"package has images {', '.join(images)}, remove them first"
                )
            try:
                shutil.rmtree(pkg_dir)
            except OSError as e:
                raise ArtifactIOFailure(f"Cannot remove {pkg_dir}: {e}") from e
            for s in solvers:
                self.store.solvers.delete(s.uid)
        self.logger.info(f"Successfully removed the package {identifier}")

    def remove(self, kind: str, identifier: str) -> None:
        if kind == "container":
            self.remove_container(identifier)
        elif kind == "image":
            self.remove_image(identifier)
        elif kind == "package":
            self.remove_package(identifier)
        else:
            raise ValueError(f"Unknown entity kind '{kind}', expected one of {', '.join(ENTITY_KINDS)}")

    # ---------- inference ----------

    def infer(self, container_uid: str, params: Dict[str, str]) -> Any:
        container = self.store.containers.find_by_uid(container_uid)
        if not container.running:
            raise InvalidStateTransition(container.uid, "container is not running")
        return self.inference.infer(container.port, params)

    # ---------- queries ----------

    def list_images(self) -> List[Image]:
        return self.store.images.list_all()

    def list_containers(self) -> List[Container]:
        return self.store.containers.list_all()

    def list_solvers(self) -> List[Solver]:
        return self.store.solvers.list_all()

    def list_packages(self) -> List[Dict[str, str]]:
        if not self.models_dir.is_dir():
            return []
        return [
            {"vendor": d.parent.parent.name, "package": d.parent.name, "path": str(d.parent)}
            for d in sorted(self.models_dir.glob(f"*/*/{config.DESCRIPTOR_FILE}"))
        ]

    def package_meta(self, vendor: str, package: str) -> PackageMeta:
        return load_package_meta(self.package_dir(vendor, package))

    def read_dockerfile(self, vendor: str, package: str, solver: str) -> str:
        path = self.package_dir(vendor, package) / dockerfile_name(_validate_segment(solver, "solver"))
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError("dockerfile", str(path)) from None
        except OSError as e:
            raise ArtifactIOFailure(f"Cannot read {path}: {e}") from e

    def write_dockerfile(self, vendor: str, package: str, solver: str, content: str) -> None:
        pkg_dir = self.package_dir(vendor, package)
        if not pkg_dir.is_dir():
            raise NotFoundError("package", f"{vendor}/{package}")
        path = pkg_dir / dockerfile_name(_validate_segment(solver, "solver"))
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ArtifactIOFailure(f"Cannot write {path}: {e}") from e
        self.logger.info(f"Dockerfile {path} modified")
