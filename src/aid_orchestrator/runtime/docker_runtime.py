from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

import docker
from docker.errors import APIError, BuildError, DockerException, ImageNotFound, NotFound

from aid_orchestrator import config
from aid_orchestrator.errors import RuntimeFailure
from aid_orchestrator.utils.logger import get_logger


def _build_log_lines(chunks: Iterable[Dict[str, Any]]) -> List[str]:
    """Flatten the docker build stream into plain text lines."""
    lines: List[str] = []
    for chunk in chunks:
        text = chunk.get("stream") or chunk.get("status") or chunk.get("error") or ""
        text = text.rstrip("\n")
        if text:
            lines.append(text)
    return lines


class DockerRuntime:
    """
    Runtime Client over the Docker SDK.

    The only live view of containers the orchestrator has. Every docker
    exception is wrapped into ``RuntimeFailure`` with the engine message.
    """

    LABEL_KEY = "managed-by"
    LABEL_VALUE = "aid-orchestrator"

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        *,
        container_port: int = config.CONTAINER_PORT,
        stop_timeout: int = config.STOP_TIMEOUT,
        max_retries: int = config.DOCKER_MAX_RETRIES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or get_logger("aid-orchestrator.runtime")
        self.container_port = container_port
        self.stop_timeout = stop_timeout
        self.max_retries = max_retries
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._init_docker_client()
        return self._client

    def _init_docker_client(self) -> None:
        """Initialize Docker client with retry logic"""
        for attempt in range(self.max_retries):
            try:
                self._client = docker.from_env()
                self._client.ping()
                self.logger.info("Docker client initialized successfully")
                return
            except DockerException as e:
                self.logger.warning(f"Docker client initialization attempt {attempt + 1}/{self.max_retries} failed: {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(2 ** attempt)  # Exponential backoff
                else:
                    self.logger.error(f"Failed to initialize Docker client after {self.max_retries} attempts: {e}")
                    self._client = None
                    raise RuntimeFailure(f"Cannot connect to Docker daemon: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except (RuntimeFailure, DockerException):
            return False

    # -------- images --------

    def build_image(self, name: str, dockerfile_path: str) -> Dict[str, Any]:
        """
        Build ``name`` from the Dockerfile at ``dockerfile_path``; the file's
        directory is the build context.

        Returns ``{"image_id", "log_id", "log"}``.
        """
        context_dir = os.path.dirname(os.path.abspath(dockerfile_path))
        dockerfile = os.path.basename(dockerfile_path)
        log_id = uuid.uuid4().hex
        self.logger.info(f"Building image {name} from {dockerfile_path} (log {log_id})")
        try:
            image, chunks = self.client.images.build(
                path=context_dir,
                dockerfile=dockerfile,
                tag=name,
                rm=True,
                labels={self.LABEL_KEY: self.LABEL_VALUE},
            )
        except BuildError as e:
            lines = _build_log_lines(e.build_log or [])
            for line in lines[-20:]:
                self.logger.error(f"[build {log_id}] {line}")
            raise RuntimeFailure(f"Cannot build image {name}: {e.msg}") from e
        except (APIError, DockerException, TypeError) as e:
            raise RuntimeFailure(f"Cannot build image {name}: {e}") from e

        lines = _build_log_lines(chunks)
        self.logger.info(f"Image {name} built: {image.short_id}")
        return {"image_id": image.id, "log_id": log_id, "log": lines}

    def remove_image(self, image_ref: str) -> None:
        self.logger.info(f"Removing image: {image_ref}")
        try:
            self.client.images.remove(image_ref)
        except ImageNotFound as e:
            raise RuntimeFailure(f"Image {image_ref} does not exist in the runtime: {e.explanation}") from e
        except (APIError, DockerException) as e:
            raise RuntimeFailure(f"Cannot remove image {image_ref}: {e}") from e

    # -------- containers --------

    def create_container(self, image_ref: str, host_port: str) -> str:
        """
        Create (not start) a container from ``image_ref`` with the fixed
        container port bound to ``host_port`` on all interfaces.

        Returns the full runtime container id.
        """
        cport = f"{self.container_port}/tcp"
        self.logger.info(f"Creating container for image {image_ref} ({cport} -> 0.0.0.0:{host_port})")
        try:
            container = self.client.containers.create(
                image=image_ref,
                tty=True,
                ports={cport: ("0.0.0.0", int(host_port))},
                labels={self.LABEL_KEY: self.LABEL_VALUE, "aid.image": image_ref},
            )
        except ImageNotFound as e:
            raise RuntimeFailure(f"Cannot create container from image {image_ref}: {e.explanation}") from e
        except (APIError, DockerException) as e:
            raise RuntimeFailure(f"Cannot create container from image {image_ref}: {e}") from e
        self.logger.info(f"Container created: {container.id}")
        return container.id

    def _get(self, container_id: str):
        try:
            return self.client.containers.get(container_id)
        except NotFound as e:
            raise RuntimeFailure(f"Container {container_id} does not exist in the runtime: {e.explanation}") from e
        except (APIError, DockerException) as e:
            raise RuntimeFailure(f"Cannot fetch container {container_id}: {e}") from e

    def start_container(self, container_id: str) -> None:
        c = self._get(container_id)
        try:
            c.start()
        except (APIError, DockerException) as e:
            raise RuntimeFailure(f"Cannot start container {container_id}: {e}") from e
        self.logger.info(f"Container {container_id} started")

    def stop_container(self, container_id: str) -> None:
        c = self._get(container_id)
        try:
            c.stop(timeout=self.stop_timeout)
        except (APIError, DockerException) as e:
            raise RuntimeFailure(f"Cannot stop container {container_id}: {e}") from e
        self.logger.info(f"Container {container_id} stopped")

    def remove_container(self, container_id: str) -> None:
        c = self._get(container_id)
        try:
            c.remove()
        except (APIError, DockerException) as e:
            raise RuntimeFailure(f"Cannot remove container {container_id}: {e}") from e
        self.logger.info(f"Container {container_id} removed")
