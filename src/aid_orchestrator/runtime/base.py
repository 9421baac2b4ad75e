"""Container engine contract used by the lifecycle orchestrator."""

from __future__ import annotations

from typing import Any, Dict, Protocol


class RuntimeClient(Protocol):
    def build_image(self, name: str, dockerfile_path: str) -> Dict[str, Any]: ...

    def remove_image(self, image_ref: str) -> None: ...

    def create_container(self, image_ref: str, host_port: str) -> str: ...

    def start_container(self, container_id: str) -> None: ...

    def stop_container(self, container_id: str) -> None: ...

    def remove_container(self, container_id: str) -> None: ...

    def ping(self) -> bool: ...
