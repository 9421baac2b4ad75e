"""HTTP client for solvers running inside containers."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from aid_orchestrator import config
from aid_orchestrator.errors import RuntimeFailure
from aid_orchestrator.utils.logger import get_logger


class InferenceClient:
    def __init__(
        self,
        host: str = config.INFER_HOST,
        timeout: float = config.INFER_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.host = host
        self.timeout = timeout
        self._transport = transport
        self.logger = logger or get_logger("aid-orchestrator.inference")

    def infer(self, port: str, params: Dict[str, str]) -> Any:
        """POST ``params`` as form data to the runner's /infer route on ``port``."""
        url = f"http://{self.host}:{port}/infer"
        self.logger.info(f"Forwarding inference request to {url}")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.post(url, data=params)
                r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RuntimeFailure(
                f"Solver at port {port} answered {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise RuntimeFailure(f"Cannot handle requests from port {port}: {e}") from e

        if r.headers.get("content-type", "").startswith("application/json"):
            return r.json()
        return r.text
