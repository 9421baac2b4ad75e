from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psutil
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from aid_orchestrator import __version__
from aid_orchestrator.core.orchestrator import LifecycleOrchestrator
from aid_orchestrator.errors import (
    InvalidStateTransition,
    MalformedDescriptor,
    NotFoundError,
    OrchestratorError,
)
from aid_orchestrator.models import Container, Image, PackageMeta, Solver
from aid_orchestrator.utils.logger import get_logger

# -------- Schemas --------

class MessageResponse(BaseModel):
    code: int
    msg: str

class CreateContainerBody(BaseModel):
    port: str = Field(..., description="host port bound to the solver's port 8080")

class DockerfileBody(BaseModel):
    content: str

class BuildResponse(BaseModel):
    code: int = 200
    logid: str
    image: Image

class PackageView(BaseModel):
    vendor: str
    package: str
    path: str

# -------- Error mapping --------

def _status_for(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InvalidStateTransition):
        return 409
    if isinstance(exc, MalformedDescriptor):
        return 400
    if isinstance(exc, ValueError):
        return 422
    return 500

def _error_response(exc: Exception) -> JSONResponse:
    status = _status_for(exc)
    return JSONResponse(status_code=status, content={"code": status, "msg": str(exc)})


def get_orchestrator(request: Request) -> LifecycleOrchestrator:
    return request.app.state.orchestrator


def create_app(orchestrator: LifecycleOrchestrator, logger: Optional[logging.Logger] = None) -> FastAPI:
    """Build the HTTP API around an explicitly constructed orchestrator."""
    logger = logger or get_logger("aid-orchestrator.api")

    app = FastAPI(title="AID Orchestrator API", version=__version__)
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "origin", "content-type", "accept"],
    )

    @app.middleware("http")
    async def version_header(request: Request, call_next):
        response = await call_next(request)
        response.headers["aid-version"] = __version__
        return response

    @app.exception_handler(OrchestratorError)
    async def orchestrator_error_handler(request: Request, exc: OrchestratorError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error_response(exc)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        return _error_response(exc)

    ## this section for service
    @app.get("/health")
    def health():
        """Basic health check - just returns OK if the service is running"""
        return {"status": "OK"}

    @app.get("/health/detailed")
    def health_detailed(orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        """Detailed health check - validates docker, the entity store and host resources"""
        health_status: Dict[str, Any] = {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {}
        }

        if orch.runtime.ping():
            health_status["components"]["docker"] = {"status": "OK", "message": "Connected"}
        else:
            health_status["components"]["docker"] = {"status": "ERROR", "message": "Docker daemon unreachable"}
            health_status["status"] = "DEGRADED"

        if orch.store.ping():
            health_status["components"]["store"] = {"status": "OK", "message": "Connected"}
        else:
            health_status["components"]["store"] = {"status": "ERROR", "message": "Entity store unreachable"}
            health_status["status"] = "DEGRADED"

        memory = psutil.virtual_memory()
        health_status["components"]["system_resources"] = {
            "status": "OK",
            "cpu_usage": f"{psutil.cpu_percent(interval=0.1):.1f}%",
            "memory_usage": f"{memory.percent:.1f}%"
        }
        return health_status

    # -------- Listing --------

    @app.get("/packages", response_model=List[PackageView])
    def get_packages(orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.list_packages()

    @app.get("/images", response_model=List[Image])
    def get_images(orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.list_images()

    @app.get("/solvers", response_model=List[Solver])
    def get_solvers(orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.list_solvers()

    @app.get("/containers", response_model=List[Container])
    def get_containers(orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.list_containers()

    # -------- Package files --------

    @app.get("/packages/{vendor}/{package}/meta", response_model=PackageMeta)
    def get_meta_info(vendor: str, package: str, orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.package_meta(vendor, package)

    @app.get("/packages/{vendor}/{package}/{solver}/dockerfile", response_model=MessageResponse)
    def get_dockerfile_content(vendor: str, package: str, solver: str,
                               orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return {"code": 200, "msg": orch.read_dockerfile(vendor, package, solver)}

    @app.post("/packages/{vendor}/{package}/{solver}/dockerfile", response_model=MessageResponse)
    def modify_solver_dockerfile(vendor: str, package: str, solver: str, body: DockerfileBody,
                                 orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        orch.write_dockerfile(vendor, package, solver, body.content)
        return {"code": 200, "msg": "Successfully Modified"}

    @app.delete("/packages/{vendor}/{package}", response_model=MessageResponse)
    def delete_package(vendor: str, package: str, orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        orch.remove("package", f"{vendor}/{package}")
        return {"code": 200, "msg": f"Removed package {vendor}/{package}"}

    # -------- Lifecycle verbs --------

    @app.put("/images/{image_uid}/containers", response_model=Container)
    def create_solver_container(image_uid: str, body: CreateContainerBody,
                                orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.create(image_uid, body.port)

    @app.put("/containers/{container_uid}/run", response_model=Container)
    def start_solver_container(container_uid: str, orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.start(container_uid)

    @app.put("/containers/{container_uid}/stop", response_model=Container)
    def stop_solver_container(container_uid: str, orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return orch.stop(container_uid)

    @app.delete("/containers/{container_uid}", response_model=MessageResponse)
    def delete_container(container_uid: str, orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        orch.remove("container", container_uid)
        return {"code": 200, "msg": f"Removed container {container_uid}"}

    @app.delete("/images/{image_uid}", response_model=MessageResponse)
    def delete_image(image_uid: str, orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        orch.remove("image", image_uid)
        return {"code": 200, "msg": f"Removed image {image_uid}"}

    @app.post("/containers/{container_uid}/infer")
    def infer(container_uid: str, params: Dict[str, str],
              orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        return {"code": 200, "result": orch.infer(container_uid, params)}

    @app.put("/{vendor}/{package}/{solver}/images", response_model=BuildResponse)
    def build_solver_image(vendor: str, package: str, solver: str,
                           rebuild: bool = Query(False, description="Rebuild an existing image"),
                           orch: LifecycleOrchestrator = Depends(get_orchestrator)):
        result = orch.build(vendor, package, solver, rebuild=rebuild)
        return {"code": 200, "logid": result.log_id, "image": result.image}

    return app
