"""
End-to-end container lifecycle against a real Docker daemon.

Uses busybox so no package build is needed; the image record is seeded
directly into the in-memory store.
"""

import pytest

from aid_orchestrator.core.orchestrator import LifecycleOrchestrator
from aid_orchestrator.errors import InvalidStateTransition
from aid_orchestrator.models import Image, Solver
from aid_orchestrator.runtime.docker_runtime import DockerRuntime
from aid_orchestrator.storage.memory import InMemoryStore

pytestmark = [pytest.mark.integration, pytest.mark.requires_docker, pytest.mark.slow]

BUSYBOX = "busybox:latest"


@pytest.fixture(scope="module")
def dclient():
    docker = pytest.importorskip("docker")
    try:
        client = docker.from_env()
        client.ping()
    except docker.errors.DockerException as e:
        pytest.skip(f"Docker not available: {e}")
    client.images.pull(BUSYBOX)
    return client


@pytest.fixture
def live(dclient, tmp_path):
    store = InMemoryStore()
    store.solvers.create(Solver(name="sh", class_path="a/b/C", vendor="v", package="p"))
    store.images.create(Image(uid=BUSYBOX, title="busybox", solver="v/p/sh"))
    orch = LifecycleOrchestrator(store, DockerRuntime(client=dclient, stop_timeout=1), models_dir=tmp_path)
    created = []
    yield orch, created
    for full_id in created:
        try:
            dclient.containers.get(full_id).remove(force=True)
        except Exception:
            pass


def test_create_start_stop_remove(live, dclient):
    orch, created = live
    container = orch.create(BUSYBOX, "18590")
    full = dclient.containers.list(all=True, filters={"id": container.uid})[0]
    created.append(full.id)

    assert full.attrs["HostConfig"]["PortBindings"]["8080/tcp"][0]["HostPort"] == "18590"

    assert orch.start(container.uid).running is True
    with pytest.raises(InvalidStateTransition):
        orch.remove_container(container.uid)

    assert orch.stop(container.uid).running is False
    orch.remove_container(container.uid)
    assert dclient.containers.list(all=True, filters={"id": container.uid}) == []
