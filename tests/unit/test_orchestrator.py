"""
Unit tests for the lifecycle orchestrator against an in-memory store and
a recording runtime double.
"""

import threading
import time

import pytest

from aid_orchestrator.errors import (
    EntityNotFound,
    InvalidStateTransition,
    MalformedDescriptor,
    NotFoundError,
    RuntimeFailure,
)
from aid_orchestrator.models import Container


class TestContainerLifecycle:

    def test_end_to_end(self, orchestrator, store, runtime, image):
        container = orchestrator.create("img1", "9000")
        assert container.running is False
        assert container.port == "9000"
        assert container.image == "img1"
        assert len(container.uid) == 10
        assert runtime.history[-1] == ("create_container", "img1", "9000")

        started = orchestrator.start(container.uid)
        assert started.running is True
        assert runtime.calls["start_container"] == 1

        with pytest.raises(InvalidStateTransition) as exc:
            orchestrator.start(container.uid)
        assert container.uid in str(exc.value)
        assert runtime.calls["start_container"] == 1

        stopped = orchestrator.stop(container.uid)
        assert stopped.running is False

        orchestrator.remove("container", container.uid)
        assert runtime.calls["remove_container"] == 1
        with pytest.raises(EntityNotFound):
            store.containers.find_by_uid(container.uid)

    def test_container_uid_is_runtime_id_prefix(self, orchestrator, image):
        container = orchestrator.create("img1", 9001)
        assert container.uid == "0001abcdef"

    def test_create_unknown_image_is_not_found(self, orchestrator, runtime):
        with pytest.raises(NotFoundError, match="Cannot fetch image missing"):
            orchestrator.create("missing", "9000")
        assert runtime.calls["create_container"] == 0

    @pytest.mark.parametrize("port", ["", "abc", "0", "70000", "-1"])
    def test_create_rejects_invalid_port(self, orchestrator, runtime, image, port):
        with pytest.raises(ValueError):
            orchestrator.create("img1", port)
        assert runtime.calls["create_container"] == 0

    def test_stop_requires_running(self, orchestrator, runtime, image):
        container = orchestrator.create("img1", "9000")
        with pytest.raises(InvalidStateTransition, match="not running"):
            orchestrator.stop(container.uid)
        assert runtime.calls["stop_container"] == 0

    def test_remove_requires_stopped(self, orchestrator, store, runtime, image):
        container = orchestrator.create("img1", "9000")
        orchestrator.start(container.uid)
        with pytest.raises(InvalidStateTransition, match="stop it first"):
            orchestrator.remove("container", container.uid)
        assert runtime.calls["remove_container"] == 0
        assert store.containers.find_by_uid(container.uid).running is True

    def test_unknown_container(self, orchestrator):
        for verb in (orchestrator.start, orchestrator.stop, orchestrator.remove_container):
            with pytest.raises(NotFoundError):
                verb("nope")

    @pytest.mark.parametrize("verb,setup_running", [
        ("start_container", False),
        ("stop_container", True),
        ("remove_container", False),
    ])
    def test_runtime_failure_leaves_record_unchanged(self, orchestrator, store, runtime, image,
                                                     verb, setup_running):
        container = orchestrator.create("img1", "9000")
        if setup_running:
            orchestrator.start(container.uid)
        before = store.containers.find_by_uid(container.uid)

        runtime.fail_on.add(verb)
        action = {
            "start_container": orchestrator.start,
            "stop_container": orchestrator.stop,
            "remove_container": orchestrator.remove_container,
        }[verb]
        with pytest.raises(RuntimeFailure):
            action(container.uid)

        after = store.containers.find_by_uid(container.uid)
        assert after == before
        assert after.model_dump_json() == before.model_dump_json()

    def test_runtime_create_failure_stores_nothing(self, orchestrator, store, runtime, image):
        runtime.fail_on.add("create_container")
        with pytest.raises(RuntimeFailure):
            orchestrator.create("img1", "9000")
        assert store.containers.list_all() == []

    def test_concurrent_starts_hit_runtime_once(self, orchestrator, runtime, image):
        container = orchestrator.create("img1", "9000")
        runtime.start_delay = 0.05
        results = []

        def attempt():
            try:
                orchestrator.start(container.uid)
                results.append("started")
            except InvalidStateTransition:
                results.append("rejected")

        threads = [threading.Thread(target=attempt) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["rejected"] * 3 + ["started"]
        assert runtime.calls["start_container"] == 1

    def test_concurrent_builds_share_package_solvers(self, orchestrator, store, runtime,
                                                     package_dir, monkeypatch):
        lookup = store.solvers.find_by_uid

        def slow_lookup(uid):
            try:
                return lookup(uid)
            finally:
                time.sleep(0.05)

        monkeypatch.setattr(store.solvers, "find_by_uid", slow_lookup)
        errors = []

        def build(solver):
            try:
                orchestrator.build("aidmodels", "face", solver)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=build, args=(s,)) for s in ("detector", "recognizer")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert runtime.calls["build_image"] == 2
        assert sorted(i.uid for i in store.images.list_all()) == [
            "aidmodels-face-detector", "aidmodels-face-recognizer",
        ]
        assert len(store.solvers.list_all()) == 2

    def test_remove_package_waits_for_inflight_build(self, orchestrator, store, runtime, package_dir):
        runtime.build_delay = 0.1
        builder = threading.Thread(target=orchestrator.build, args=("aidmodels", "face", "detector"))
        builder.start()
        deadline = time.monotonic() + 2
        while runtime.calls["build_image"] == 0 and time.monotonic() < deadline:
            time.sleep(0.005)

        with pytest.raises(InvalidStateTransition, match="package has images"):
            orchestrator.remove("package", "aidmodels/face")
        builder.join()

        assert package_dir.exists()
        assert store.images.find_by_uid("aidmodels-face-detector")

    def test_state_survives_new_orchestrator(self, orchestrator, store, runtime, models_dir, image):
        from aid_orchestrator.core.orchestrator import LifecycleOrchestrator

        container = orchestrator.create("img1", "9000")
        orchestrator.start(container.uid)

        restarted = LifecycleOrchestrator(store, runtime, models_dir=models_dir)
        with pytest.raises(InvalidStateTransition):
            restarted.start(container.uid)
        assert restarted.stop(container.uid).running is False


class TestBuild:

    def test_build_persists_image_and_solvers(self, orchestrator, store, runtime, package_dir):
        result = orchestrator.build("aidmodels", "face", "detector")

        assert result.image.uid == "aidmodels-face-detector"
        assert result.image.title == "aidmodels/face/detector"
        assert result.image.solver == "aidmodels/face/detector"
        assert result.log_id == "log-aidmodels-face-detector"
        assert store.images.find_by_uid("aidmodels-face-detector") == result.image
        assert {s.name for s in store.solvers.list_all()} == {"detector", "recognizer"}

        name, tag, dockerfile = runtime.history[-1]
        assert (name, tag) == ("build_image", "aidmodels-face-detector")
        assert dockerfile == str(package_dir / "docker_detector")
        assert (package_dir / "runner_detector.py").exists()
        assert (package_dir / "runner_recognizer.py").exists()

    def test_image_name_is_lowercased(self, orchestrator, package_dir):
        assert orchestrator.image_name("AIDModels", "Face", "Detector") == "aidmodels-face-detector"

    def test_existing_image_rejected_without_rebuild(self, orchestrator, runtime, package_dir):
        orchestrator.build("aidmodels", "face", "detector")
        with pytest.raises(InvalidStateTransition, match="already exists"):
            orchestrator.build("aidmodels", "face", "detector")
        assert runtime.calls["build_image"] == 1

    def test_rebuild_keeps_record(self, orchestrator, store, runtime, package_dir):
        first = orchestrator.build("aidmodels", "face", "detector").image
        second = orchestrator.build("aidmodels", "face", "detector", rebuild=True).image
        assert second == first
        assert runtime.calls["build_image"] == 2
        assert len(store.images.list_all()) == 1

    def test_user_dockerfile_is_not_overwritten(self, orchestrator, package_dir):
        (package_dir / "docker_detector").write_text("FROM scratch\n")
        orchestrator.build("aidmodels", "face", "detector")
        assert (package_dir / "docker_detector").read_text() == "FROM scratch\n"

    def test_unknown_solver(self, orchestrator, runtime, package_dir):
        with pytest.raises(NotFoundError, match="solver"):
            orchestrator.build("aidmodels", "face", "tracker")
        assert runtime.calls["build_image"] == 0

    def test_unknown_package(self, orchestrator):
        with pytest.raises(NotFoundError, match="package"):
            orchestrator.build("aidmodels", "missing", "detector")

    def test_malformed_solver_aborts_before_runtime_and_store(self, orchestrator, store, runtime, package_dir):
        (package_dir / "aid.toml").write_text(
            '[package]\nname = "face"\nvendor = "aidmodels"\n\n'
            '[[solvers]]\nname = "detector"\nclass = "pkgonly"\n'
        )
        with pytest.raises(MalformedDescriptor):
            orchestrator.build("aidmodels", "face", "detector")
        assert runtime.calls["build_image"] == 0
        assert store.images.list_all() == []
        assert store.solvers.list_all() == []
        assert not (package_dir / "runner_detector.py").exists()

    def test_build_failure_persists_nothing(self, orchestrator, store, runtime, package_dir):
        runtime.fail_on.add("build_image")
        with pytest.raises(RuntimeFailure):
            orchestrator.build("aidmodels", "face", "detector")
        assert store.images.list_all() == []
        assert store.solvers.list_all() == []

    def test_path_traversal_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.build("..", "face", "detector")


class TestRemoveImageAndPackage:

    def test_remove_image(self, orchestrator, store, runtime, image):
        orchestrator.remove("image", "img1")
        assert runtime.history[-1] == ("remove_image", "img1")
        assert store.images.list_all() == []

    def test_remove_image_with_containers_is_refused(self, orchestrator, store, runtime, image):
        container = orchestrator.create("img1", "9000")
        with pytest.raises(InvalidStateTransition, match=container.uid):
            orchestrator.remove("image", "img1")
        assert runtime.calls["remove_image"] == 0
        assert store.images.find_by_uid("img1") == image

    def test_remove_image_runtime_failure_keeps_record(self, orchestrator, store, runtime, image):
        runtime.fail_on.add("remove_image")
        with pytest.raises(RuntimeFailure):
            orchestrator.remove("image", "img1")
        assert store.images.find_by_uid("img1") == image

    def test_remove_package(self, orchestrator, store, package_dir):
        orchestrator.build("aidmodels", "face", "detector")
        with pytest.raises(InvalidStateTransition):
            orchestrator.remove("package", "aidmodels/face")

        orchestrator.remove("image", "aidmodels-face-detector")
        orchestrator.remove("package", "aidmodels/face")
        assert not package_dir.exists()
        assert store.solvers.list_all() == []

    def test_remove_missing_package(self, orchestrator, models_dir):
        with pytest.raises(NotFoundError):
            orchestrator.remove("package", "aidmodels/face")

    @pytest.mark.parametrize("identifier", ["face", "a/b/c"])
    def test_remove_package_needs_vendor_and_name(self, orchestrator, identifier):
        with pytest.raises(ValueError):
            orchestrator.remove("package", identifier)

    def test_remove_unknown_kind(self, orchestrator):
        with pytest.raises(ValueError, match="Unknown entity kind"):
            orchestrator.remove("volume", "x")


class TestQueriesAndInference:

    def test_list_packages(self, orchestrator, package_dir):
        assert orchestrator.list_packages() == [
            {"vendor": "aidmodels", "package": "face", "path": str(package_dir)}
        ]

    def test_list_packages_without_models_dir(self, store, runtime, tmp_path):
        from aid_orchestrator.core.orchestrator import LifecycleOrchestrator

        orch = LifecycleOrchestrator(store, runtime, models_dir=tmp_path / "absent")
        assert orch.list_packages() == []

    def test_dockerfile_round_trip(self, orchestrator, package_dir):
        with pytest.raises(NotFoundError):
            orchestrator.read_dockerfile("aidmodels", "face", "detector")
        orchestrator.write_dockerfile("aidmodels", "face", "detector", "FROM python:3.11\n")
        assert orchestrator.read_dockerfile("aidmodels", "face", "detector") == "FROM python:3.11\n"

    def test_package_meta(self, orchestrator, package_dir):
        meta = orchestrator.package_meta("aidmodels", "face")
        assert [s.name for s in meta.solvers] == ["detector", "recognizer"]
        assert meta.requirements == "numpy\n"
        assert meta.readme == ""

    def test_infer_requires_running_container(self, orchestrator, image):
        container = orchestrator.create("img1", "9000")
        with pytest.raises(InvalidStateTransition):
            orchestrator.infer(container.uid, {"text": "hi"})

    def test_infer_forwards_to_container_port(self, store, runtime, models_dir, image):
        from aid_orchestrator.core.orchestrator import LifecycleOrchestrator

        calls = []

        class RecordingInference:
            def infer(self, port, params):
                calls.append((port, params))
                return {"label": "face"}

        orch = LifecycleOrchestrator(store, runtime, inference=RecordingInference(), models_dir=models_dir)
        store.containers.create(Container(uid="abc", port="9000", image="img1", running=True))
        assert orch.infer("abc", {"text": "hi"}) == {"label": "face"}
        assert calls == [("9000", {"text": "hi"})]
