"""Tests for nomad_deployer.jobs: typed views over Nomad job JSON."""

from __future__ import annotations

import pytest

from nomad_deployer.jobs import Job, JobStub, Task


class TestJobStub:
    def test_from_api(self) -> None:
        stub = JobStub.from_api(
            {
                "ID": "web",
                "Name": "web",
                "Type": "service",
                "Status": "running",
                "Namespace": "prod",
            }
        )
        assert stub.id == "web"
        assert stub.namespace == "prod"
        assert stub.is_service is True

    @pytest.mark.parametrize("job_type", ["batch", "system", "sysbatch", ""])
    def test_non_service(self, job_type: str) -> None:
        assert JobStub.from_api({"ID": "x", "Type": job_type}).is_service is False

    def test_missing_namespace(self) -> None:
        assert JobStub.from_api({"ID": "x"}).namespace is None


class TestTask:
    def test_string_image(self) -> None:
        task = Task({"Name": "app", "Config": {"image": "registry/app:v1"}})
        assert task.image == "registry/app:v1"
        assert task.has_malformed_image is False

    def test_missing_image(self) -> None:
        task = Task({"Name": "app", "Driver": "exec", "Config": {"command": "/bin/true"}})
        assert task.image is None
        assert task.has_malformed_image is False

    @pytest.mark.parametrize("value", [42, None, ["registry/app"], {"name": "registry/app"}])
    def test_non_string_image_is_malformed(self, value: object) -> None:
        task = Task({"Name": "app", "Config": {"image": value}})
        assert task.image is None
        assert task.has_malformed_image is True

    def test_missing_config(self) -> None:
        task = Task({"Name": "app"})
        assert task.config == {}
        assert task.image is None

    def test_set_image_mutates_raw_mapping(self) -> None:
        raw = {"Name": "app", "Config": {"image": "registry/app:v1", "ports": ["http"]}}
        Task(raw).set_image("registry/app:v2")
        assert raw["Config"] == {"image": "registry/app:v2", "ports": ["http"]}

    def test_set_image_creates_config(self) -> None:
        raw: dict = {"Name": "app", "Config": None}
        Task(raw).set_image("registry/app:v2")
        assert raw["Config"] == {"image": "registry/app:v2"}


class TestJob:
    def test_requires_id(self) -> None:
        with pytest.raises(ValueError):
            Job({"Name": "nameless"})

    def test_rejects_non_mapping(self) -> None:
        with pytest.raises(ValueError):
            Job(["not", "a", "job"])  # type: ignore[arg-type]

    def test_properties(self, job_factory, task_factory) -> None:
        raw = job_factory("web", {"frontend": [task_factory("nginx", "nginx:1")]}, namespace="prod")
        job = Job(raw)
        assert job.id == "web"
        assert job.namespace == "prod"
        assert job.job_modify_index == 42
        assert [g.name for g in job.task_groups] == ["frontend"]

    def test_tasks_iterates_all_groups(self, job_factory, task_factory) -> None:
        raw = job_factory(
            "web",
            {
                "frontend": [task_factory("nginx", "nginx:1"), task_factory("sidecar", "envoy:1")],
                "backend": [task_factory("api", "registry/api:v1")],
            },
        )
        names = [(group.name, task.name) for group, task in Job(raw).tasks()]
        assert names == [("frontend", "nginx"), ("frontend", "sidecar"), ("backend", "api")]

    def test_job_without_groups(self) -> None:
        job = Job({"ID": "empty", "TaskGroups": None})
        assert list(job.tasks()) == []

    def test_to_api_returns_same_mapping(self, job_factory) -> None:
        raw = job_factory("web")
        assert Job(raw).to_api() is raw
