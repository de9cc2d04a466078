"""Shared fixtures and factories for nomad-deployer tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from nomad_deployer.models import BuildNotification


def make_task(name: str, image: Any = None, driver: str = "docker") -> dict[str, Any]:
    """Build the JSON of one Nomad task; ``image=None`` omits the key."""
    config: dict[str, Any] = {"ports": ["http"]}
    if image is not None:
        config["image"] = image
    return {"Name": name, "Driver": driver, "Config": config}


def make_job(
    job_id: str,
    groups: dict[str, list[dict[str, Any]]] | None = None,
    job_type: str = "service",
    namespace: str = "default",
) -> dict[str, Any]:
    """Build the JSON of a full Nomad job definition."""
    groups = groups or {}
    return {
        "ID": job_id,
        "Name": job_id,
        "Type": job_type,
        "Namespace": namespace,
        "JobModifyIndex": 42,
        "Datacenters": ["dc1"],
        "Meta": {"owner": "platform"},
        "TaskGroups": [
            {"Name": group, "Count": 2, "Tasks": copy.deepcopy(tasks)}
            for group, tasks in groups.items()
        ],
    }


def make_stub(job: dict[str, Any]) -> dict[str, Any]:
    """Build the ``GET /v1/jobs`` entry for a full job definition."""
    return {
        "ID": job["ID"],
        "Name": job["Name"],
        "Type": job["Type"],
        "Status": "running",
        "Namespace": job["Namespace"],
    }


@pytest.fixture()
def notification() -> BuildNotification:
    return BuildNotification(
        repository="acme/app",
        namespace="acme",
        name="app",
        docker_url="registry/app",
        build_id="b-123",
        docker_tags=("v42", "v41"),
    )


@pytest.fixture()
def task_factory():
    return make_task


@pytest.fixture()
def job_factory():
    return make_job


@pytest.fixture()
def stub_factory():
    return make_stub
