"""Typed views over Nomad job JSON.

The views wrap the mapping returned by the Nomad API and mutate it in
place, so a job is always resubmitted with every field it was read with,
including the ones this package knows nothing about.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from nomad_deployer.constants import IMAGE_CONFIG_KEY, JOB_TYPE_SERVICE


@dataclass(frozen=True)
class JobStub:
    """Entry of the ``GET /v1/jobs`` listing."""

    id: str
    name: str = ""
    type: str = ""
    status: str = ""
    namespace: str | None = None

    @property
    def is_service(self) -> bool:
        return self.type == JOB_TYPE_SERVICE

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> JobStub:
        return cls(
            id=str(data["ID"]),
            name=str(data.get("Name") or ""),
            type=str(data.get("Type") or ""),
            status=str(data.get("Status") or ""),
            namespace=data.get("Namespace") or None,
        )


class Task:
    """A single task inside a task group."""

    def __init__(self, raw: dict[str, Any]) -> None:
        self._raw = raw

    @property
    def name(self) -> str:
        return str(self._raw.get("Name") or "")

    @property
    def driver(self) -> str:
        return str(self._raw.get("Driver") or "")

    @property
    def config(self) -> dict[str, Any]:
        config = self._raw.get("Config")
        return config if isinstance(config, dict) else {}

    @property
    def image(self) -> str | None:
        """The configured image, or None when absent or not a string."""
        value = self.config.get(IMAGE_CONFIG_KEY)
        return value if isinstance(value, str) else None

    @property
    def has_malformed_image(self) -> bool:
        config = self.config
        return IMAGE_CONFIG_KEY in config and not isinstance(config[IMAGE_CONFIG_KEY], str)

    def set_image(self, image: str) -> None:
        config = self._raw.get("Config")
        if not isinstance(config, dict):
            config = {}
            self._raw["Config"] = config
        config[IMAGE_CONFIG_KEY] = image


class TaskGroup:
    def __init__(self, raw: dict[str, Any]) -> None:
        self._raw = raw

    @property
    def name(self) -> str:
        return str(self._raw.get("Name") or "")

    @property
    def tasks(self) -> list[Task]:
        return [Task(t) for t in self._raw.get("Tasks") or [] if isinstance(t, dict)]


class Job:
    """Full job definition as returned by ``GET /v1/job/:id``."""

    def __init__(self, raw: dict[str, Any]) -> None:
        if not isinstance(raw, dict) or not raw.get("ID"):
            raise ValueError("job definition must be an object with an ID")
        self._raw = raw

    @property
    def id(self) -> str:
        return str(self._raw["ID"])

    @property
    def name(self) -> str:
        return str(self._raw.get("Name") or self.id)

    @property
    def type(self) -> str:
        return str(self._raw.get("Type") or "")

    @property
    def namespace(self) -> str | None:
        return self._raw.get("Namespace") or None

    @property
    def job_modify_index(self) -> int:
        return int(self._raw.get("JobModifyIndex") or 0)

    @property
    def task_groups(self) -> list[TaskGroup]:
        return [TaskGroup(g) for g in self._raw.get("TaskGroups") or [] if isinstance(g, dict)]

    def tasks(self) -> Iterator[tuple[TaskGroup, Task]]:
        for group in self.task_groups:
            for task in group.tasks:
                yield group, task

    def to_api(self) -> dict[str, Any]:
        return self._raw
