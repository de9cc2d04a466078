"""Build notification payloads received from the image registry.

All models are frozen dataclasses with to_dict/from_dict for serialisation.
Decoding is tolerant of missing keys (they take zero values) and of unknown
keys. A field carrying the wrong JSON type also takes its zero value and is
reported in the ``errors`` list, so the well-typed fields of a payload
survive a bad one elsewhere.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


class NotificationDecodeError(ValueError):
    """Raised when a request body is not a valid build notification."""


def _type_error(errors: list[str] | None, path: str, expected: str, value: Any) -> None:
    message = f"{path} must be {expected}, got {type(value).__name__}"
    if errors is None:
        raise NotificationDecodeError(message)
    errors.append(message)


def _str(data: dict[str, Any], key: str, errors: list[str] | None, prefix: str = "") -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        _type_error(errors, prefix + key, "a string", value)
        return ""
    return value


def _int(data: dict[str, Any], key: str, errors: list[str] | None, prefix: str = "") -> int:
    value = data.get(key)
    if value is None:
        return 0
    # bool is an int subclass but never a valid timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        _type_error(errors, prefix + key, "an integer", value)
        return 0
    return value


def _obj(
    data: dict[str, Any], key: str, errors: list[str] | None, prefix: str = ""
) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        _type_error(errors, prefix + key, "an object", value)
        return {}
    return value


def _str_list(
    data: dict[str, Any], key: str, errors: list[str] | None, prefix: str = ""
) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    # A list with a bad element is dropped whole; keeping the rest would
    # shift which tag is first.
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        _type_error(errors, prefix + key, "a list of strings", value)
        return ()
    return tuple(value)

# ------------------------------------------------------------------
# Trigger metadata
# ------------------------------------------------------------------


@dataclass(frozen=True)
class Person:
    """Author or committer of the commit that triggered the build."""

    username: str = ""
    url: str = ""
    avatar_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username, "url": self.url, "avatar_url": self.avatar_url}

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], errors: list[str] | None = None, prefix: str = ""
    ) -> Person:
        return cls(
            username=_str(data, "username", errors, prefix),
            url=_str(data, "url", errors, prefix),
            avatar_url=_str(data, "avatar_url", errors, prefix),
        )


@dataclass(frozen=True)
class CommitInfo:
    url: str = ""
    message: str = ""
    date: int = 0  # unix seconds
    author: Person = field(default_factory=Person)
    committer: Person = field(default_factory=Person)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "message": self.message,
            "date": self.date,
            "author": self.author.to_dict(),
            "committer": self.committer.to_dict(),
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], errors: list[str] | None = None, prefix: str = ""
    ) -> CommitInfo:
        return cls(
            url=_str(data, "url", errors, prefix),
            message=_str(data, "message", errors, prefix),
            date=_int(data, "date", errors, prefix),
            author=Person.from_dict(
                _obj(data, "author", errors, prefix), errors, f"{prefix}author."
            ),
            committer=Person.from_dict(
                _obj(data, "committer", errors, prefix), errors, f"{prefix}committer."
            ),
        )


@dataclass(frozen=True)
class TriggerMetadata:
    """Source-control context of the build trigger."""

    default_branch: str = ""
    ref: str = ""
    commit: str = ""
    commit_info: CommitInfo = field(default_factory=CommitInfo)

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_branch": self.default_branch,
            "ref": self.ref,
            "commit": self.commit,
            "commit_info": self.commit_info.to_dict(),
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], errors: list[str] | None = None, prefix: str = ""
    ) -> TriggerMetadata:
        return cls(
            default_branch=_str(data, "default_branch", errors, prefix),
            ref=_str(data, "ref", errors, prefix),
            commit=_str(data, "commit", errors, prefix),
            commit_info=CommitInfo.from_dict(
                _obj(data, "commit_info", errors, prefix), errors, f"{prefix}commit_info."
            ),
        )


# ------------------------------------------------------------------
# Build notification
# ------------------------------------------------------------------


@dataclass(frozen=True)
class BuildNotification:
    """One "build succeeded" event.

    ``docker_url`` is the image path without a tag; ``docker_tags`` is
    ordered and its first element is the tag that gets deployed.
    """

    repository: str = ""
    namespace: str = ""
    name: str = ""
    docker_url: str = ""
    homepage: str = ""
    visibility: str = ""
    build_id: str = ""
    docker_tags: tuple[str, ...] = ()
    trigger_kind: str = ""
    trigger_id: str = ""
    trigger_metadata: TriggerMetadata = field(default_factory=TriggerMetadata)

    @property
    def deploy_tag(self) -> str | None:
        return self.docker_tags[0] if self.docker_tags else None

    @property
    def target_image(self) -> str | None:
        """Image reference tasks are rewritten to, or None if incomplete."""
        if not self.docker_url or not self.deploy_tag:
            return None
        return f"{self.docker_url}:{self.deploy_tag}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository,
            "namespace": self.namespace,
            "name": self.name,
            "docker_url": self.docker_url,
            "homepage": self.homepage,
            "visibility": self.visibility,
            "build_id": self.build_id,
            "docker_tags": list(self.docker_tags),
            "trigger_kind": self.trigger_kind,
            "trigger_id": self.trigger_id,
            "trigger_metadata": self.trigger_metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any, errors: list[str] | None = None) -> BuildNotification:
        """Decode a JSON object.

        Without ``errors`` the first wrongly typed field raises
        NotificationDecodeError. With a list, each type error is appended to
        it and the offending field takes its zero value.
        """
        if not isinstance(data, dict):
            _type_error(errors, "notification", "a JSON object", data)
            return cls()
        return cls(
            repository=_str(data, "repository", errors),
            namespace=_str(data, "namespace", errors),
            name=_str(data, "name", errors),
            docker_url=_str(data, "docker_url", errors),
            homepage=_str(data, "homepage", errors),
            visibility=_str(data, "visibility", errors),
            build_id=_str(data, "build_id", errors),
            docker_tags=_str_list(data, "docker_tags", errors),
            trigger_kind=_str(data, "trigger_kind", errors),
            trigger_id=_str(data, "trigger_id", errors),
            trigger_metadata=TriggerMetadata.from_dict(
                _obj(data, "trigger_metadata", errors), errors, "trigger_metadata."
            ),
        )


def _load_json(raw: bytes | str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise NotificationDecodeError(f"invalid JSON: {exc}") from exc


def decode_notification(raw: bytes | str) -> BuildNotification:
    """Decode a JSON request body, rejecting any wrongly typed field."""
    return BuildNotification.from_dict(_load_json(raw))


def decode_partial_notification(raw: bytes | str) -> tuple[BuildNotification, list[str]]:
    """Decode a JSON request body, keeping every field that decoded.

    Returns the notification and the list of decode errors. A body that is
    not JSON, or not a JSON object, yields a zero-valued notification.
    """
    errors: list[str] = []
    try:
        data = _load_json(raw)
    except NotificationDecodeError as exc:
        return BuildNotification(), [str(exc)]
    return BuildNotification.from_dict(data, errors), errors
