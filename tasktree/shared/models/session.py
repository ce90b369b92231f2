"""Session records as delivered by the storage/sync layer.

Records are read-only snapshots. Field names are snake_case here; the
storage layer's camelCase shape is accepted by ``from_dict`` and
produced by ``to_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from tasktree.engine.errors import MalformedInputError


def _freeze(data: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


class TaskSource(str, Enum):
    """Who named a task."""

    AUTO = "auto"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: Any) -> TaskSource:
        if value == cls.MANUAL.value or value is cls.MANUAL:
            return cls.MANUAL
        return cls.AUTO


@dataclass(frozen=True)
class TaskDescriptor:
    """Task annotation carried in a session's metadata."""
    id: str
    title: str
    source: TaskSource = TaskSource.AUTO
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "source": self.source.value,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskDescriptor:
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            source=TaskSource.parse(data.get("source")),
            updated_at=int(data.get("updatedAt") or 0),
        )


@dataclass(frozen=True)
class SessionSummary:
    text: str
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionSummary:
        return cls(
            text=str(data.get("text") or ""),
            updated_at=int(data.get("updatedAt") or 0),
        )


# Metadata keys that map onto typed fields; everything else lands in ``extra``.
_METADATA_KEYS = frozenset({
    "path", "host", "machineId", "task", "summary", "name", "flavor",
})


@dataclass(frozen=True)
class SessionMetadata:
    """Session metadata.

    Only ``path``, ``machine_id`` and ``task`` take part in grouping.
    ``extra`` holds daemon, sandbox and model state as opaque values.
    """
    path: str | None = None
    host: str | None = None
    machine_id: str | None = None
    task: TaskDescriptor | None = None
    summary: SessionSummary | None = None
    name: str | None = None
    flavor: str | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.extra, MappingProxyType):
            object.__setattr__(self, "extra", _freeze(self.extra))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        if self.path is not None:
            data["path"] = self.path
        if self.host is not None:
            data["host"] = self.host
        if self.machine_id is not None:
            data["machineId"] = self.machine_id
        if self.task is not None:
            data["task"] = self.task.to_dict()
        if self.summary is not None:
            data["summary"] = self.summary.to_dict()
        if self.name is not None:
            data["name"] = self.name
        if self.flavor is not None:
            data["flavor"] = self.flavor
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionMetadata:
        task = data.get("task")
        summary = data.get("summary")
        return cls(
            path=data.get("path"),
            host=data.get("host"),
            machine_id=data.get("machineId"),
            task=TaskDescriptor.from_dict(task) if isinstance(task, Mapping) else None,
            summary=SessionSummary.from_dict(summary) if isinstance(summary, Mapping) else None,
            name=data.get("name"),
            flavor=data.get("flavor"),
            extra={k: v for k, v in data.items() if k not in _METADATA_KEYS},
        )


@dataclass(frozen=True)
class Session:
    """A single coding-agent run."""

    id: str
    updated_at: int = 0
    seq: int = 0
    created_at: int = 0
    active: bool = False
    active_at: int = 0
    metadata: SessionMetadata | None = None
    metadata_version: int = 0
    agent_state: Any = None
    agent_state_version: int = 0
    thinking: bool = False
    thinking_at: int = 0
    presence: str | int = 0

    @property
    def task(self) -> TaskDescriptor | None:
        return self.metadata.task if self.metadata else None

    @property
    def machine_id(self) -> str | None:
        return self.metadata.machine_id if self.metadata else None

    @property
    def path(self) -> str | None:
        return self.metadata.path if self.metadata else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "seq": self.seq,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "active": self.active,
            "activeAt": self.active_at,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "metadataVersion": self.metadata_version,
            "agentState": self.agent_state,
            "agentStateVersion": self.agent_state_version,
            "thinking": self.thinking,
            "thinkingAt": self.thinking_at,
            "presence": self.presence,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Session:
        """Build a session from a storage record.

        Raises:
            MalformedInputError: If *data* is not a mapping or has no id.
        """
        if not isinstance(data, Mapping):
            raise MalformedInputError("session", None, f"expected an object, got {type(data).__name__}")
        session_id = data.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise MalformedInputError("session", session_id, "missing string id")
        metadata = data.get("metadata")
        return cls(
            id=session_id,
            seq=int(data.get("seq") or 0),
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
            active=bool(data.get("active", False)),
            active_at=int(data.get("activeAt") or 0),
            metadata=SessionMetadata.from_dict(metadata) if isinstance(metadata, Mapping) else None,
            metadata_version=int(data.get("metadataVersion") or 0),
            agent_state=data.get("agentState"),
            agent_state_version=int(data.get("agentStateVersion") or 0),
            thinking=bool(data.get("thinking", False)),
            thinking_at=int(data.get("thinkingAt") or 0),
            presence=data.get("presence", 0),
        )
