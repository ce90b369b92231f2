"""Machine records — host environments that sessions run on."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from tasktree.engine.errors import MalformedInputError

_METADATA_KEYS = frozenset({"host", "platform", "displayName", "homeDir"})


@dataclass(frozen=True)
class MachineMetadata:
    host: str | None = None
    platform: str | None = None
    display_name: str | None = None
    home_dir: str | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.extra, MappingProxyType):
            object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        for key, value in (
            ("host", self.host),
            ("platform", self.platform),
            ("displayName", self.display_name),
            ("homeDir", self.home_dir),
        ):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MachineMetadata:
        return cls(
            host=data.get("host"),
            platform=data.get("platform"),
            display_name=data.get("displayName"),
            home_dir=data.get("homeDir"),
            extra={k: v for k, v in data.items() if k not in _METADATA_KEYS},
        )


@dataclass(frozen=True)
class Machine:
    """A host a session can run on. ``daemon_state`` is opaque."""

    id: str
    seq: int = 0
    created_at: int = 0
    updated_at: int = 0
    active: bool = False
    active_at: int = 0
    metadata: MachineMetadata | None = None
    metadata_version: int = 0
    daemon_state: Any = None
    daemon_state_version: int = 0

    @property
    def display_label(self) -> str:
        if self.metadata:
            if self.metadata.display_name:
                return self.metadata.display_name
            if self.metadata.host:
                return self.metadata.host
        return self.id

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
            "daemonState": self.daemon_state,
            "daemonStateVersion": self.daemon_state_version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Machine:
        """Build a machine from a storage record.

        Raises:
            MalformedInputError: If *data* is not a mapping or has no id.
        """
        if not isinstance(data, Mapping):
            raise MalformedInputError("machine", None, f"expected an object, got {type(data).__name__}")
        machine_id = data.get("id")
        if not isinstance(machine_id, str) or not machine_id:
            raise MalformedInputError("machine", machine_id, "missing string id")
        metadata = data.get("metadata")
        return cls(
            id=machine_id,
            seq=int(data.get("seq") or 0),
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
            active=bool(data.get("active", False)),
            active_at=int(data.get("activeAt") or 0),
            metadata=MachineMetadata.from_dict(metadata) if isinstance(metadata, Mapping) else None,
            metadata_version=int(data.get("metadataVersion") or 0),
            daemon_state=data.get("daemonState"),
            daemon_state_version=int(data.get("daemonStateVersion") or 0),
        )
