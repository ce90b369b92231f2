"""Snapshot files — a point-in-time dump of the session and machine stores.

Layout::

    {
      "sessions": {"<session id>": {...session record...}, ...},
      "machines": {"<machine id>": {...machine record...}, ...}
    }

Either collection may also be a list of records, keyed by each record's id.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

from tasktree.engine.errors import MalformedInputError, SnapshotError
from tasktree.shared.models.machine import Machine
from tasktree.shared.models.session import Session

logger = logging.getLogger(__name__)

_Record = TypeVar("_Record", Session, Machine)


@dataclass
class Snapshot:
    sessions: dict[str, Session] = field(default_factory=dict)
    machines: dict[str, Machine] = field(default_factory=dict)

    def with_sessions(self, updated: Iterable[Session]) -> Snapshot:
        """Return a copy with *updated* sessions replacing those with the same id."""
        sessions = dict(self.sessions)
        for session in updated:
            sessions[session.id] = session
        return Snapshot(sessions=sessions, machines=dict(self.machines))

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": {sid: s.to_dict() for sid, s in sorted(self.sessions.items())},
            "machines": {mid: m.to_dict() for mid, m in sorted(self.machines.items())},
        }


def _parse_collection(
    path: Path,
    name: str,
    raw: Any,
    parse: Callable[[dict], _Record],
) -> dict[str, _Record]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        items = list(raw.items())
    elif isinstance(raw, list):
        items = [(None, record) for record in raw]
    else:
        raise SnapshotError(path, f"'{name}' must be an object or a list, got {type(raw).__name__}")

    parsed: dict[str, _Record] = {}
    for key, record in items:
        try:
            item = parse(record)
        except MalformedInputError as exc:
            raise SnapshotError(path, str(exc)) from exc
        except (TypeError, ValueError) as exc:
            raise SnapshotError(path, f"bad {name} record {key!r}: {exc}") from exc
        if key is not None and key != item.id:
            raise SnapshotError(path, f"{name} entry {key!r} holds record {item.id!r}")
        if item.id in parsed:
            raise SnapshotError(path, f"duplicate {name} id {item.id!r}")
        parsed[item.id] = item
    return parsed


def load_snapshot(path: str | Path) -> Snapshot:
    """Read a snapshot file.

    Raises:
        SnapshotError: If the file is missing, is not JSON, or does not
            hold ``sessions``/``machines`` collections of valid records.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SnapshotError(path, "file not found") from exc
    except OSError as exc:
        raise SnapshotError(path, str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(path, f"invalid JSON at line {exc.lineno}: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise SnapshotError(path, f"top level must be an object, got {type(data).__name__}")

    snapshot = Snapshot(
        sessions=_parse_collection(path, "sessions", data.get("sessions"), Session.from_dict),
        machines=_parse_collection(path, "machines", data.get("machines"), Machine.from_dict),
    )
    logger.info(
        "Loaded snapshot %s (%d sessions, %d machines)",
        path, len(snapshot.sessions), len(snapshot.machines),
    )
    return snapshot


def save_snapshot(path: str | Path, snapshot: Snapshot) -> None:
    """Atomically write *snapshot* to *path* (temp file + rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(snapshot.to_dict(), indent=2)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        raise SnapshotError(path, f"write failed: {exc}") from exc
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_path)
    logger.info("Saved snapshot %s", path)
