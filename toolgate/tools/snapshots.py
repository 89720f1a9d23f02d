"""Pre-mutation file snapshots.

A snapshot records a file's bytes before a write so the write can be
undone. A file that did not exist is recorded with ``existed=False``;
restoring such a snapshot deletes the file.
"""

import hashlib
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _new_snapshot_id() -> str:
    return f"snap-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class FileSnapshot:
    """Immutable capture of a file's prior content."""

    path: str
    content: bytes
    existed: bool
    hash: str
    size: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=_new_snapshot_id)

    @classmethod
    def capture(cls, path: Path) -> "FileSnapshot":
        """Read the current state of ``path``.

        Raises:
            OSError: If the file exists but cannot be read
        """
        if path.is_file():
            content = path.read_bytes()
            existed = True
        else:
            content = b""
            existed = False
        return cls(
            path=str(path),
            content=content,
            existed=existed,
            hash=hashlib.sha256(content).hexdigest(),
            size=len(content),
        )

    def to_dict(self) -> dict[str, Any]:
        """Metadata only; content is never serialized."""
        return {
            "id": self.id,
            "path": self.path,
            "existed": self.existed,
            "hash": self.hash,
            "size": self.size,
            "timestamp": self.timestamp.isoformat(),
        }


def restore_file(snapshot: FileSnapshot) -> None:
    """Put the snapshotted file back the way the snapshot saw it.

    Raises:
        OSError: If the file cannot be written or removed
    """
    target = Path(snapshot.path)
    if not snapshot.existed:
        target.unlink(missing_ok=True)
        logger.debug(f"Removed {target} (absent before snapshot {snapshot.id})")
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(snapshot.content)
    logger.debug(f"Restored {target} from snapshot {snapshot.id} ({snapshot.size} bytes)")


class SnapshotStore:
    """Thread-safe in-memory snapshot table."""

    def __init__(self) -> None:
        self._snapshots: dict[str, FileSnapshot] = {}
        self._lock = threading.RLock()

    def add(self, snapshot: FileSnapshot) -> FileSnapshot:
        with self._lock:
            self._snapshots[snapshot.id] = snapshot
        return snapshot

    def get(self, snapshot_id: str) -> FileSnapshot | None:
        with self._lock:
            return self._snapshots.get(snapshot_id)

    def pop(self, snapshot_id: str) -> FileSnapshot | None:
        with self._lock:
            return self._snapshots.pop(snapshot_id, None)

    def all(self) -> list[FileSnapshot]:
        """All live snapshots, oldest first."""
        with self._lock:
            return sorted(self._snapshots.values(), key=lambda s: s.timestamp)

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def __contains__(self, snapshot_id: object) -> bool:
        with self._lock:
            return snapshot_id in self._snapshots
