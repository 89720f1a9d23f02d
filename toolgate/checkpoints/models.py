"""Checkpoint and rollback result types."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Checkpoint:
    """A named, timestamped group of file snapshots."""

    name: str
    description: str
    file_snapshots: dict[str, str]  # path -> snapshot id
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    # Tie-breaker for checkpoints created within the same clock tick
    sequence: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "file_snapshots": dict(self.file_snapshots),
        }


@dataclass
class FileRollbackOutcome:
    """Result of restoring one file."""

    path: str
    snapshot_id: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "snapshot_id": self.snapshot_id,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class RollbackResult:
    """Outcome of a rollback; success only if every file succeeded."""

    success: bool
    checkpoint_id: str | None = None
    files: list[FileRollbackOutcome] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "checkpoint_id": self.checkpoint_id,
            "files": [f.to_dict() for f in self.files],
            "error": self.error,
        }


@dataclass
class PreviewFile:
    path: str
    snapshot_id: str
    current_size: int
    old_size: int
    will_delete: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "snapshot_id": self.snapshot_id,
            "current_size": self.current_size,
            "old_size": self.old_size,
            "will_delete": self.will_delete,
        }


@dataclass
class RollbackPreview:
    """Dry-run view of what a rollback would change."""

    files: list[PreviewFile] = field(default_factory=list)
    can_rollback: bool = True
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files],
            "can_rollback": self.can_rollback,
            "warnings": list(self.warnings),
        }
