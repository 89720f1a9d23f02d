"""Checkpoint lifecycle and retention.

Every mutating write gets an automatic single-file checkpoint; callers
can also group several snapshots into a manual checkpoint. Retention
(max age, then max count) runs after every create, so the limits hold
whenever a create call returns.
"""

import itertools
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import PurePath
from typing import Callable, Mapping

from toolgate.checkpoints.models import Checkpoint

logger = logging.getLogger(__name__)

AUTO_NAME_FORMAT = "checkpoint-%Y%m%d-%H%M%S"

Clock = Callable[[], datetime]
RemovalListener = Callable[[list[Checkpoint]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckpointManager:
    """Owns the checkpoint table.

    Usage:
        manager = CheckpointManager(max_checkpoints=50, max_age_days=7)
        checkpoint = manager.create_auto("/proj/out.txt", snapshot.id)
        manager.list()  # newest first

    ``on_removed`` is called with every batch of checkpoints that
    retention prunes or ``delete`` removes. It runs with the table lock
    held, so it may query the manager but sees the table without them.
    """

    def __init__(
        self,
        max_checkpoints: int = 50,
        max_age_days: float = 7,
        clock: Clock | None = None,
        on_removed: RemovalListener | None = None,
    ):
        if max_checkpoints < 1:
            raise ValueError("max_checkpoints must be at least 1")
        self.max_checkpoints = max_checkpoints
        self.max_age = timedelta(days=max_age_days)
        self.on_removed = on_removed
        self._clock = clock or _utcnow
        self._checkpoints: dict[str, Checkpoint] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def create_auto(self, file_path: str, snapshot_id: str) -> Checkpoint:
        """Create the checkpoint that accompanies a single file write."""
        now = self._clock()
        name = now.astimezone().strftime(AUTO_NAME_FORMAT)
        description = f"Auto: Write {PurePath(file_path).name or file_path}"
        return self._add(name, description, {file_path: snapshot_id}, now)

    def create_manual(
        self,
        name: str,
        description: str,
        file_snapshots: Mapping[str, str],
    ) -> Checkpoint:
        """Create a checkpoint covering several files."""
        return self._add(name, description, dict(file_snapshots), self._clock())

    def _add(
        self,
        name: str,
        description: str,
        file_snapshots: dict[str, str],
        timestamp: datetime,
    ) -> Checkpoint:
        with self._lock:
            checkpoint = Checkpoint(
                name=name,
                description=description,
                file_snapshots=file_snapshots,
                timestamp=timestamp,
                sequence=next(self._sequence),
            )
            self._checkpoints[checkpoint.id] = checkpoint
            pruned = self._apply_retention()
            self._notify_removed(pruned)

        logger.info(
            f"Checkpoint created: {checkpoint.name} ({len(file_snapshots)} files)",
            extra={"checkpoint_id": checkpoint.id},
        )
        if pruned:
            logger.debug(f"Retention pruned {len(pruned)} checkpoints")
        return checkpoint

    def _apply_retention(self) -> list[Checkpoint]:
        """Drop expired checkpoints, then the oldest beyond the count limit."""
        now = self._clock()
        expired = [cp for cp in self._checkpoints.values() if now - cp.timestamp > self.max_age]
        for cp in expired:
            del self._checkpoints[cp.id]

        excess = len(self._checkpoints) - self.max_checkpoints
        overflow: list[Checkpoint] = []
        if excess > 0:
            oldest_first = sorted(self._checkpoints.values(), key=lambda cp: (cp.timestamp, cp.sequence))
            overflow = oldest_first[:excess]
            for cp in overflow:
                del self._checkpoints[cp.id]

        return expired + overflow

    def _notify_removed(self, removed: list[Checkpoint]) -> None:
        if removed and self.on_removed is not None:
            self.on_removed(removed)

    def referenced_snapshots(self) -> set[str]:
        """Snapshot ids used by any live checkpoint."""
        with self._lock:
            return {sid for cp in self._checkpoints.values() for sid in cp.file_snapshots.values()}

    def list(self) -> list[Checkpoint]:
        """All checkpoints, newest first."""
        with self._lock:
            return sorted(
                self._checkpoints.values(),
                key=lambda cp: (cp.timestamp, cp.sequence),
                reverse=True,
            )

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        with self._lock:
            return self._checkpoints.get(checkpoint_id)

    def delete(self, checkpoint_id: str) -> bool:
        with self._lock:
            removed = self._checkpoints.pop(checkpoint_id, None)
            if removed:
                self._notify_removed([removed])
        if removed:
            logger.info(f"Checkpoint deleted: {removed.name}", extra={"checkpoint_id": checkpoint_id})
        return removed is not None

    def get_snapshots_since(self, timestamp: datetime) -> dict[str, str]:
        """Merge path -> snapshot maps of checkpoints at or after ``timestamp``.

        Later checkpoints win when they touch the same path.
        """
        merged: dict[str, str] = {}
        with self._lock:
            ordered = sorted(self._checkpoints.values(), key=lambda cp: (cp.timestamp, cp.sequence))
        for checkpoint in ordered:
            if checkpoint.timestamp >= timestamp:
                merged.update(checkpoint.file_snapshots)
        return merged

    def __len__(self) -> int:
        with self._lock:
            return len(self._checkpoints)
