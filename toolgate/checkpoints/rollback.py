"""Restore files to the state recorded by a checkpoint.

A multi-file rollback restores every file it can and reports per-file
outcomes; files already restored stay restored if a later one fails.
Snapshots are consumed by a successful restore, so the same snapshot
cannot be rolled back twice.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from toolgate.audit.logger import OperationLogger
from toolgate.checkpoints.manager import CheckpointManager
from toolgate.checkpoints.models import (
    FileRollbackOutcome,
    PreviewFile,
    RollbackPreview,
    RollbackResult,
)
from toolgate.tools.executor import OperationExecutor
from toolgate.tools.snapshots import restore_file

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _file_failure(path: str, snapshot_id: str, error: str) -> RollbackResult:
    return RollbackResult(
        success=False,
        error=error,
        files=[FileRollbackOutcome(path=path, snapshot_id=snapshot_id, success=False, error=error)],
    )


class RollbackEngine:
    """Rolls the filesystem back to a checkpoint."""

    def __init__(
        self,
        checkpoints: CheckpointManager,
        executor: OperationExecutor,
        operation_logger: OperationLogger | None = None,
    ):
        self.checkpoints = checkpoints
        self.executor = executor
        self.operation_logger = operation_logger

    async def rollback_to(self, checkpoint_id: str) -> RollbackResult:
        """Restore every file in a checkpoint, newest snapshot first."""
        logger.info(f"Rolling back to checkpoint {checkpoint_id}", extra={"checkpoint_id": checkpoint_id})
        checkpoint = self.checkpoints.get(checkpoint_id)
        if checkpoint is None:
            return RollbackResult(success=False, checkpoint_id=checkpoint_id, error=f"Checkpoint not found: {checkpoint_id}")

        def snapshot_time(item: tuple[str, str]) -> datetime:
            snapshot = self.executor.get_snapshot(item[1])
            return snapshot.timestamp if snapshot else _EPOCH

        ordered = sorted(checkpoint.file_snapshots.items(), key=snapshot_time, reverse=True)

        files: list[FileRollbackOutcome] = []
        for path, snapshot_id in ordered:
            result = await self.rollback_file(path, snapshot_id)
            files.extend(result.files)

        success = all(f.success for f in files)
        failed = [f for f in files if not f.success]
        message = (
            f"Rolled back {len(files)} files to {checkpoint.name}"
            if success
            else f"Partial rollback to {checkpoint.name}: {len(failed)} of {len(files)} files failed"
        )
        if success:
            logger.info(message, extra={"checkpoint_id": checkpoint_id})
        else:
            logger.warning(message, extra={"checkpoint_id": checkpoint_id})

        if self.operation_logger:
            self.operation_logger.log_rollback(checkpoint_id, success, [f.to_dict() for f in files], message)

        return RollbackResult(
            success=success,
            checkpoint_id=checkpoint_id,
            files=files,
            error=None if success else message,
        )

    async def rollback_file(self, path: str, snapshot_id: str) -> RollbackResult:
        """Restore one file from a snapshot.

        ``path`` must name the file the snapshot was taken of; the
        snapshot is never written anywhere else.
        """
        snapshot = self.executor.get_snapshot(snapshot_id)
        if snapshot is None:
            return _file_failure(path, snapshot_id, f"Snapshot not found: {snapshot_id}")

        if os.path.realpath(path) != snapshot.path:
            logger.warning(
                f"Refusing rollback of {path}: snapshot belongs to {snapshot.path}",
                extra={"snapshot_id": snapshot_id},
            )
            return _file_failure(path, snapshot_id, f"Snapshot {snapshot_id} was taken of {snapshot.path}, not {path}")

        try:
            restore_file(snapshot)
        except OSError as e:
            logger.error(f"Rollback of {path} failed: {e}")
            return _file_failure(path, snapshot_id, f"Rollback failed: {e}")

        self.executor.snapshots.pop(snapshot_id)
        return RollbackResult(
            success=True,
            files=[FileRollbackOutcome(path=path, snapshot_id=snapshot_id, success=True)],
        )

    def preview_rollback(self, checkpoint_id: str) -> RollbackPreview:
        """Describe what ``rollback_to`` would do without touching anything."""
        checkpoint = self.checkpoints.get(checkpoint_id)
        if checkpoint is None:
            return RollbackPreview(can_rollback=False, warnings=[f"Checkpoint not found: {checkpoint_id}"])

        preview = RollbackPreview()
        for path, snapshot_id in checkpoint.file_snapshots.items():
            snapshot = self.executor.get_snapshot(snapshot_id)
            if snapshot is None:
                preview.warnings.append(f"Snapshot not found for {path}")
                preview.can_rollback = False
                continue
            if os.path.realpath(path) != snapshot.path:
                preview.warnings.append(f"Snapshot for {path} was taken of {snapshot.path}")
                preview.can_rollback = False
                continue

            current = Path(path)
            try:
                current_size = current.stat().st_size if current.is_file() else 0
            except OSError:
                current_size = 0

            preview.files.append(PreviewFile(
                path=path,
                snapshot_id=snapshot_id,
                current_size=current_size,
                old_size=snapshot.size,
                will_delete=not snapshot.existed,
            ))

        for warning in preview.warnings:
            logger.warning(f"Rollback preview: {warning}", extra={"checkpoint_id": checkpoint_id})
        return preview
