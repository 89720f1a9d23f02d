"""Sandboxed execution of approved tool calls.

Performs file reads, file writes and command execution after the
approval engine has let a call through. Policy constraints are checked
again here so the executor is safe to call directly.

Guarantees:
1. Every successful write has exactly one snapshot and one checkpoint,
   both created before the file is touched
2. A failed write removes its own snapshot and checkpoint
3. Commands never run through a shell and are killed on timeout
4. No exception crosses the public boundary; failures are ToolResults
"""

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Iterable, Mapping

from toolgate.audit.logger import OperationLogger
from toolgate.checkpoints.manager import CheckpointManager
from toolgate.checkpoints.models import Checkpoint
from toolgate.errors import (
    ErrorKind,
    ExecutionFailure,
    OperationTimeout,
    PolicyViolation,
    ResourceNotFound,
    ToolgateError,
    ValidationFailure,
)
from toolgate.guardrails.policies import PolicyStore, ToolPermissionConfig
from toolgate.tools.base import ToolResult
from toolgate.tools.path_security import PathValidator, validate_command
from toolgate.tools.snapshots import FileSnapshot, SnapshotStore, restore_file

logger = logging.getLogger(__name__)

READ_TOOL = "sandbox_read_file"
WRITE_TOOL = "sandbox_write_file"


class OperationExecutor:
    """Runs file and command operations inside the sandbox.

    Usage:
        executor = OperationExecutor(policies, checkpoints, workspace=Path("~/development"))
        result = await executor.write_file("notes.md", "# hi")
        await executor.rollback(result.data["snapshot_id"])

    The executor registers itself as the checkpoint manager's removal
    listener: a snapshot lives only as long as some checkpoint refers
    to it.
    """

    def __init__(
        self,
        policies: PolicyStore,
        checkpoints: CheckpointManager,
        workspace: Path,
        command_timeout: float = 60.0,
        command_cwd: Path | None = None,
        allowed_commands: Iterable[str] | None = None,
        operation_logger: OperationLogger | None = None,
    ):
        self.policies = policies
        self.checkpoints = checkpoints
        self.validator = PathValidator(workspace)
        self.command_timeout = command_timeout
        self.command_cwd = command_cwd
        self.allowed_commands = list(allowed_commands) if allowed_commands is not None else None
        self.operation_logger = operation_logger
        self.snapshots = SnapshotStore()
        checkpoints.on_removed = self.release_snapshots

    def _policy(self, tool: str) -> ToolPermissionConfig:
        config = self.policies.get(tool)
        if config is None:
            raise PolicyViolation(f"Unknown tool: {tool}")
        return config

    def _resolve(self, tool: str, path: str) -> tuple[Path, ToolPermissionConfig]:
        config = self._policy(tool)
        constraints = config.sandbox_constraints
        allowed = constraints.allowed_paths if constraints else None
        return self.validator.validate(path, allowed), config

    async def read_file(self, path: str) -> ToolResult:
        """Read a UTF-8 text file inside the read sandbox."""
        try:
            resolved, _ = self._resolve(READ_TOOL, path)
        except ToolgateError as e:
            logger.warning(f"Read rejected: {e}", extra={"tool": READ_TOOL})
            return ToolResult.from_error(e)

        try:
            content = resolved.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return ToolResult.failure(f"File not found: {path}", ErrorKind.NOT_FOUND)
        except IsADirectoryError:
            return ToolResult.failure(f"Not a file: {path}", ErrorKind.VALIDATION_FAILURE)
        except PermissionError as e:
            return ToolResult.failure(f"Permission denied: {e}", ErrorKind.PERMISSION_DENIED)
        except OSError as e:
            return ToolResult.failure(f"Read failed: {e}", ErrorKind.EXECUTION_FAILURE)

        return ToolResult(
            success=True,
            output=content,
            data={"path": str(resolved), "size": len(content.encode("utf-8"))},
        )

    async def write_file(self, path: str, content: str) -> ToolResult:
        """Write a file, snapshotting and checkpointing it first."""
        try:
            resolved, config = self._resolve(WRITE_TOOL, path)
            if not isinstance(content, str):
                raise ValidationFailure("Content must be a string")
            encoded = content.encode("utf-8")
            constraints = config.sandbox_constraints
            max_size = constraints.max_file_size if constraints else None
            if max_size is not None and len(encoded) > max_size:
                raise PolicyViolation(f"Content too large: {len(encoded)} bytes (max: {max_size})")
        except ToolgateError as e:
            logger.warning(f"Write rejected: {e}", extra={"tool": WRITE_TOOL})
            return ToolResult.from_error(e)

        try:
            snapshot = self.snapshots.add(FileSnapshot.capture(resolved))
        except OSError as e:
            return ToolResult.failure(f"Cannot snapshot {path}: {e}", ErrorKind.EXECUTION_FAILURE)

        checkpoint = self.checkpoints.create_auto(str(resolved), snapshot.id)

        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_bytes(encoded)
        except OSError as e:
            # Never leave a rollback target for a write that did not happen
            self.snapshots.pop(snapshot.id)
            self.checkpoints.delete(checkpoint.id)
            logger.error(f"Write to {resolved} failed: {e}", extra={"tool": WRITE_TOOL})
            kind = ErrorKind.PERMISSION_DENIED if isinstance(e, PermissionError) else ErrorKind.EXECUTION_FAILURE
            return ToolResult.failure(f"Write failed: {e}", kind)

        logger.info(
            f"Wrote {resolved} ({len(encoded)} bytes)",
            extra={"tool": WRITE_TOOL, "snapshot_id": snapshot.id, "checkpoint_id": checkpoint.id},
        )
        return ToolResult(
            success=True,
            output=f"File written: {resolved} ({len(encoded)} bytes)",
            data={
                "path": str(resolved),
                "size": len(encoded),
                "snapshot_id": snapshot.id,
                "checkpoint_id": checkpoint.id,
                "created": not snapshot.existed,
            },
        )

    async def execute_command(self, command: str) -> ToolResult:
        """Run a command directly, without a shell."""
        try:
            argv = validate_command(command, self.allowed_commands)
        except ToolgateError as e:
            return ToolResult.from_error(e)

        started = time.monotonic()
        try:
            stdout, stderr, returncode = await self._run(argv)
        except ToolgateError as e:
            return ToolResult.from_error(e)

        duration_ms = (time.monotonic() - started) * 1000
        stdout_str = stdout.decode("utf-8", errors="replace")
        stderr_str = stderr.decode("utf-8", errors="replace")

        # Combine output
        output = stdout_str
        if stderr_str:
            output += f"\n[stderr]\n{stderr_str}" if output else stderr_str

        success = returncode == 0
        logger.info(
            f"Command finished: {argv[0]} exit={returncode}",
            extra={"exit_code": returncode, "duration_ms": duration_ms},
        )
        return ToolResult(
            success=success,
            output=output.strip() or "(no output)",
            error=None if success else f"Exit code: {returncode}",
            error_kind=None if success else ErrorKind.EXECUTION_FAILURE,
            data={"exit_code": returncode, "stdout": stdout_str, "stderr": stderr_str},
        )

    async def _run(self, argv: list[str]) -> tuple[bytes, bytes, int]:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.command_cwd) if self.command_cwd else None,
                env={**os.environ},
            )
        except FileNotFoundError as e:
            raise ExecutionFailure(f"Command not found: {argv[0]}") from e
        except OSError as e:
            raise ExecutionFailure(f"Failed to start {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.command_timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Command killed after {self.command_timeout}s: {argv[0]}")
            raise OperationTimeout(f"Command timed out after {self.command_timeout}s")

        return stdout, stderr, process.returncode if process.returncode is not None else -1

    async def rollback(self, snapshot_id: str) -> ToolResult:
        """Restore the file a snapshot was taken of, then retire the snapshot.

        Every attempt is recorded in the operation log when one is attached.
        """
        snapshot = self.snapshots.get(snapshot_id)
        if snapshot is None:
            result = ToolResult.from_error(ResourceNotFound(f"Snapshot not found: {snapshot_id}"))
            self._log_rollback(snapshot_id, None, result)
            return result

        try:
            restore_file(snapshot)
        except OSError as e:
            logger.error(f"Rollback of {snapshot.path} failed: {e}")
            result = ToolResult.failure(f"Rollback failed: {e}", ErrorKind.EXECUTION_FAILURE)
            self._log_rollback(snapshot_id, snapshot.path, result)
            return result

        self.snapshots.pop(snapshot_id)
        action = "restored" if snapshot.existed else "deleted"
        logger.info(f"Rollback {action} {snapshot.path}", extra={"snapshot_id": snapshot_id})
        result = ToolResult(
            success=True,
            output=f"File {action}: {snapshot.path}",
            data={"path": snapshot.path, "snapshot_id": snapshot_id, "deleted": not snapshot.existed},
        )
        self._log_rollback(snapshot_id, snapshot.path, result)
        return result

    def _log_rollback(self, snapshot_id: str, path: str | None, result: ToolResult) -> None:
        if self.operation_logger is None:
            return
        message = result.output if result.success else result.error or "Rollback failed"
        self.operation_logger.log_snapshot_rollback(snapshot_id, path, result.success, message)

    def bind_snapshots(self, file_snapshots: Mapping[str, str]) -> dict[str, str]:
        """Check a path -> snapshot id map before it becomes a checkpoint.

        Each path must canonicalize to the file its snapshot was taken of,
        so a rollback can only ever touch files that were written through
        the sandbox.

        Returns:
            The same map keyed by canonical path

        Raises:
            ResourceNotFound: If a snapshot id is unknown
            ValidationFailure: If a path does not match its snapshot
        """
        bound: dict[str, str] = {}
        for path, snapshot_id in file_snapshots.items():
            snapshot = self.snapshots.get(snapshot_id)
            if snapshot is None:
                raise ResourceNotFound(f"Unknown snapshot: {snapshot_id}")
            if str(self.validator.canonicalize(path)) != snapshot.path:
                raise ValidationFailure(f"Snapshot {snapshot_id} was taken of {snapshot.path}, not {path}")
            bound[snapshot.path] = snapshot_id
        return bound

    def release_snapshots(self, removed: list[Checkpoint]) -> int:
        """Drop snapshots that no remaining checkpoint refers to.

        Returns:
            Number of snapshots released
        """
        live = self.checkpoints.referenced_snapshots()
        released = 0
        for checkpoint in removed:
            for snapshot_id in checkpoint.file_snapshots.values():
                if snapshot_id not in live and self.snapshots.pop(snapshot_id) is not None:
                    released += 1
        if released:
            logger.debug(f"Released {released} snapshots")
        return released

    def get_snapshot(self, snapshot_id: str) -> FileSnapshot | None:
        return self.snapshots.get(snapshot_id)

    def get_snapshots(self) -> list[FileSnapshot]:
        return self.snapshots.all()
