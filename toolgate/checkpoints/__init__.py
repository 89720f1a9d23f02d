"""File checkpoints and retention. Rollback lives in ``toolgate.checkpoints.rollback``."""

from toolgate.checkpoints.models import Checkpoint, RollbackPreview, RollbackResult
from toolgate.checkpoints.manager import CheckpointManager

__all__ = ["Checkpoint", "RollbackPreview", "RollbackResult", "CheckpointManager"]
