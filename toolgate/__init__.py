"""Toolgate: policy-gated execution of AI agent tool calls.

Provides:
- Approval of tool calls against per-tool policies, remembered choices
  and human confirmation
- Sandboxed file reads, file writes and command execution
- Automatic checkpoints before every write, with rollback
- A bounded, subscribable audit log
"""

__version__ = "0.1.0"
