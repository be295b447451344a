"""Background housekeeping tasks run around each command."""

from .runner import TaskHandle, prune_logs, run_tasks

__all__ = ["TaskHandle", "prune_logs", "run_tasks"]
