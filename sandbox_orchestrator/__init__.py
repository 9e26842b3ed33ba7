"""Sandbox orchestrator: runs coding tasks against cloned repositories in isolated workspaces."""

from .manager import ExecutionManager
from .models import Job, JobStatus, SandboxConnection
from .sandbox_provider import SandboxProvider

__all__ = [
    "ExecutionManager",
    "Job",
    "JobStatus",
    "SandboxConnection",
    "SandboxProvider",
]
