"""Data models for job management and sandbox provisioning."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SandboxConnection:
    """A provisioned, addressable sandbox endpoint.

    Reusable only while ``now < expires_at``.
    """
    slug: str
    host: str
    port: int
    token: str
    ttl_seconds: int
    cpu_limit: str
    memory_limit: str
    image: str
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["expires_at"] = self.expires_at.isoformat()
        return result


@dataclass
class Job:
    """Represents one requested coding task with status tracking."""
    job_id: str
    branch: str
    task_description: str
    repo_url: Optional[str] = None
    repo_slug: Optional[str] = None
    commit_hash: Optional[str] = None
    test_command: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    summary: Optional[str] = None
    changed_files: List[str] = field(default_factory=list)
    patch: str = ""
    error: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    sandbox_path: Optional[str] = None
    # Connection provisioned for repo_slug submissions.
    sandbox: Optional[SandboxConnection] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def log(self, message: str) -> None:
        """Append a human-readable trace line."""
        self.logs.append(message)

    def transition(self, status: JobStatus, *, error: Optional[str] = None) -> None:
        """Move the job to ``status``, enforcing monotonic lifecycle rules."""
        status = JobStatus(status)
        if status == JobStatus.PENDING and self.status != JobStatus.PENDING:
            raise ValueError(f"Job {self.job_id} cannot return to PENDING from {self.status.value}")
        if self.status.is_terminal:
            raise ValueError(f"Job {self.job_id} is already {self.status.value}")
        now = utc_now()
        self.status = status
        self.updated_at = now
        if status == JobStatus.RUNNING and self.started_at is None:
            self.started_at = now
        if status.is_terminal:
            self.finished_at = now
            if status != JobStatus.COMPLETED:
                self.error = error or self.error or "unknown error"

    def touch(self) -> None:
        self.updated_at = utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for JSON serialization."""
        result = {}
        for key, value in self.__dict__.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, JobStatus):
                result[key] = value.value
            elif isinstance(value, SandboxConnection):
                result[key] = value.to_dict()
            elif isinstance(value, list):
                result[key] = list(value)
            else:
                result[key] = value
        return result
