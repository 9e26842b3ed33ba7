"""Execution manager: in-memory job registry with bounded asynchronous dispatch."""

import asyncio
import copy
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .exceptions import JobNotFoundError, JobValidationError
from .models import Job, JobStatus, utc_now
from .processor import SandboxJobProcessor
from .sandbox_provider import SandboxProvider
from .settings import JOB_RETENTION_SECONDS, MAX_PARALLEL_JOBS


def _clean(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


class ExecutionManager:
    """Manages concurrent execution of sandbox jobs.

    Jobs live only in memory. Each accepted job is launched as its own asyncio
    task, but at most ``max_parallel`` of them run at once; the rest wait in
    PENDING.

    Testability hooks:
    - processor / sandbox_provider can be injected (stub reasoning service, fixed ports)
    - clock drives retention so eviction can be tested without sleeping
    """

    def __init__(
        self,
        max_parallel: int = MAX_PARALLEL_JOBS,
        *,
        processor: Optional[SandboxJobProcessor] = None,
        sandbox_provider: Optional[SandboxProvider] = None,
        retention_seconds: Optional[float] = JOB_RETENTION_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.max_parallel = max_parallel
        self.processor = processor or SandboxJobProcessor()
        self.sandbox_provider = sandbox_provider
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._jobs: Dict[str, Job] = {}
        # Track asyncio tasks for launched jobs so tests can await completion deterministically
        self._tasks: Dict[str, asyncio.Task] = {}
        self._sem = asyncio.Semaphore(max_parallel)

    def submit(
        self,
        job_id: Optional[str],
        branch: Optional[str],
        task_description: Optional[str],
        *,
        repo_url: Optional[str] = None,
        repo_slug: Optional[str] = None,
        commit_hash: Optional[str] = None,
        test_command: Optional[str] = None,
    ) -> Tuple[Job, bool]:
        """Create and dispatch a job, or return the existing one for a known ``job_id``.

        Returns:
            ``(job, created)`` where ``created`` is False on an idempotent replay.

        Raises:
            JobValidationError: If job id, repository reference, branch or task is blank.
        """
        self.evict_expired()
        job_id = _clean(job_id)
        if job_id and job_id in self._jobs:
            logger.info(f"Job {job_id} already registered; returning existing record")
            return self._jobs[job_id], False

        branch = _clean(branch)
        task_description = _clean(task_description)
        repo_url = _clean(repo_url)
        repo_slug = _clean(repo_slug)
        missing = [
            name
            for name, value in (
                ("jobId", job_id),
                ("repoUrl", repo_url or repo_slug),
                ("branch", branch),
                ("taskDescription", task_description),
            )
            if not value
        ]
        if missing:
            raise JobValidationError(missing)

        job = Job(
            job_id=job_id,
            branch=branch,
            task_description=task_description,
            repo_url=repo_url,
            repo_slug=repo_slug,
            commit_hash=_clean(commit_hash),
            test_command=_clean(test_command),
        )
        if repo_slug and self.sandbox_provider is not None:
            job.sandbox = self.sandbox_provider.ensure(repo_slug)
        job.log("Job accepted")
        self._jobs[job_id] = job
        logger.info(f"Job {job_id} PENDING repo={repo_url or repo_slug} branch={branch}")
        self._tasks[job_id] = asyncio.create_task(self._launch_job(job))
        return job, True

    async def _launch_job(self, job: Job) -> None:
        async with self._sem:
            try:
                await self.processor.process(job)
            except asyncio.CancelledError:
                self._mark_failed(job, "Job was cancelled")
                raise
            except Exception as exc:
                logger.exception(f"Job {job.job_id} failed unexpectedly")
                self._mark_failed(job, str(exc) or type(exc).__name__)

    def _mark_failed(self, job: Job, message: str) -> None:
        if job.status.is_terminal:
            return
        job.log(f"Job failed: {message}")
        job.transition(JobStatus.FAILED, error=message)

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def lookup(self, job_id: str) -> Job:
        """Read-only snapshot of the current record.

        Raises:
            JobNotFoundError: If the id is unknown (or already evicted).
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return copy.deepcopy(job)

    def list_jobs(self) -> List[Job]:
        # Most recent first
        return sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)

    def evict_expired(self) -> List[str]:
        """Drop terminal jobs whose last update is older than the retention window."""
        if self.retention_seconds is None:
            return []
        cutoff = self._clock() - timedelta(seconds=self.retention_seconds)
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status.is_terminal and job.updated_at < cutoff
        ]
        for job_id in expired:
            self._jobs.pop(job_id, None)
            self._tasks.pop(job_id, None)
        if expired:
            logger.info(f"Evicted {len(expired)} expired job(s)")
        return expired

    async def wait_for(self, job_id: str, timeout: float = 5.0) -> Optional[Job]:
        """Await completion of a job or timeout.

        Returns the current Job object (may still be PENDING/RUNNING if timeout reached).
        """
        job = self.get_job(job_id)
        if not job:
            return None
        task = self._tasks.get(job_id)
        if not task:
            end = asyncio.get_running_loop().time() + timeout
            while asyncio.get_running_loop().time() < end and not job.status.is_terminal:
                await asyncio.sleep(0.05)
            return job
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.get_job(job_id)

    async def wait_for_all(self, timeout: float = 5.0) -> None:
        """Await completion (or timeout) of all known jobs."""
        waiters = [self.wait_for(job_id, timeout=timeout) for job_id in list(self._jobs.keys())]
        if waiters:
            await asyncio.gather(*waiters, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel jobs still in flight; they end up FAILED."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
