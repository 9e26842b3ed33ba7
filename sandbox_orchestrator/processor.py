"""Runs a single job end to end: workspace, clone, agent loop, diff, cleanup."""

import asyncio
from typing import Optional

from loguru import logger

from .agent_loop import AgentLoop
from .changes import collect_changed_files, generate_patch
from .exceptions import (
    ExternalServiceError,
    JobTimeoutError,
    PathSecurityError,
    SourceControlError,
)
from .models import Job, JobStatus
from .reasoning_client import ReasoningClient
from .settings import JOB_TIMEOUT
from .workspace import WorkspaceManager

FATAL_ERRORS = (PathSecurityError, ExternalServiceError, SourceControlError, OSError)


class SandboxJobProcessor:
    """Owns a job while it runs; the only writer of its mutable state."""

    def __init__(
        self,
        client: Optional[ReasoningClient] = None,
        *,
        workspace_manager: Optional[WorkspaceManager] = None,
        agent_loop: Optional[AgentLoop] = None,
        job_timeout: Optional[float] = JOB_TIMEOUT,
    ):
        if agent_loop is None:
            agent_loop = AgentLoop(client if client is not None else ReasoningClient())
        self.agent_loop = agent_loop
        self.client = agent_loop.client
        self.workspaces = workspace_manager or WorkspaceManager()
        self.job_timeout = job_timeout

    async def process(self, job: Job) -> None:
        job.transition(JobStatus.RUNNING)
        job.log("Job started")
        logger.info(f"Job {job.job_id} RUNNING")
        workspace = None
        try:
            workspace = await self.workspaces.prepare(job)
            job.sandbox_path = str(workspace)
            job.log(f"Workspace prepared at {workspace}")
            await asyncio.wait_for(self._run(job, workspace), timeout=self.job_timeout)
            job.transition(JobStatus.COMPLETED)
            job.log(f"Job completed with {len(job.changed_files)} changed file(s)")
        except (JobTimeoutError, asyncio.TimeoutError) as exc:
            message = str(exc) or f"Job exceeded {self.job_timeout}s"
            job.log(f"Job timed out: {message}")
            job.transition(JobStatus.TIMED_OUT, error=message)
        except FATAL_ERRORS as exc:
            job.log(f"Job failed: {exc}")
            job.transition(JobStatus.FAILED, error=str(exc))
        finally:
            await self.workspaces.cleanup(workspace)
            job.touch()
            logger.info(f"Job {job.job_id} finished with status {job.status.value}")

    async def _run(self, job: Job, workspace) -> None:
        repo_path = await self.workspaces.clone(job, workspace)
        job.log(f"Cloned {job.repo_url or job.repo_slug}@{job.branch}")
        if not getattr(self.client, "configured", True):
            raise ExternalServiceError("OPENAI_API_KEY is not configured for the sandbox orchestrator")
        summary = await self.agent_loop.run(job, repo_path)
        job.summary = summary
        job.changed_files = await collect_changed_files(repo_path)
        job.patch = await generate_patch(repo_path)
