"""Ephemeral per-job workspaces holding a shallow clone of the target repository."""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from .exceptions import SourceControlError
from .models import Job
from .process import run_command
from .settings import GIT_TIMEOUT, REPO_BASE_URL, WORKSPACE_ROOT

REPO_DIRNAME = "repo"


class WorkspaceManager:
    """Creates, populates and tears down isolated job workspaces.

    Testability hooks:
    - base_dir can be overridden to keep workspaces inside a test tmp dir
    - repo_base_url controls how a bare repo slug is turned into a clone URL
    """

    def __init__(
        self,
        *,
        base_dir: Optional[Path] = None,
        git_timeout: Optional[float] = GIT_TIMEOUT,
        repo_base_url: str = REPO_BASE_URL,
    ):
        self.base_dir = Path(base_dir) if base_dir else WORKSPACE_ROOT
        self.git_timeout = git_timeout
        self.repo_base_url = repo_base_url

    async def prepare(self, job: Job) -> Path:
        """Create a uniquely named temporary directory for ``job``."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = await asyncio.to_thread(
            tempfile.mkdtemp, prefix=f"ai-hub-{_safe_fragment(job.job_id)}-", dir=str(self.base_dir)
        )
        return Path(path).resolve()

    def resolve_clone_url(self, job: Job) -> str:
        if job.repo_url:
            return job.repo_url
        if not job.repo_slug:
            raise SourceControlError(["git", "clone"], None, "job has no repository reference")
        return f"{self.repo_base_url.rstrip('/')}/{job.repo_slug.strip('/')}.git"

    async def clone(self, job: Job, workspace: Union[str, Path]) -> Path:
        """Shallow, branch-scoped clone into ``<workspace>/repo``; checks out ``commit_hash`` when given."""
        repo_path = Path(workspace) / REPO_DIRNAME
        clone_url = self.resolve_clone_url(job)
        clone = ["git", "clone", "--branch", job.branch, "--depth", "1", "--", clone_url, str(repo_path)]
        _reject_option_like(clone, branch=job.branch, repository=clone_url, commit=job.commit_hash)
        await self._git(clone, cwd=workspace)
        if job.commit_hash:
            fetch = ["git", "fetch", "--depth", "1", "origin", "--", job.commit_hash]
            try:
                await self._git(fetch, cwd=repo_path)
            except SourceControlError as exc:
                # The commit may already be part of the cloned history.
                logger.debug(f"Fetch of {job.commit_hash} failed, trying checkout directly: {exc}")
            await self._git(["git", "checkout", "--detach", job.commit_hash], cwd=repo_path)
        return repo_path

    async def cleanup(self, workspace: Union[str, Path, None]) -> None:
        """Best-effort recursive removal; failures are logged and swallowed."""
        if not workspace:
            return
        try:
            await asyncio.to_thread(shutil.rmtree, str(workspace))
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(f"Failed to remove workspace {workspace}: {exc}")

    async def _git(self, command: List[str], *, cwd: Union[str, Path]) -> None:
        try:
            result = await run_command(command, cwd=cwd, timeout=self.git_timeout, env=_git_env())
        except asyncio.TimeoutError as exc:
            raise SourceControlError(command, None, f"timed out after {self.git_timeout}s") from exc
        except OSError as exc:
            raise SourceControlError(command, None, str(exc)) from exc
        if not result.ok:
            raise SourceControlError(command, result.returncode, result.stderr)


def _git_env():
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def _safe_fragment(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in value)[:64]


def _reject_option_like(command: List[str], **values: Optional[str]) -> None:
    """Refuse submitted refs and URLs that git would parse as options."""
    for name, value in values.items():
        if value and value.startswith("-"):
            raise SourceControlError(command, None, f"{name} must not start with '-': {value!r}")
