"""Collect the changed paths and unified diff of a job's working tree."""

import asyncio
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from .process import run_command
from .settings import GIT_TIMEOUT

PathLike = Union[str, Path]


def is_git_worktree(repo_path: PathLike) -> bool:
    return (Path(repo_path) / ".git").exists()


def parse_porcelain_status(output: str) -> List[str]:
    """Paths from NUL-separated `git status --porcelain -z` output.

    Each record is "XY path"; a rename or copy record is followed by one extra
    record holding the original path, which is skipped.
    """
    paths: List[str] = []
    records = iter(output.split("\0"))
    for record in records:
        if len(record) < 4:
            continue
        status, path = record[:2], record[3:]
        if "R" in status or "C" in status:
            next(records, None)
        paths.append(path)
    return paths


async def collect_changed_files(repo_path: PathLike, *, timeout: Optional[float] = GIT_TIMEOUT) -> List[str]:
    """Relative paths touched in the working tree, or [] when ``repo_path`` is not a git checkout."""
    if not is_git_worktree(repo_path):
        return []
    result = await _git(
        repo_path,
        ["git", "status", "--porcelain", "-z", "--untracked-files=all"],
        timeout,
    )
    if result is None:
        return []
    return parse_porcelain_status(result)


async def generate_patch(repo_path: PathLike, *, timeout: Optional[float] = GIT_TIMEOUT) -> str:
    """Unified diff of the working tree against HEAD; "" for non-repos or repos with no commits."""
    if not is_git_worktree(repo_path):
        return ""
    if await _git(repo_path, ["git", "rev-parse", "--verify", "--quiet", "HEAD"], timeout) is None:
        return ""
    # Make new files visible to git diff without staging their content.
    await _git(repo_path, ["git", "add", "--intent-to-add", "--all"], timeout)
    diff = await _git(repo_path, ["git", "diff", "HEAD"], timeout)
    return diff or ""


async def _git(repo_path: PathLike, command: List[str], timeout: Optional[float]) -> Optional[str]:
    try:
        result = await run_command(command, cwd=repo_path, timeout=timeout)
    except (asyncio.TimeoutError, OSError) as exc:
        logger.warning(f"{' '.join(command)} failed in {repo_path}: {exc!r}")
        return None
    if not result.ok:
        logger.debug(f"{' '.join(command)} exited {result.returncode} in {repo_path}: {result.stderr.strip()}")
        return None
    return result.stdout
