import asyncio
import subprocess
import sys
from pathlib import Path

import pytest
import pytest_asyncio

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sandbox_orchestrator.agent_loop import AgentLoop
from sandbox_orchestrator.manager import ExecutionManager
from sandbox_orchestrator.processor import SandboxJobProcessor
from sandbox_orchestrator.sandbox_provider import SandboxProvider
from sandbox_orchestrator.workspace import WorkspaceManager

from stubs import ScriptedReasoningService


def git(*args, cwd):
    return subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )


@pytest.fixture()
def git_repo(tmp_path):
    """A local repository on branch ``main`` with a committed README.md."""
    repo = tmp_path / "origin"
    repo.mkdir()
    git("init", cwd=repo)
    git("checkout", "-b", "main", cwd=repo)
    (repo / "README.md").write_text("# Demo\n", encoding="utf-8")
    git("add", "README.md", cwd=repo)
    git("commit", "-m", "initial", cwd=repo)
    return repo


@pytest.fixture()
def workspaces(tmp_path):
    return WorkspaceManager(base_dir=tmp_path / "workspaces", git_timeout=60)


@pytest.fixture()
def reasoning():
    """Scripted reasoning service; tests append responses to ``reasoning.responses``."""
    return ScriptedReasoningService([])


@pytest.fixture()
def provider():
    return SandboxProvider(host="sandbox.local", base_port=9500, slug_suffix="-workspace")


@pytest_asyncio.fixture
async def manager(reasoning, workspaces, provider):
    processor = SandboxJobProcessor(
        workspace_manager=workspaces,
        agent_loop=AgentLoop(reasoning, max_turns=5, shell_timeout=30),
        job_timeout=60,
    )
    mgr = ExecutionManager(max_parallel=2, processor=processor, sandbox_provider=provider)
    try:
        yield mgr
    finally:
        # Ensure background job tasks don't leak between tests (pytest-asyncio strict mode).
        pending = [t for t in mgr._tasks.values() if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
