import os
import sys

import pytest

from sandbox_orchestrator.exceptions import PathSecurityError
from sandbox_orchestrator.tools import ReadFileTool, RunShellTool, ToolCall, ToolDispatcher, WriteFileTool


@pytest.fixture()
def repo(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    (root / "README.md").write_text("hello\n", encoding="utf-8")
    return root


def test_catalog_lists_the_three_tools(repo):
    catalog = ToolDispatcher(repo).catalog()
    assert [tool["name"] for tool in catalog] == ["run_shell", "read_file", "write_file"]
    assert all(tool["type"] == "function" for tool in catalog)
    assert catalog[0]["parameters"]["required"] == ["command"]


@pytest.mark.asyncio
async def test_read_file_returns_content(repo):
    result = await ReadFileTool(repo).execute({"path": "README.md"})
    assert result == {"content": "hello\n"}


@pytest.mark.asyncio
async def test_write_file_creates_parent_directories(repo):
    result = await WriteFileTool(repo).execute({"path": "src/pkg/mod.py", "content": "x = 1\n"})
    assert result == {"status": "ok"}
    assert (repo / "src" / "pkg" / "mod.py").read_text(encoding="utf-8") == "x = 1\n"


@pytest.mark.asyncio
async def test_write_outside_root_is_rejected_before_touching_disk(repo):
    outside = repo.parent / "outside.txt"
    with pytest.raises(PathSecurityError):
        await WriteFileTool(repo).execute({"path": "../outside.txt", "content": "pwned"})
    assert not outside.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["../outside.txt", "sub/../../outside.txt", "/etc/passwd"])
async def test_read_outside_root_is_rejected(repo, path):
    (repo.parent / "outside.txt").write_text("secret", encoding="utf-8")
    with pytest.raises(PathSecurityError):
        await ReadFileTool(repo).execute({"path": path})


@pytest.mark.asyncio
async def test_sibling_directory_with_common_prefix_is_rejected(repo):
    sibling = repo.parent / "repo2"
    sibling.mkdir()
    (sibling / "x.txt").write_text("x", encoding="utf-8")
    with pytest.raises(PathSecurityError):
        await ReadFileTool(repo).execute({"path": "../repo2/x.txt"})


@pytest.mark.asyncio
async def test_symlink_escape_is_rejected(repo):
    (repo.parent / "secret.txt").write_text("secret", encoding="utf-8")
    os.symlink(repo.parent / "secret.txt", repo / "link.txt")
    with pytest.raises(PathSecurityError):
        await ReadFileTool(repo).execute({"path": "link.txt"})


@pytest.mark.asyncio
async def test_run_shell_captures_output(repo):
    tool = RunShellTool(repo, timeout=30)
    result = await tool.execute(
        {"command": [sys.executable, "-c", "import os,sys; print(os.getcwd()); sys.stderr.write('warn')"]}
    )
    assert result["returncode"] == 0
    assert result["stdout"].strip() == str(repo.resolve())
    assert result["stderr"] == "warn"


@pytest.mark.asyncio
async def test_run_shell_uses_confined_cwd(repo):
    (repo / "sub").mkdir()
    tool = RunShellTool(repo, timeout=30)
    result = await tool.execute({"command": [sys.executable, "-c", "import os; print(os.getcwd())"], "cwd": "sub"})
    assert result["stdout"].strip() == str((repo / "sub").resolve())

    with pytest.raises(PathSecurityError):
        await tool.execute({"command": ["ls"], "cwd": "../"})


@pytest.mark.asyncio
async def test_run_shell_does_not_interpret_shell_metacharacters(repo):
    tool = RunShellTool(repo, timeout=30)
    result = await tool.execute({"command": ["echo", "hi; touch injected"]})
    assert result["stdout"].strip() == "hi; touch injected"
    assert not (repo / "injected").exists()


@pytest.mark.asyncio
async def test_run_shell_splits_single_string_command(repo):
    tool = RunShellTool(repo, timeout=30)
    result = await tool.execute({"command": ["echo hello world"]})
    assert result["stdout"].strip() == "hello world"


@pytest.mark.asyncio
async def test_dispatch_reports_tool_errors_as_results(repo):
    dispatcher = ToolDispatcher(repo, shell_timeout=30)

    unknown = await dispatcher.dispatch(ToolCall(id="1", name="delete_repo", arguments={}))
    assert unknown == {"error": "Unknown tool: delete_repo"}

    empty = await dispatcher.dispatch(ToolCall(id="2", name="run_shell", arguments={"command": []}))
    assert "command is required" in empty["error"]

    missing = await dispatcher.dispatch(ToolCall(id="3", name="read_file", arguments={"path": "nope.txt"}))
    assert "Failed to read nope.txt" in missing["error"]

    not_found = await dispatcher.dispatch(
        ToolCall(id="4", name="run_shell", arguments={"command": ["definitely-not-a-binary-xyz"]})
    )
    assert "Failed to start" in not_found["error"]


@pytest.mark.asyncio
async def test_dispatch_timeout_is_a_tool_error(repo):
    dispatcher = ToolDispatcher(repo, shell_timeout=0.5)
    result = await dispatcher.dispatch(
        ToolCall(id="1", name="run_shell", arguments={"command": [sys.executable, "-c", "import time; time.sleep(10)"]})
    )
    assert "timed out" in result["error"]


@pytest.mark.asyncio
async def test_dispatch_propagates_security_errors(repo):
    dispatcher = ToolDispatcher(repo)
    with pytest.raises(PathSecurityError):
        await dispatcher.dispatch(ToolCall(id="1", name="write_file", arguments={"path": "../x", "content": ""}))


@pytest.mark.asyncio
async def test_dispatch_reports_null_bytes_as_tool_errors(repo):
    dispatcher = ToolDispatcher(repo, shell_timeout=30)

    read = await dispatcher.dispatch(ToolCall(id="1", name="read_file", arguments={"path": "a\x00b"}))
    assert "null byte" in read["error"]

    write = await dispatcher.dispatch(
        ToolCall(id="2", name="write_file", arguments={"path": "a\x00b", "content": "x"})
    )
    assert "null byte" in write["error"]

    shell = await dispatcher.dispatch(ToolCall(id="3", name="run_shell", arguments={"command": ["echo", "a\x00b"]}))
    assert "null byte" in shell["error"]

    shell_cwd = await dispatcher.dispatch(
        ToolCall(id="4", name="run_shell", arguments={"command": ["echo", "hi"], "cwd": "sub\x00dir"})
    )
    assert "null byte" in shell_cwd["error"]
