"""Agentic run-loop: converge a task into a summary by letting the model call tools."""

import json
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger

from .exceptions import ExternalServiceError, JobTimeoutError
from .models import Job
from .settings import MAX_AGENT_TURNS, SHELL_TIMEOUT
from .tools import ToolCall, ToolDispatcher

TOOL_CALL_TYPES = ("function_call", "tool_call")
NON_TEXT_TYPES = TOOL_CALL_TYPES + ("reasoning",)


class ReasoningService(Protocol):
    async def create(self, instructions: str, task: str, tools: List[Dict[str, Any]]) -> Dict[str, Any]:
        ...

    async def continue_with_tool_outputs(
        self, previous_response_id: str, outputs: List[Dict[str, str]], tools: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        ...


def build_instructions(repo_path: Path, test_command: Optional[str]) -> str:
    return (
        f"You are operating in an isolated sandbox at {repo_path}. "
        "Use the tools to read and modify files and to run commands. "
        f"Suggested test command: {test_command or 'n/a'}. "
        "Always work only inside the repository directory. "
        "When you are done, reply with a short summary of the changes and no tool calls."
    )


def parse_arguments(raw: Any) -> Optional[Dict[str, Any]]:
    """Arguments arrive as a JSON string or already decoded; anything else is unusable."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def extract_text(output: Any) -> Optional[str]:
    """Concatenate every free-form text fragment of a response; None when there is none."""
    if not isinstance(output, list):
        return None
    texts: List[str] = []
    for item in output:
        if not isinstance(item, dict) or item.get("type") in NON_TEXT_TYPES:
            continue
        if isinstance(item.get("text"), str):
            texts.append(item["text"])
        content = item.get("content")
        if isinstance(content, list):
            for content_item in content:
                if isinstance(content_item, dict) and isinstance(content_item.get("text"), str):
                    texts.append(content_item["text"])
    if not texts:
        return None
    return "\n".join(texts).strip()


def extract_tool_calls(output: Any) -> List[ToolCall]:
    """Normalize function calls to ToolCall; calls without a name or parseable arguments are dropped."""
    if not isinstance(output, list):
        return []
    calls: List[ToolCall] = []
    for item in output:
        if not isinstance(item, dict) or item.get("type") not in TOOL_CALL_TYPES:
            continue
        function_node = item.get("function") if isinstance(item.get("function"), dict) else {}
        name = item.get("name") or function_node.get("name")
        raw_arguments = item.get("arguments")
        if raw_arguments is None:
            raw_arguments = function_node.get("arguments")
        arguments = parse_arguments(raw_arguments)
        if not name or arguments is None:
            logger.debug(f"Dropping malformed tool call: {item!r}")
            continue
        call_id = item.get("call_id") or item.get("id") or uuid.uuid4().hex
        calls.append(ToolCall(id=str(call_id), name=str(name), arguments=arguments))
    return calls


class AgentLoop:
    """Drives the request / dispatch / respond cycle for one job.

    Steps are strictly sequential: one reasoning call at a time and tool calls
    in the order the model listed them.
    """

    def __init__(
        self,
        client: ReasoningService,
        *,
        max_turns: Optional[int] = MAX_AGENT_TURNS,
        shell_timeout: Optional[float] = SHELL_TIMEOUT,
    ):
        self.client = client
        self.max_turns = max_turns
        self.shell_timeout = shell_timeout

    async def run(self, job: Job, repo_path: Path) -> str:
        """Return the final summary once the model stops requesting tools.

        Raises:
            JobTimeoutError: If the model still requests tools after ``max_turns`` responses
            ExternalServiceError: If the reasoning service fails
            PathSecurityError: If a tool call tries to escape the repository
        """
        dispatcher = ToolDispatcher(repo_path, shell_timeout=self.shell_timeout)
        tools = dispatcher.catalog()
        instructions = build_instructions(repo_path, job.test_command)

        response = await self.client.create(instructions, job.task_description, tools)
        summary = ""
        turn = 1
        while True:
            output = response.get("output") if isinstance(response, dict) else None
            text = extract_text(output)
            if text:
                summary = text
                job.summary = summary
            tool_calls = extract_tool_calls(output)
            job.log(f"Turn {turn}: received {len(tool_calls)} tool call(s)")

            if not tool_calls:
                return summary
            if self.max_turns is not None and turn >= self.max_turns:
                raise JobTimeoutError(f"Agent loop exceeded {self.max_turns} turns")

            tool_outputs: List[Dict[str, str]] = []
            for call in tool_calls:
                job.log(f"Running tool {call.name} ({call.id})")
                result = await dispatcher.dispatch(call)
                if "error" in result:
                    job.log(f"Tool {call.name} returned error: {result['error']}")
                tool_outputs.append({"call_id": call.id, "output": json.dumps(result, ensure_ascii=False)})
                job.touch()

            response_id = response.get("id")
            if not response_id:
                raise ExternalServiceError("Reasoning service response has no id to continue from")
            response = await self.client.continue_with_tool_outputs(response_id, tool_outputs, tools)
            turn += 1
