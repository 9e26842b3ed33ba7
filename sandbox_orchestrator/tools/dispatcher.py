#!/usr/bin/env python3
"""Tool dispatcher for the sandbox orchestrator
Routes model issued tool calls to the confined repository tools

Copyright 2024-2025 Di Chen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from ..exceptions import ToolError
from ..settings import SHELL_TIMEOUT
from .base_tool import BaseTool
from .file_tools import ReadFileTool, WriteFileTool
from .shell_tool import RunShellTool


@dataclass
class ToolCall:
    """A single normalized tool request from the reasoning service."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


class ToolDispatcher:
    """Fixed catalog of run_shell, read_file and write_file bound to one repository.

    Tool failures come back as {"error": ...} so the model can adapt;
    PathSecurityError propagates and fails the job.
    """

    def __init__(self, repo_root, *, shell_timeout: Optional[float] = SHELL_TIMEOUT):
        tools: List[BaseTool] = [
            RunShellTool(repo_root, timeout=shell_timeout),
            ReadFileTool(repo_root),
            WriteFileTool(repo_root),
        ]
        self._tools: Dict[str, BaseTool] = {tool.tool_id: tool for tool in tools}

    def catalog(self) -> List[Dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    async def dispatch(self, call: ToolCall) -> Dict[str, Any]:
        tool = self._tools.get(call.name)
        if tool is None:
            return {"error": f"Unknown tool: {call.name}"}
        logger.debug(f"[TOOL CALL] {call.name} id={call.id} arguments={call.arguments}")
        try:
            return await tool.execute(call.arguments)
        except ToolError as exc:
            logger.debug(f"[TOOL ERROR] {call.name} id={call.id}: {exc}")
            return {"error": str(exc)}
