#!/usr/bin/env python3
"""Shell Tool for the sandbox orchestrator
Tool for executing commands inside the cloned repository

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

import asyncio
import shlex
from typing import Any, Dict, List, Optional

from ..exceptions import ToolError
from ..process import run_command
from ..settings import SHELL_TIMEOUT
from .base_tool import BaseTool


class RunShellTool(BaseTool):
    """Run a command in the repository and capture its output.

    The argument vector is executed directly, without a shell, so metacharacters
    in model supplied words are never interpreted. A single word that contains
    whitespace (["npm test"]) is split with shell-like rules first.
    """

    parameters_schema = {
        "type": "object",
        "properties": {
            "command": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Command and arguments, e.g. [\"pytest\", \"-q\"]",
            },
            "cwd": {"type": "string", "description": "Directory relative to the repository root"},
        },
        "required": ["command"],
    }

    def __init__(self, repo_root, timeout: Optional[float] = SHELL_TIMEOUT):
        super().__init__("run_shell", "Run a command inside the cloned repository", repo_root)
        self.timeout = timeout

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.validate_parameters(arguments, ["command"])
        command = self._normalize_command(arguments["command"])
        cwd_arg = arguments.get("cwd")
        cwd = self.resolve_path(cwd_arg) if isinstance(cwd_arg, str) and cwd_arg.strip() else self.repo_root

        try:
            result = await run_command(command, cwd=cwd, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ToolError(f"Command {shlex.join(command)!r} timed out after {self.timeout}s") from exc
        except (OSError, ValueError) as exc:
            raise ToolError(f"Failed to start {command[0]!r}: {exc}") from exc
        return {
            "stdout": result.stdout,
            "stderr": result.stderr,
            "returncode": result.returncode,
        }

    def _normalize_command(self, raw: Any) -> List[str]:
        if not isinstance(raw, list) or not raw:
            raise ToolError("command is required for run_shell and must be a non-empty list of strings")
        words = [str(part).strip() for part in raw]
        words = [word for word in words if word]
        if not words:
            raise ToolError("command is required for run_shell and must be a non-empty list of strings")
        if len(words) == 1 and any(ch.isspace() for ch in words[0]):
            try:
                words = shlex.split(words[0])
            except ValueError as exc:
                raise ToolError(f"Unparseable command {words[0]!r}: {exc}") from exc
        if not words:
            raise ToolError("command is required for run_shell and must be a non-empty list of strings")
        return words
