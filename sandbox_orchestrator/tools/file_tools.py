#!/usr/bin/env python3
"""File tools for the sandbox orchestrator
Read and write text files inside the cloned repository

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
from pathlib import Path
from typing import Any, Dict

from ..exceptions import ToolError
from .base_tool import BaseTool


class ReadFileTool(BaseTool):
    """Return the full text content of a repository file."""

    parameters_schema = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path relative to the repository root"},
        },
        "required": ["path"],
    }

    def __init__(self, repo_root):
        super().__init__("read_file", "Read a file from the cloned repository", repo_root)

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.validate_parameters(arguments, ["path"])
        file_path = self.resolve_path(arguments["path"])
        try:
            content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except (OSError, ValueError) as exc:
            raise ToolError(f"Failed to read {arguments['path']}: {exc}") from exc
        return {"content": content}


class WriteFileTool(BaseTool):
    """Create or overwrite a repository file, creating parent directories as needed."""

    parameters_schema = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path relative to the repository root"},
            "content": {"type": "string", "description": "Full new content of the file"},
        },
        "required": ["path", "content"],
    }

    def __init__(self, repo_root):
        super().__init__("write_file", "Write a file inside the cloned repository", repo_root)

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.validate_parameters(arguments, ["path"])
        file_path = self.resolve_path(arguments["path"])
        content = arguments.get("content")
        if not isinstance(content, str):
            content = ""
        try:
            await asyncio.to_thread(_write_text, file_path, content)
        except (OSError, ValueError) as exc:
            raise ToolError(f"Failed to write {arguments['path']}: {exc}") from exc
        return {"status": "ok"}


def _write_text(file_path: Path, content: str) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content, encoding="utf-8")
