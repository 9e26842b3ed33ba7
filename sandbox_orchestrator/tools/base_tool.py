#!/usr/bin/env python3
"""Base tool for the sandbox orchestrator
Every tool operates on one cloned repository and never outside of it

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

import abc
from pathlib import Path
from typing import Any, Dict, Union

from ..exceptions import PathSecurityError, ToolError


class BaseTool(abc.ABC):
    """Base class for all tools the reasoning service may call"""

    #: JSON schema of the tool arguments
    parameters_schema: Dict[str, Any] = {"type": "object", "properties": {}}

    def __init__(self, tool_id: str, description: str, repo_root: Union[str, Path]):
        """Initialize the tool with its ID

        Args:
            tool_id: Name the reasoning service uses to call this tool
            description: Human readable description sent in the tool catalog
            repo_root: Root directory every path argument is confined to
        """
        self.tool_id = tool_id
        self.description = description
        self.repo_root = Path(repo_root).resolve()

    @abc.abstractmethod
    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the tool with given arguments

        Args:
            arguments: Parsed arguments of the tool call

        Returns:
            JSON serializable result handed back to the reasoning service

        Raises:
            ToolError: If arguments are invalid or the operation fails
            PathSecurityError: If a path escapes the repository root
        """
        pass

    def schema(self) -> Dict[str, Any]:
        """Function tool definition in the Responses API format."""
        return {
            "type": "function",
            "name": self.tool_id,
            "description": self.description,
            "parameters": self.parameters_schema,
        }

    def validate_parameters(self, arguments: Dict[str, Any], required_params: list) -> None:
        """Validate that all required arguments are present

        Raises:
            ToolError: If any required argument is missing
        """
        missing_params = [param for param in required_params if param not in arguments]
        if missing_params:
            raise ToolError(f"{self.tool_id} tool requires parameters: {', '.join(missing_params)}")

    def resolve_path(self, requested: Any) -> Path:
        """Resolve requested against the repository root.

        Symlinks and .. segments are resolved before the check, so the
        result is guaranteed to be the root itself or a path below it.

        Raises:
            ToolError: If the path argument is missing, not a string or unresolvable
            PathSecurityError: If the resolved path escapes the root
        """
        if not isinstance(requested, str) or not requested.strip():
            raise ToolError(f"{self.tool_id} tool requires a non-empty path")
        try:
            resolved = (self.repo_root / requested).resolve()
        except (OSError, ValueError) as exc:
            raise ToolError(f"Invalid path {requested!r}: {exc}") from exc
        if resolved != self.repo_root and self.repo_root not in resolved.parents:
            raise PathSecurityError(requested, str(self.repo_root))
        return resolved

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(tool_id={self.tool_id})"

    def __repr__(self) -> str:
        return self.__str__()
