#!/usr/bin/env python3
"""Custom exceptions for the sandbox orchestrator

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

from typing import List, Optional


class OrchestratorError(Exception):
    """Base class for every error raised by the orchestrator"""


class JobValidationError(OrchestratorError):
    """Raised when a submission is missing required fields"""

    def __init__(self, missing_fields: List[str]):
        self.missing_fields = list(missing_fields)
        message = f"Missing required fields: {', '.join(self.missing_fields)}"
        super().__init__(message)


class JobNotFoundError(OrchestratorError):
    """Raised when a job id is not present in the registry"""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class PathSecurityError(OrchestratorError):
    """Raised when a tool path resolves outside of the repository root.

    Always fatal to the job.
    """

    def __init__(self, requested_path: str, root: str):
        self.requested_path = requested_path
        self.root = root
        super().__init__(f"Access to path outside the sandbox blocked: {requested_path!r}")


class ExternalServiceError(OrchestratorError):
    """Raised when the reasoning service is unavailable, misconfigured or fails"""


class SourceControlError(OrchestratorError):
    """Raised when a git clone, fetch or checkout fails"""

    def __init__(self, command: List[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command {' '.join(self.command)!r} failed"
        if returncode is not None:
            message += f" with exit code {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


class ToolError(OrchestratorError):
    """Raised by a tool whose own operation failed.

    Never fatal: the dispatcher hands the message back to the model.
    """


class JobTimeoutError(OrchestratorError):
    """Raised when a job exceeds its turn budget or wall-clock limit"""
