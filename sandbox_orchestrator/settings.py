"""Configuration settings for the sandbox orchestrator."""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Reasoning service
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE") or None
REASONING_MODEL = os.getenv("CIFIX_MODEL") or os.getenv("OPENAI_MODEL") or "gpt-5-codex"

# Execution settings
MAX_PARALLEL_JOBS = int(os.getenv("MAX_PARALLEL_JOBS", "4"))
MAX_AGENT_TURNS = int(os.getenv("MAX_AGENT_TURNS", "50"))

# Timeout settings (in seconds)
REASONING_TIMEOUT = float(os.getenv("REASONING_TIMEOUT_SECONDS", "300"))
SHELL_TIMEOUT = float(os.getenv("SHELL_TIMEOUT_SECONDS", "600"))
GIT_TIMEOUT = float(os.getenv("GIT_TIMEOUT_SECONDS", "600"))
JOB_TIMEOUT = float(os.getenv("JOB_TIMEOUT_SECONDS", "3600"))

# Terminal jobs older than this are evicted from the registry
JOB_RETENTION_SECONDS = float(os.getenv("JOB_RETENTION_SECONDS", "86400"))

# Directory settings
WORKSPACE_ROOT = Path(os.getenv("WORKSPACE_ROOT") or tempfile.gettempdir())
REPO_BASE_URL = os.getenv("REPO_BASE_URL", "https://github.com/")

# Sandbox provisioning
SANDBOX_SLUG_PREFIX = os.getenv("SANDBOX_SLUG_PREFIX", "")
SANDBOX_SLUG_SUFFIX = os.getenv("SANDBOX_SLUG_SUFFIX", "-sandbox")
SANDBOX_IMAGE = os.getenv("SANDBOX_IMAGE", "ghcr.io/ai-hub/sandbox:latest")
SANDBOX_TTL_SECONDS = int(os.getenv("SANDBOX_TTL_SECONDS", "3600"))
SANDBOX_CPU_LIMIT = os.getenv("SANDBOX_CPU_LIMIT", "1")
SANDBOX_MEMORY_LIMIT = os.getenv("SANDBOX_MEMORY_LIMIT", "512m")
SANDBOX_HOST = os.getenv("SANDBOX_HOST", "127.0.0.1")
SANDBOX_BASE_PORT = int(os.getenv("SANDBOX_BASE_PORT", "3000"))

# HTTP server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
