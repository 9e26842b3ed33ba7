"""Provisioning and caching of ephemeral sandbox connections."""

import itertools
import secrets
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from loguru import logger

from .models import SandboxConnection, utc_now
from .settings import (
    SANDBOX_BASE_PORT,
    SANDBOX_CPU_LIMIT,
    SANDBOX_HOST,
    SANDBOX_IMAGE,
    SANDBOX_MEMORY_LIMIT,
    SANDBOX_SLUG_PREFIX,
    SANDBOX_SLUG_SUFFIX,
    SANDBOX_TTL_SECONDS,
)


def branch_cache_key(slug: str, branch: str) -> str:
    return f"{slug}#{branch}"


def branch_display_slug(slug: str, branch: str) -> str:
    return f"{slug}-{branch}"


class SandboxProvider:
    """Allocates sandbox connection descriptors keyed by a logical slug.

    A cached connection is handed back unchanged until it expires; after that a
    fresh one (new token, new port) replaces it. Ports come from a monotonic
    counter so an expired entry never frees a port for reuse.
    """

    def __init__(
        self,
        *,
        slug_prefix: str = SANDBOX_SLUG_PREFIX,
        slug_suffix: str = SANDBOX_SLUG_SUFFIX,
        image: str = SANDBOX_IMAGE,
        ttl_seconds: int = SANDBOX_TTL_SECONDS,
        cpu_limit: str = SANDBOX_CPU_LIMIT,
        memory_limit: str = SANDBOX_MEMORY_LIMIT,
        host: str = SANDBOX_HOST,
        base_port: int = SANDBOX_BASE_PORT,
        cache: Optional[Dict[str, SandboxConnection]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.slug_prefix = slug_prefix
        self.slug_suffix = slug_suffix
        self.image = image
        self.ttl_seconds = int(ttl_seconds)
        self.cpu_limit = cpu_limit
        self.memory_limit = memory_limit
        self.host = host
        self.base_port = int(base_port)
        self.cache: Dict[str, SandboxConnection] = cache if cache is not None else {}
        self._clock = clock
        self._port_offsets = itertools.count()

    def ensure(self, slug: str, cache_key: Optional[str] = None) -> SandboxConnection:
        key = cache_key or slug
        now = self._clock()
        current = self.cache.get(key)
        if current is not None and current.is_valid(now):
            return current

        connection = self._provision_connection(self.format_slug(slug), now)
        self.cache[key] = connection
        logger.info(
            f"Provisioned sandbox slug={connection.slug} key={key} port={connection.port} "
            f"expires_at={connection.expires_at.isoformat()}"
        )
        return connection

    def ensure_for_branch(self, slug: str, branch: str) -> SandboxConnection:
        """Branch-scoped variant: cached under ``slug#branch``, displayed as ``slug-branch``."""
        return self.ensure(branch_display_slug(slug, branch), cache_key=branch_cache_key(slug, branch))

    def format_slug(self, slug: str) -> str:
        return f"{self.slug_prefix}{slug}{self.slug_suffix}"

    def _provision_connection(self, slug: str, now: datetime) -> SandboxConnection:
        return SandboxConnection(
            slug=slug,
            host=self.host,
            port=self.base_port + next(self._port_offsets),
            token=secrets.token_hex(24),
            ttl_seconds=self.ttl_seconds,
            cpu_limit=self.cpu_limit,
            memory_limit=self.memory_limit,
            image=self.image,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
