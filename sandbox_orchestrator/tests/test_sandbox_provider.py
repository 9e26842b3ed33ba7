from datetime import datetime, timedelta, timezone

from sandbox_orchestrator.sandbox_provider import SandboxProvider


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def _provider(clock=None, **overrides):
    options = dict(host="sandbox.local", base_port=9500, ttl_seconds=60, slug_suffix="-sandbox")
    options.update(overrides)
    if clock is not None:
        options["clock"] = clock
    return SandboxProvider(**options)


def test_slug_is_formatted_with_prefix_and_suffix():
    provider = _provider(slug_prefix="ai-", slug_suffix="-env")
    connection = provider.ensure("owner/repo")
    assert connection.slug == "ai-owner/repo-env"
    assert connection.host == "sandbox.local"
    assert connection.port == 9500
    assert len(connection.token) == 48


def test_default_suffix_marker():
    assert SandboxProvider().slug_suffix == "-sandbox"


def test_cached_connection_is_returned_within_ttl():
    clock = FakeClock()
    provider = _provider(clock)
    first = provider.ensure("owner/repo")
    clock.advance(30)
    second = provider.ensure("owner/repo")
    assert second.to_dict() == first.to_dict()
    assert len(provider.cache) == 1


def test_expired_connection_is_replaced_with_new_token_and_port():
    clock = FakeClock()
    provider = _provider(clock)
    first = provider.ensure("owner/repo")
    clock.advance(61)
    second = provider.ensure("owner/repo")
    assert second.token != first.token
    assert second.port != first.port
    assert second.expires_at == clock.now + timedelta(seconds=60)
    # Expiry replaces the entry rather than growing the cache
    assert len(provider.cache) == 1


def test_ports_are_never_reused():
    clock = FakeClock()
    provider = _provider(clock)
    ports = [provider.ensure("a").port, provider.ensure("b").port]
    clock.advance(120)
    ports.append(provider.ensure("a").port)
    assert ports == [9500, 9501, 9502]


def test_expiry_boundary_is_exclusive():
    clock = FakeClock()
    provider = _provider(clock)
    first = provider.ensure("owner/repo")
    clock.advance(60)
    assert provider.ensure("owner/repo").token != first.token


def test_branch_scoped_entries_are_isolated():
    provider = _provider()
    main = provider.ensure_for_branch("r", "main")
    feature = provider.ensure_for_branch("r", "feature/x")
    assert main.slug == "r-main-sandbox"
    assert feature.slug == "r-feature/x-sandbox"
    assert main.token != feature.token
    assert set(provider.cache) == {"r#main", "r#feature/x"}


def test_explicit_cache_key():
    provider = _provider()
    first = provider.ensure("display", cache_key="key")
    assert provider.cache["key"] is first
    assert provider.ensure("other", cache_key="key") is first
