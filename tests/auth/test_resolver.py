"""Unit tests for permission resolvers.

Tests AbstractPermissionResolver, PermissionResolver and the hierarchy helpers.
"""

import asyncio

import pytest

from warden.auth import (
    AbstractPermissionResolver,
    CachedPermission,
    PermissionCache,
    PermissionLevel,
    PermissionResolver,
    can_perform,
    map_permission_to_role,
    permission_summary,
)
from warden.exceptions import UpstreamFailure


@pytest.fixture
def cache(clock) -> PermissionCache:
    return PermissionCache(ttl=300, max_size=100, clock=clock)


@pytest.fixture
def resolver(cache: PermissionCache, provider) -> PermissionResolver:
    return PermissionResolver(cache=cache, provider=provider, timeout=1)


class TestCanPerform:
    """Tests for the fixed level hierarchy."""

    @pytest.mark.parametrize(
        "level,allowed",
        [
            ("admin", {"read", "write", "maintain", "admin"}),
            ("maintain", {"read", "write", "maintain"}),
            ("write", {"read", "write"}),
            ("read", {"read"}),
            ("none", set()),
        ],
    )
    def test_hierarchy(self, level: str, allowed: set[str]) -> None:
        for action in ("read", "write", "maintain", "admin"):
            assert can_perform(level, action) is (action in allowed)

    def test_accepts_enum_members(self) -> None:
        assert can_perform(PermissionLevel.WRITE, PermissionLevel.READ) is True
        assert can_perform(PermissionLevel.WRITE, PermissionLevel.ADMIN) is False

    def test_unknown_level_denied(self) -> None:
        assert can_perform("triage", "read") is False

    @pytest.mark.parametrize("action", ["delete", "none", ""])
    def test_invalid_action(self, action: str) -> None:
        with pytest.raises(ValueError):
            can_perform("admin", action)


class TestRoleMapping:

    @pytest.mark.parametrize(
        "label,role",
        [
            ("admin", "Admin"),
            ("maintain", "Maintainer"),
            ("write", "Collaborator"),
            ("read", "Collaborator"),
            ("none", "Denied"),
            ("pull", "Denied"),
        ],
    )
    def test_map_permission_to_role(self, label: str, role: str) -> None:
        assert map_permission_to_role(label) == role


class TestPermissionSummary:

    def _entry(self, level: PermissionLevel) -> CachedPermission:
        return CachedPermission(
            subject_id=42,
            subject_name="alice",
            owner="acme",
            resource="widgets",
            level=level,
            role=level.role,
            cached_at=0.0,
            ttl=300,
        )

    def test_write(self) -> None:
        assert permission_summary(self._entry(PermissionLevel.WRITE)) == {
            "permission": "write",
            "role": "Collaborator",
            "canAdmin": False,
            "canMaintain": False,
            "canWrite": True,
            "canRead": True,
            "denied": False,
        }

    def test_none(self) -> None:
        summary = permission_summary(self._entry(PermissionLevel.NONE))
        assert summary["denied"] is True
        assert summary["canRead"] is False
        assert summary["role"] == "Denied"

    def test_admin(self) -> None:
        summary = permission_summary(self._entry(PermissionLevel.ADMIN))
        assert summary["canAdmin"] is True
        assert summary["canMaintain"] is True


class TestPermissionResolver:
    """Tests for the cache-first provider-backed resolver."""

    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, resolver, provider, clock) -> None:
        """A second resolution within the TTL makes no provider call."""
        provider.permissions[("acme", "widgets", "alice")] = "write"

        first = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        clock.advance(10)
        second = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")

        assert first.level is PermissionLevel.WRITE
        assert first.role == "Collaborator"
        assert second == first
        assert provider.permission_calls == 1

    @pytest.mark.asyncio
    async def test_expired_entry_triggers_new_lookup(
        self, resolver, provider, clock
    ) -> None:
        provider.permissions[("acme", "widgets", "alice")] = "write"
        await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")

        provider.permissions[("acme", "widgets", "alice")] = "admin"
        clock.advance(301)
        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")

        assert entry.level is PermissionLevel.ADMIN
        assert provider.permission_calls == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, resolver, provider) -> None:
        provider.permissions[("acme", "widgets", "alice")] = "read"
        await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")

        provider.permissions[("acme", "widgets", "alice")] = "maintain"
        entry = await resolver.resolve(
            "gho_alice", 42, "alice", "acme", "widgets", force_refresh=True
        )

        assert entry.level is PermissionLevel.MAINTAIN
        assert provider.permission_calls == 2

    @pytest.mark.asyncio
    async def test_provider_failure_is_cached_denial(
        self, resolver, provider, cache
    ) -> None:
        """Fail closed: an upstream error resolves to none and is cached."""
        provider.permission_error = UpstreamFailure("GitHub API error: 500")

        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert entry.level is PermissionLevel.NONE
        assert entry.role == "Denied"

        provider.permission_error = None
        provider.permissions[("acme", "widgets", "alice")] = "admin"
        again = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert again.level is PermissionLevel.NONE
        assert provider.permission_calls == 1
        assert (42, "acme", "widgets") in cache

    @pytest.mark.asyncio
    async def test_unexpected_error_is_denial(self, resolver, provider) -> None:
        provider.permission_error = RuntimeError("boom")
        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert entry.level is PermissionLevel.NONE

    @pytest.mark.asyncio
    async def test_timeout_is_denial(self, cache, provider) -> None:
        resolver = PermissionResolver(cache=cache, provider=provider, timeout=0.05)
        provider.permission_delay = 1
        provider.permissions[("acme", "widgets", "alice")] = "admin"

        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert entry.level is PermissionLevel.NONE
        assert entry.role == "Denied"
        assert entry.ttl == 300

        provider.permission_delay = 0
        again = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert again.level is PermissionLevel.NONE
        assert provider.permission_calls == 1

    @pytest.mark.asyncio
    async def test_failure_ttl(self, cache, provider, clock) -> None:
        resolver = PermissionResolver(
            cache=cache, provider=provider, timeout=1, failure_ttl=30
        )
        provider.permission_error = UpstreamFailure("rate limited", status_code=403)
        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert entry.ttl == 30

        provider.permission_error = None
        provider.permissions[("acme", "widgets", "alice")] = "write"
        clock.advance(31)
        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert entry.level is PermissionLevel.WRITE
        assert entry.ttl == 300

    @pytest.mark.asyncio
    async def test_unknown_label_is_none(self, resolver, provider) -> None:
        provider.permissions[("acme", "widgets", "alice")] = "triage"
        entry = await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert entry.level is PermissionLevel.NONE

    @pytest.mark.asyncio
    async def test_can_execute(self, resolver, provider) -> None:
        provider.permissions[("acme", "widgets", "alice")] = "write"
        assert await resolver.can_execute(
            "gho_alice", 42, "alice", "acme", "widgets", "write"
        ) is True
        assert await resolver.can_execute(
            "gho_alice", 42, "alice", "acme", "widgets", "admin"
        ) is False
        assert provider.permission_calls == 1

    @pytest.mark.asyncio
    async def test_invalidate(self, resolver, provider) -> None:
        provider.permissions[("acme", "widgets", "alice")] = "read"
        await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")

        assert await resolver.invalidate(42, "acme", "widgets") is True
        await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        assert provider.permission_calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_subject(self, resolver, provider) -> None:
        await resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
        await resolver.resolve("gho_alice", 42, "alice", "acme", "gadgets")
        assert await resolver.invalidate_subject(42) == 2

    @pytest.mark.asyncio
    async def test_concurrent_resolutions(self, resolver, provider) -> None:
        provider.permissions[("acme", "widgets", "alice")] = "write"
        entries = await asyncio.gather(*[
            resolver.resolve("gho_alice", 42, "alice", "acme", "widgets")
            for _ in range(10)
        ])
        assert {entry.level for entry in entries} == {PermissionLevel.WRITE}
        assert len(resolver.cache) == 1


class TestAbstractPermissionResolver:

    def test_cannot_instantiate(self) -> None:
        with pytest.raises(TypeError):
            AbstractPermissionResolver()  # type: ignore[abstract]

    @pytest.mark.asyncio
    async def test_static_subclass(self) -> None:
        """A custom resolver only implements resolve()."""

        class StaticResolver(AbstractPermissionResolver):
            async def resolve(self, credential, subject_id, subject_name,
                              owner, resource, force_refresh=False):
                return CachedPermission(
                    subject_id=subject_id,
                    subject_name=subject_name,
                    owner=owner,
                    resource=resource,
                    level=PermissionLevel.READ,
                    role="Collaborator",
                    cached_at=0.0,
                    ttl=0,
                )

        static = StaticResolver()
        assert await static.can_execute("t", 1, "bob", "acme", "x", "read") is True
        assert await static.can_execute("t", 1, "bob", "acme", "x", "write") is False
        assert await static.invalidate(1, "acme", "x") is False
