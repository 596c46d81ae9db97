"""Permission resolvers for repository access control.

This module provides the resolver abstraction and default implementation:
- AbstractPermissionResolver: Pluggable ABC for permission resolution
- PermissionResolver: Provider-backed implementation with a TTL cache

The resolver is the single point of truth for "which level does this user
have on this repository?". It is fail-closed: when the provider errors or
times out the answer is ``none``, and that answer is cached like any other.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Union

from navconfig.logging import logging

from ..conf import PROVIDER_TIMEOUT
from .cache import PermissionCache
from .permission import ACTIONS, CachedPermission, PermissionLevel

if TYPE_CHECKING:
    from ..providers.abstract import AbstractIdentityProvider


def map_permission_to_role(permission: Union[str, PermissionLevel]) -> str:
    """Map a provider label to its role label.

    admin -> Admin, maintain -> Maintainer, write/read -> Collaborator,
    none or anything unrecognized -> Denied.
    """
    return PermissionLevel.parse(permission).role


def can_perform(
    level: Union[str, PermissionLevel],
    required_action: Union[str, PermissionLevel],
) -> bool:
    """Check a level against an action using the fixed hierarchy.

    Args:
        level: The resolved permission level.
        required_action: One of ``read``, ``write``, ``maintain``, ``admin``.

    Returns:
        True iff the rank of ``level`` is at least the rank of the action.

    Raises:
        ValueError: if ``required_action`` is not a known action.

    Example:
        >>> can_perform("write", "admin")
        False
        >>> can_perform("admin", "read")
        True
    """
    action = required_action.value if isinstance(
        required_action, PermissionLevel
    ) else str(required_action).lower()
    if action not in ACTIONS:
        raise ValueError(
            f"Invalid action '{required_action}', expected one of: "
            f"{', '.join(sorted(ACTIONS))}"
        )
    return PermissionLevel.parse(level).rank >= PermissionLevel(action).rank


def permission_summary(entry: CachedPermission) -> dict[str, Any]:
    """Derived booleans reported alongside a resolved permission."""
    return {
        "permission": entry.level.value,
        "role": entry.role,
        "canAdmin": entry.level is PermissionLevel.ADMIN,
        "canMaintain": can_perform(entry.level, "maintain"),
        "canWrite": can_perform(entry.level, "write"),
        "canRead": can_perform(entry.level, "read"),
        "denied": entry.level is PermissionLevel.NONE,
    }


class AbstractPermissionResolver(ABC):
    """Pluggable resolver for repository permission checks.

    Implementations can use different backends for the lookup (a remote
    provider, a static table in tests) while sharing the hierarchy check.
    """

    @abstractmethod
    async def resolve(
        self,
        credential: str,
        subject_id: int,
        subject_name: str,
        owner: str,
        resource: str,
        force_refresh: bool = False,
    ) -> CachedPermission:
        """Resolve the level of a subject on ``owner/resource``.

        Args:
            credential: Provider access token of the subject.
            subject_id: Provider numeric user id (cache key).
            subject_name: Provider login (lookup key).
            owner: Repository owner.
            resource: Repository name.
            force_refresh: Skip the cache and query the backend.

        Returns:
            The resolved entry; never raises for backend failures.
        """
        ...

    async def can_execute(
        self,
        credential: str,
        subject_id: int,
        subject_name: str,
        owner: str,
        resource: str,
        required_action: str,
    ) -> bool:
        """Resolve and check against ``required_action`` in one call."""
        entry = await self.resolve(
            credential, subject_id, subject_name, owner, resource
        )
        return can_perform(entry.level, required_action)

    async def invalidate(self, subject_id: int, owner: str, resource: str) -> bool:
        """Forget a resolved pair. Resolvers without state have nothing to drop."""
        return False


class PermissionResolver(AbstractPermissionResolver):
    """Provider-backed resolver that serves from a PermissionCache when fresh.

    Attributes:
        cache: The PermissionCache holding resolved entries.
        provider: Identity provider queried on cache misses.
        timeout: Upper bound, in seconds, for a provider call.
        failure_ttl: Freshness window for entries produced by a failed call;
            None keeps the cache default.

    Example:
        >>> resolver = PermissionResolver(cache=PermissionCache(), provider=GitHubProvider())
        >>> entry = await resolver.resolve(token, 42, "alice", "acme", "widgets")
        >>> entry.role
        'Collaborator'
    """

    def __init__(
        self,
        cache: PermissionCache,
        provider: "AbstractIdentityProvider",
        timeout: float = PROVIDER_TIMEOUT,
        failure_ttl: Optional[float] = None,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.timeout = timeout
        self.failure_ttl = failure_ttl
        self.logger = logging.getLogger("warden.auth.resolver")

    async def resolve(
        self,
        credential: str,
        subject_id: int,
        subject_name: str,
        owner: str,
        resource: str,
        force_refresh: bool = False,
    ) -> CachedPermission:
        if not force_refresh:
            cached = await self.cache.get(subject_id, owner, resource)
            if cached is not None:
                return cached

        self.logger.debug(
            f"Querying {self.provider.name} for {subject_name}'s permission "
            f"in {owner}/{resource}"
        )
        ttl = None
        try:
            label = await asyncio.wait_for(
                self.provider.get_permission(
                    credential, owner, resource, subject_name
                ),
                timeout=self.timeout,
            )
            level = PermissionLevel.parse(label)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Permission lookup timed out for {subject_name} in {owner}/{resource}"
            )
            level, ttl = PermissionLevel.NONE, self.failure_ttl
        except Exception as exc:  # pylint: disable=broad-except
            # fail closed: any provider failure is a cached denial
            self.logger.warning(
                f"Failed to get repository permission for {subject_name} "
                f"in {owner}/{resource}: {exc}"
            )
            level, ttl = PermissionLevel.NONE, self.failure_ttl

        return await self.cache.set(
            subject_id,
            subject_name,
            owner,
            resource,
            level,
            ttl=ttl,
        )

    async def invalidate(self, subject_id: int, owner: str, resource: str) -> bool:
        return await self.cache.invalidate(subject_id, owner, resource)

    async def invalidate_subject(self, subject_id: int) -> int:
        return await self.cache.invalidate_all(subject_id)
