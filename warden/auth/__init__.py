"""Authentication and authorization module for Warden.

This module resolves, caches and enforces repository access levels derived
from an external identity provider, without a local role database.

Public API:
    Data Models:
    - PermissionLevel: Ordered access levels (none < read < write < maintain < admin)
    - Session: Authenticated session addressed by an opaque token
    - AuthorizationState: Single-use CSRF nonce
    - CachedPermission: Resolved level for a (subject, repository) pair

    Stores:
    - SessionStore: Opaque-token sessions with expiry
    - AuthorizationStateStore: OAuth state nonces (10 minute window)
    - PermissionCache: Bounded TTL cache of resolved permissions

    Resolution and enforcement:
    - PermissionResolver: Cache-first, provider-backed, fail-closed
    - AccessControlGate: Authenticate + authorize a request

Example:
    >>> from warden.auth import PermissionCache, PermissionResolver, can_perform
    >>> resolver = PermissionResolver(cache=PermissionCache(), provider=provider)
    >>> entry = await resolver.resolve(token, 42, "alice", "acme", "widgets")
    >>> can_perform(entry.level, "write")
    True
"""

from .cache import PermissionCache
from .gate import (
    AccessControlGate,
    AccessDecision,
    extract_token,
    require_permission,
    required_level_of,
)
from .permission import (
    AuthorizationState,
    CachedPermission,
    Identity,
    PermissionLevel,
    Session,
    TokenGrant,
)
from .resolver import (
    AbstractPermissionResolver,
    PermissionResolver,
    can_perform,
    map_permission_to_role,
    permission_summary,
)
from .session import SessionStore, generate_session_token
from .state import AuthorizationStateStore

__all__ = [
    # Data models
    "PermissionLevel",
    "Identity",
    "TokenGrant",
    "Session",
    "AuthorizationState",
    "CachedPermission",
    # Stores
    "SessionStore",
    "generate_session_token",
    "AuthorizationStateStore",
    "PermissionCache",
    # Resolvers
    "AbstractPermissionResolver",
    "PermissionResolver",
    "can_perform",
    "map_permission_to_role",
    "permission_summary",
    # Gate
    "AccessControlGate",
    "AccessDecision",
    "extract_token",
    "require_permission",
    "required_level_of",
]
