"""Permission and session data models.

This module provides the data structures flowing through the authorization
layer:
- PermissionLevel: ordered repository access levels (none < read < ... < admin)
- Identity: provider user profile attached to a session
- Session: server-held proof that a subject authenticated
- AuthorizationState: single-use CSRF nonce of the OAuth handshake
- CachedPermission: resolved access level for a (subject, repository) pair
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class PermissionLevel(str, Enum):
    """Repository permission levels, following GitHub's permission model.

    Members are declared in hierarchy order; ``rank`` gives the position
    used for "at least as privileged as" comparisons.

    Example:
        >>> PermissionLevel.WRITE.rank
        2
        >>> PermissionLevel.ADMIN >= PermissionLevel.READ
        True
    """

    NONE = "none"
    READ = "read"
    WRITE = "write"
    MAINTAIN = "maintain"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def role(self) -> str:
        """Human readable role derived from the level."""
        return _ROLES[self]

    @classmethod
    def parse(cls, label: Any) -> "PermissionLevel":
        """Map a provider label to a level; anything unrecognized is ``none``."""
        if isinstance(label, cls):
            return label
        try:
            return cls(str(label).strip().lower())
        except ValueError:
            return cls.NONE

    def __ge__(self, other: "PermissionLevel") -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: "PermissionLevel") -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: "PermissionLevel") -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: "PermissionLevel") -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank < other.rank


_RANKS = {
    PermissionLevel.NONE: 0,
    PermissionLevel.READ: 1,
    PermissionLevel.WRITE: 2,
    PermissionLevel.MAINTAIN: 3,
    PermissionLevel.ADMIN: 4,
}

_ROLES = {
    PermissionLevel.ADMIN: "Admin",
    PermissionLevel.MAINTAIN: "Maintainer",
    PermissionLevel.WRITE: "Collaborator",
    PermissionLevel.READ: "Collaborator",
    PermissionLevel.NONE: "Denied",
}

# actions accepted by ``can_perform``; ``none`` is a level, not an action
ACTIONS = frozenset({"read", "write", "maintain", "admin"})


class Identity(BaseModel):
    """User profile returned by the identity provider."""
    model_config = ConfigDict(extra="ignore")

    id: int
    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    bio: Optional[str] = None
    public_repos: int = 0
    followers: int = 0
    following: int = 0

    @property
    def display_name(self) -> str:
        return self.name or self.login


class TokenGrant(BaseModel):
    """Result of exchanging an OAuth code for an access token."""
    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "bearer"
    scopes: list[str] = []


@dataclass(frozen=True)
class Session:
    """Authenticated session addressed by an opaque token.

    Immutable: a refresh produces a new Session under a new token rather than
    mutating this one.

    Attributes:
        access_token: Provider credential used for upstream calls.
        identity: Provider user profile.
        scopes: Scopes granted during the handshake.
        issued_at: Epoch seconds when the session was created.
        expires_at: Epoch seconds after which the session is unusable.
        token: Opaque session token, assigned by the SessionStore.
    """

    access_token: str = field(repr=False)
    identity: Identity = field(hash=False)
    scopes: frozenset[str] = frozenset()
    issued_at: float = 0.0
    expires_at: float = 0.0
    token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.scopes, frozenset):
            object.__setattr__(self, 'scopes', frozenset(self.scopes))

    @property
    def subject_id(self) -> int:
        return self.identity.id

    @property
    def subject_name(self) -> str:
        return self.identity.login

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class AuthorizationState:
    """CSRF state record binding a login redirect to its callback."""

    nonce: str
    created_at: float
    redirect_hint: Optional[str] = None

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.created_at > ttl


@dataclass(frozen=True)
class CachedPermission:
    """Resolved permission of one subject on one repository.

    Attributes:
        subject_id: Provider numeric user id.
        subject_name: Provider login used for the lookup.
        owner: Repository owner.
        resource: Repository name.
        level: Resolved permission level.
        role: Role label derived from the level.
        cached_at: Epoch seconds of insertion; never refreshed on read.
        ttl: Seconds the entry stays fresh.
    """

    subject_id: int
    subject_name: str
    owner: str
    resource: str
    level: PermissionLevel
    role: str
    cached_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.cached_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.cached_at + self.ttl

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "repo": self.resource,
            "user": self.subject_name,
            "permission": self.level.value,
            "role": self.role,
            "cachedAt": self.cached_at,
            "ttl": self.ttl,
        }
