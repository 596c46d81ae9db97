"""Request-facing access control.

The gate ties the pieces together for a single request:
Unauthenticated -> Authenticated (valid session) -> Authorized | Forbidden.
"""
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from aiohttp import web
from navconfig.logging import logging

from ..conf import SESSION_COOKIE_NAME
from ..exceptions import Forbidden, InvalidRequest, Unauthenticated
from .permission import CachedPermission, PermissionLevel, Session
from .resolver import AbstractPermissionResolver
from .session import SessionStore


GATE_KEY = "warden_gate"
SESSION_KEY = "warden_session"


def extract_token(
    request: web.Request,
    cookie_name: str = SESSION_COOKIE_NAME
) -> Optional[str]:
    """Read the opaque session token from the Authorization header or cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


def required_level_of(value: Union[str, PermissionLevel]) -> PermissionLevel:
    """Strictly parse a required level; unknown labels are rejected.

    Raises:
        ValueError: if ``value`` is not one of none, read, write, maintain, admin.
    """
    if isinstance(value, PermissionLevel):
        return value
    if isinstance(value, str):
        try:
            return PermissionLevel(value.strip().lower())
        except ValueError:
            pass
    raise ValueError(
        f"Unknown permission level '{value}', expected one of: "
        f"{', '.join(level.value for level in PermissionLevel)}"
    )


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a permission check, with the resolved level for feedback."""

    allowed: bool
    level: PermissionLevel
    role: str
    required: PermissionLevel
    entry: Optional[CachedPermission] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "permission": self.level.value,
            "role": self.role,
            "required": self.required.value,
        }


class AccessControlGate:
    """Authenticates session tokens and enforces repository permission levels.

    Args:
        sessions: Store used to authenticate tokens.
        resolver: Resolver consulted for the caller's level.
        cookie_name: Cookie checked when no bearer token is sent.
    """

    def __init__(
        self,
        sessions: SessionStore,
        resolver: AbstractPermissionResolver,
        cookie_name: str = SESSION_COOKIE_NAME,
    ) -> None:
        self.sessions = sessions
        self.resolver = resolver
        self.cookie_name = cookie_name
        self.logger = logging.getLogger("warden.auth.gate")

    async def authenticate(self, request: web.Request) -> Session:
        """Return the session behind the request's token.

        Raises:
            Unauthenticated: when no token is sent, or it is unknown or expired.
        """
        token = extract_token(request, self.cookie_name)
        if not token:
            self.logger.warning(
                f"Unauthorized request to {request.path}: no auth token"
            )
            raise Unauthenticated("Authentication token required")
        session = await self.sessions.get(token)
        if session is None:
            self.logger.warning(
                f"Unauthorized request to {request.path}: invalid session"
            )
            raise Unauthenticated("Invalid or expired session")
        self.logger.debug(
            f"Authenticated request from user: {session.identity.login}"
        )
        return session

    async def authorize(
        self,
        session: Session,
        owner: str,
        resource: str,
        required_level: Union[str, PermissionLevel],
        force_refresh: bool = False,
    ) -> AccessDecision:
        """Resolve the session subject's level and compare it to ``required_level``.

        Raises:
            ValueError: if ``required_level`` is not a known level.
        """
        required = required_level_of(required_level)
        entry = await self.resolver.resolve(
            session.access_token,
            session.subject_id,
            session.subject_name,
            owner,
            resource,
            force_refresh=force_refresh,
        )
        return AccessDecision(
            allowed=entry.level.rank >= required.rank,
            level=entry.level,
            role=entry.role,
            required=required,
            entry=entry,
        )

    async def enforce(
        self,
        session: Session,
        owner: str,
        resource: str,
        required_level: Union[str, PermissionLevel],
    ) -> AccessDecision:
        """Like ``authorize`` but raises Forbidden when access is denied."""
        decision = await self.authorize(session, owner, resource, required_level)
        if not decision.allowed:
            self.logger.warning(
                f"User {session.subject_name} lacks permission for action "
                f"requiring {decision.required.value} in {owner}/{resource}"
            )
            raise Forbidden(
                f"This action requires {decision.required.value} permission",
                level=decision.level.value,
                role=decision.role,
                required=decision.required.value,
            )
        return decision


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def require_permission(
    required_level: Union[str, PermissionLevel],
) -> Callable[[Handler], Handler]:
    """Decorator protecting an aiohttp handler routed with ``{owner}/{resource}``.

    The gate is looked up in ``request.app``; on success the session is stored
    in ``request[SESSION_KEY]`` before the handler runs.

    Usage:
        @require_permission("write")
        async def publish(request):
            session = request[SESSION_KEY]
            ...
    """
    required = required_level_of(required_level)

    def decorator(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(request: web.Request) -> web.StreamResponse:
            gate: AccessControlGate = request.app[GATE_KEY]
            session = await gate.authenticate(request)
            owner = request.match_info.get("owner")
            resource = request.match_info.get("resource")
            if not owner or not resource:
                raise InvalidRequest("Owner and repo parameters are required")
            await gate.enforce(session, owner, resource, required)
            request[SESSION_KEY] = session
            return await handler(request)
        return wrapper
    return decorator
