"""In-memory session store addressed by opaque tokens.

Sessions expire three ways, all observably identical to "not found":
- lazily, when ``get`` finds ``now > expires_at``;
- passively, through an event-loop timer scheduled at creation;
- in bulk, through ``sweep_expired`` run by the background scheduler.

The lazy check is the correctness backstop; timers and sweeps only keep
memory bounded.
"""
import asyncio
import dataclasses
import secrets
import string
import time
from typing import Callable, Optional

from navconfig.logging import logging

from ..conf import SESSION_CAPACITY_HINT, SESSION_TOKEN_LENGTH, SESSION_TTL
from .permission import Session


TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_session_token(length: int = SESSION_TOKEN_LENGTH) -> str:
    """Return a random alphanumeric token of ``length`` characters."""
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def _mask(token: str) -> str:
    return f"{token[:8]}..."


class SessionStore:
    """Concurrency-safe map of session token to Session.

    All mutating operations take an asyncio.Lock, shared with the background
    sweep, so request handlers and the scheduler never interleave writes.

    Example:
        >>> store = SessionStore()
        >>> token = await store.create(session)
        >>> (await store.get(token)).identity.login
        'alice'
    """

    # seconds to wait before retrying a timer that fired ahead of the clock
    expiry_retry: float = 1.0

    def __init__(
        self,
        ttl: int = SESSION_TTL,
        token_length: int = SESSION_TOKEN_LENGTH,
        capacity_hint: int = SESSION_CAPACITY_HINT,
        clock: Callable[[], float] = time.time,
        passive_expiry: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            ttl: Default session lifetime in seconds, used by ``new_session``
                and ``refresh``.
            token_length: Length of generated tokens.
            capacity_hint: Reported by ``stats``; not enforced.
            clock: Returns the current time as epoch seconds.
            passive_expiry: Schedule a removal timer for every session.
        """
        self.ttl = ttl
        self.token_length = token_length
        self.capacity_hint = capacity_hint
        self._clock = clock
        self._passive_expiry = passive_expiry
        self._sessions: dict[str, Session] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._pending: set[asyncio.Future] = set()
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger("warden.auth.session")

    def new_session(
        self,
        access_token: str,
        identity,
        scopes=(),
        ttl: Optional[int] = None,
    ) -> Session:
        """Build a Session issued now and expiring after ``ttl`` seconds."""
        now = self._clock()
        return Session(
            access_token=access_token,
            identity=identity,
            scopes=frozenset(scopes),
            issued_at=now,
            expires_at=now + (ttl if ttl is not None else self.ttl),
        )

    async def create(self, session: Session) -> str:
        """Store a session under a fresh unique token and return the token."""
        async with self._lock:
            token = self._unique_token()
            self._sessions[token] = dataclasses.replace(session, token=token)
            self._schedule_expiry(token, session.expires_at)
        self.logger.debug(
            f"Session stored for user: {session.identity.login} ({_mask(token)})"
        )
        return token

    async def get(self, token: str) -> Optional[Session]:
        """Return the session for ``token`` if present and unexpired.

        An expired session is removed as a side effect and reported as
        not found.
        """
        if not token:
            return None
        async with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                self._remove(token)
                self.logger.warning(f"Session token expired: {_mask(token)}")
                return None
            return session

    async def invalidate(self, token: str) -> bool:
        """Remove a session unconditionally. Idempotent.

        Returns:
            True if a session was removed.
        """
        async with self._lock:
            removed = self._remove(token)
        if removed:
            self.logger.debug(f"Session invalidated: {_mask(token)}")
        return removed

    async def refresh(
        self,
        token: str,
        ttl: Optional[int] = None
    ) -> Optional[tuple[str, Session]]:
        """Replace a session wholesale: new token, new expiry, old token gone.

        Returns:
            ``(new_token, new_session)``, or None when ``token`` is not an
            active session.
        """
        async with self._lock:
            current = self._sessions.get(token)
            now = self._clock()
            if current is None or current.is_expired(now):
                self._remove(token)
                return None
            new_token = self._unique_token()
            renewed = dataclasses.replace(
                current,
                token=new_token,
                issued_at=now,
                expires_at=now + (ttl if ttl is not None else self.ttl),
            )
            self._sessions[new_token] = renewed
            self._schedule_expiry(new_token, renewed.expires_at)
            self._remove(token)
        self.logger.debug(
            f"Session refreshed for user: {renewed.identity.login} "
            f"({_mask(token)} -> {_mask(new_token)})"
        )
        return new_token, renewed

    async def sweep_expired(self) -> int:
        """Remove every expired session; returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [
                token for token, session in self._sessions.items()
                if session.is_expired(now)
            ]
            for token in expired:
                self._remove(token)
        if expired:
            self.logger.debug(f"Cleared {len(expired)} expired sessions")
        return len(expired)

    def stats(self) -> dict[str, int]:
        return {
            "active_count": len(self._sessions),
            "capacity_hint": self.capacity_hint,
        }

    def __len__(self) -> int:
        return len(self._sessions)

    def _unique_token(self) -> str:
        token = generate_session_token(self.token_length)
        while token in self._sessions:
            token = generate_session_token(self.token_length)
        return token

    def _remove(self, token: str) -> bool:
        timer = self._timers.pop(token, None)
        if timer is not None:
            timer.cancel()
        return self._sessions.pop(token, None) is not None

    def _schedule_expiry(
        self,
        token: str,
        expires_at: float,
        minimum: float = 0
    ) -> None:
        if not self._passive_expiry:
            return
        loop = asyncio.get_running_loop()
        delay = max(expires_at - self._clock(), minimum)
        self._timers[token] = loop.call_later(delay, self._fire_expiry, token)

    def _fire_expiry(self, token: str) -> None:
        task = asyncio.ensure_future(self._expire(token))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _expire(self, token: str) -> None:
        async with self._lock:
            self._timers.pop(token, None)
            session = self._sessions.get(token)
            if session is None:
                return
            if not session.is_expired(self._clock()):
                # fired ahead of the clock: try again later
                self._schedule_expiry(
                    token, session.expires_at, minimum=self.expiry_retry
                )
                return
            self._sessions.pop(token, None)
            self.logger.debug(
                f"Session expired: {session.identity.login} ({_mask(token)})"
            )
