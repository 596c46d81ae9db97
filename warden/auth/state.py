"""Short-lived, single-use OAuth state nonces (CSRF protection).

Order of operations on callback: ``consume`` validates and deletes the record
under one lock and hands the record back, so the redirect hint is read from
the consumed record instead of a second lookup after deletion.
"""
import asyncio
import secrets
import time
from typing import Callable, Optional

from navconfig.logging import logging

from ..conf import AUTH_STATE_MAX_SIZE, AUTH_STATE_TTL
from .permission import AuthorizationState


class AuthorizationStateStore:
    """In-memory map of nonce to AuthorizationState with a fixed validity window.

    At most ``max_size`` handshakes are pending at once; issuing beyond that
    drops the oldest pending nonce.
    """

    def __init__(
        self,
        ttl: int = AUTH_STATE_TTL,
        clock: Callable[[], float] = time.time,
        max_size: int = AUTH_STATE_MAX_SIZE,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be a positive integer")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._states: dict[str, AuthorizationState] = {}
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger("warden.auth.state")

    async def issue(self, redirect_hint: Optional[str] = None) -> str:
        """Create a state record and return its nonce."""
        async with self._lock:
            nonce = secrets.token_urlsafe(24)
            while nonce in self._states:
                nonce = secrets.token_urlsafe(24)
            if len(self._states) >= self.max_size:
                self._evict_oldest()
            self._states[nonce] = AuthorizationState(
                nonce=nonce,
                created_at=self._clock(),
                redirect_hint=redirect_hint,
            )
        return nonce

    async def consume(self, nonce: str) -> Optional[AuthorizationState]:
        """Validate and remove a state record in a single step.

        Returns:
            The record if it existed and was within the validity window,
            None otherwise. Expired records are dropped as well.
        """
        if not nonce:
            return None
        async with self._lock:
            state = self._states.pop(nonce, None)
        if state is None:
            return None
        if state.is_expired(self._clock(), self.ttl):
            self.logger.debug(f"OAuth state expired: {nonce[:8]}...")
            return None
        return state

    async def validate_and_consume(self, nonce: str) -> bool:
        """True once per issued nonce, if used within the validity window."""
        return await self.consume(nonce) is not None

    def redirect_hint_of(self, nonce: str) -> Optional[str]:
        """Redirect hint of a pending (unconsumed) state, without consuming it."""
        state = self._states.get(nonce)
        return state.redirect_hint if state else None

    async def sweep_expired(self) -> int:
        async with self._lock:
            now = self._clock()
            expired = [
                nonce for nonce, state in self._states.items()
                if state.is_expired(now, self.ttl)
            ]
            for nonce in expired:
                del self._states[nonce]
        if expired:
            self.logger.debug(f"Cleared {len(expired)} expired OAuth states")
        return len(expired)

    def __len__(self) -> int:
        return len(self._states)

    def _evict_oldest(self) -> None:
        # Caller holds the lock.
        oldest = min(self._states, key=lambda n: self._states[n].created_at)
        del self._states[oldest]
        self.logger.warning(f"Too many pending OAuth states, dropped {oldest[:8]}...")
