"""Application factory wiring stores, provider, gate and routes."""
import time
from typing import Callable, Optional

from aiohttp import web
from navconfig.logging import logging

from .auth import (
    AccessControlGate,
    AuthorizationStateStore,
    PermissionCache,
    PermissionResolver,
    SessionStore,
)
from .auth.gate import GATE_KEY
from .conf import (
    AUTH_STATE_TTL,
    PERMISSION_CACHE_MAX_SIZE,
    PERMISSION_CACHE_TTL,
    PERMISSION_FAILURE_TTL,
    PROVIDER_TIMEOUT,
    SESSION_TTL,
    SWEEP_INTERVAL,
    OAuthConfig,
)
from .handlers import AuthHandler, PermissionHandler, error_middleware
from .providers import AbstractIdentityProvider, GitHubProvider
from .services import SweepScheduler


SESSIONS_KEY = "warden_sessions"
STATES_KEY = "warden_states"
CACHE_KEY = "warden_permission_cache"
RESOLVER_KEY = "warden_resolver"
PROVIDER_KEY = "warden_provider"
SWEEPER_KEY = "warden_sweeper"


logger = logging.getLogger("warden.app")


def setup_warden(
    app: web.Application,
    provider: Optional[AbstractIdentityProvider] = None,
    oauth: Optional[OAuthConfig] = None,
    *,
    clock: Callable[[], float] = time.time,
    session_ttl: int = SESSION_TTL,
    state_ttl: int = AUTH_STATE_TTL,
    cache_ttl: int = PERMISSION_CACHE_TTL,
    failure_ttl: int = PERMISSION_FAILURE_TTL,
    cache_size: int = PERMISSION_CACHE_MAX_SIZE,
    sweep_interval: int = SWEEP_INTERVAL,
    api_prefix: str = "/api",
) -> AccessControlGate:
    """Install the authorization layer into an existing aiohttp application.

    Each store is created once here and shared by every request for the
    lifetime of the application; the sweep scheduler follows the app's
    startup and cleanup signals.

    Returns:
        The AccessControlGate, also reachable as ``app[GATE_KEY]``.
    """
    provider = provider or GitHubProvider(timeout=PROVIDER_TIMEOUT)
    sessions = SessionStore(ttl=session_ttl, clock=clock)
    states = AuthorizationStateStore(ttl=state_ttl, clock=clock)
    cache = PermissionCache(ttl=cache_ttl, max_size=cache_size, clock=clock)
    resolver = PermissionResolver(
        cache=cache,
        provider=provider,
        timeout=PROVIDER_TIMEOUT,
        failure_ttl=failure_ttl,
    )
    gate = AccessControlGate(sessions=sessions, resolver=resolver)

    sweeper = SweepScheduler(interval=sweep_interval)
    sweeper.register("sessions", sessions.sweep_expired)
    sweeper.register("oauth_states", states.sweep_expired)
    sweeper.register("permissions", cache.sweep_expired)

    app[SESSIONS_KEY] = sessions
    app[STATES_KEY] = states
    app[CACHE_KEY] = cache
    app[RESOLVER_KEY] = resolver
    app[PROVIDER_KEY] = provider
    app[SWEEPER_KEY] = sweeper
    app[GATE_KEY] = gate

    prefix = api_prefix.rstrip("/")
    AuthHandler(
        gate,
        states,
        provider,
        oauth=oauth,
        prefix=f"{prefix}/auth",
    ).setup(app)
    PermissionHandler(gate, prefix=f"{prefix}/permissions").setup(app)

    app.on_startup.append(_start_sweeps)
    app.on_cleanup.append(_stop_services)
    return gate


async def _start_sweeps(app: web.Application) -> None:
    app[SWEEPER_KEY].start()
    logger.info("Authentication system initialized")


async def _stop_services(app: web.Application) -> None:
    app[SWEEPER_KEY].stop()
    await app[PROVIDER_KEY].close()


def create_app(
    provider: Optional[AbstractIdentityProvider] = None,
    oauth: Optional[OAuthConfig] = None,
    **kwargs,
) -> web.Application:
    """Build a standalone aiohttp application serving the Warden API."""
    app = web.Application(middlewares=[error_middleware])
    setup_warden(app, provider=provider, oauth=oauth, **kwargs)
    app.router.add_get("/health", _health)
    return app


async def _health(request: web.Request) -> web.Response:
    app = request.app
    return web.json_response({
        "status": "ok",
        "sessions": app[SESSIONS_KEY].stats(),
        "permissionCache": app[CACHE_KEY].stats(),
        "sweeper": {"running": app[SWEEPER_KEY].running},
    })
