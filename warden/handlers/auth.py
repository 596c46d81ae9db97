"""OAuth handshake and session management routes.

Routes (relative to the mount prefix, ``/api/auth`` by default):
    GET  /login     issue state, return the GitHub authorization URL
    GET  /callback  consume state, exchange code, create session
    GET  /me        current identity, scopes and expiry
    POST /validate  revalidate the provider credential
    POST /logout    invalidate the session
    POST /refresh   issue a new token, invalidating the old one
"""
from typing import Optional

from aiohttp import web
from navconfig.logging import logging

from ..auth.gate import AccessControlGate
from ..auth.permission import Session
from ..auth.state import AuthorizationStateStore
from ..conf import OAuthConfig
from ..exceptions import CSRFViolation, InvalidRequest, Unauthenticated
from ..providers.abstract import AbstractIdentityProvider


class AuthHandler:
    """Exposes the authorization handshake and session lifecycle over HTTP."""

    def __init__(
        self,
        gate: AccessControlGate,
        states: AuthorizationStateStore,
        provider: AbstractIdentityProvider,
        oauth: Optional[OAuthConfig] = None,
        prefix: str = "/api/auth",
    ):
        self.gate = gate
        self.sessions = gate.sessions
        self.states = states
        self.provider = provider
        self.oauth = oauth or OAuthConfig.from_env()
        self.prefix = prefix.rstrip("/")
        self.logger = logging.getLogger("warden.handlers.auth")

    def setup(self, app: web.Application) -> None:
        """Register the routes on ``app``."""
        router = app.router
        router.add_get(f"{self.prefix}/login", self.login)
        router.add_get(f"{self.prefix}/callback", self.callback)
        router.add_get(f"{self.prefix}/me", self.me)
        router.add_post(f"{self.prefix}/validate", self.validate)
        router.add_post(f"{self.prefix}/logout", self.logout)
        router.add_post(f"{self.prefix}/refresh", self.refresh)
        self.logger.debug(f"Auth routes registered under {self.prefix}")

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def login(self, request: web.Request) -> web.Response:
        self.oauth.require()
        redirect_hint = request.query.get("redirect") or "/"
        state = await self.states.issue(redirect_hint)
        auth_url = self.provider.authorization_url(
            self.oauth.client_id,
            self.oauth.redirect_uri,
            state,
            self.oauth.scopes,
        )
        return web.json_response({
            "success": True,
            "authUrl": auth_url,
            "message": f"Redirect to this URL to authenticate with {self.provider.name}",
        })

    async def callback(self, request: web.Request) -> web.Response:
        params = request.query
        if params.get("error"):
            self.logger.warning(
                f"OAuth error: {params['error']} - {params.get('error_description')}"
            )
            raise InvalidRequest(
                params.get("error_description") or params["error"],
                error_code=params["error"],
            )
        code = params.get("code")
        nonce = params.get("state")
        if not code or not nonce:
            self.logger.warning("OAuth callback missing code or state")
            raise InvalidRequest("OAuth code and state are required")

        self.oauth.require(secret=True)

        # single-use: the record is gone from here on, even if the exchange fails
        state = await self.states.consume(nonce)
        if state is None:
            self.logger.warning(
                f"Invalid or expired state in OAuth callback: {nonce[:8]}..."
            )
            raise CSRFViolation("CSRF validation failed")

        self.logger.debug("Exchanging OAuth code for access token")
        grant = await self.provider.exchange_code(
            code,
            self.oauth.client_id,
            self.oauth.client_secret,
            self.oauth.redirect_uri,
        )
        self.logger.debug("Retrieving authenticated user information")
        identity = await self.provider.get_identity(grant.access_token)
        if not identity.email:
            email = await self.provider.get_primary_email(grant.access_token)
            if email:
                identity = identity.model_copy(update={"email": email})

        session = self.sessions.new_session(
            grant.access_token,
            identity,
            scopes=grant.scopes,
        )
        token = await self.sessions.create(session)
        self.logger.info(f"User authenticated: {identity.login}")

        response = web.json_response({
            "success": True,
            "message": "Authentication successful",
            "sessionToken": token,
            "redirectUrl": state.redirect_hint or "/",
            "expiresAt": session.expires_at,
            "user": {
                "id": identity.id,
                "login": identity.login,
                "name": identity.name,
                "avatar_url": identity.avatar_url,
            },
        })
        self._set_cookie(response, token, session)
        return response

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def me(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        user = session.identity
        return web.json_response({
            "success": True,
            "user": {
                "id": user.id,
                "login": user.login,
                "name": user.name,
                "email": user.email,
                "avatar_url": user.avatar_url,
                "public_repos": user.public_repos,
                "followers": user.followers,
                "following": user.following,
            },
            "scopes": sorted(session.scopes),
            "expiresAt": session.expires_at,
        })

    async def validate(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        if not await self.provider.validate_token(session.access_token):
            await self.sessions.invalidate(session.token)
            raise Unauthenticated(
                "Session token is no longer valid",
                valid=False,
            )
        return web.json_response({
            "success": True,
            "valid": True,
            "message": "Session is valid",
            "expiresAt": session.expires_at,
        })

    async def logout(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        await self.sessions.invalidate(session.token)
        self.logger.info(f"User logged out: {session.identity.login}")
        response = web.json_response({
            "success": True,
            "message": "Logout successful",
        })
        if request.cookies.get(self.gate.cookie_name):
            response.del_cookie(self.gate.cookie_name)
        return response

    async def refresh(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        if not await self.provider.validate_token(session.access_token):
            raise Unauthenticated(
                f"Token is no longer valid with {self.provider.name}"
            )
        renewed = await self.sessions.refresh(session.token)
        if renewed is None:
            # invalidated or expired while the provider was being queried
            raise Unauthenticated("Invalid or expired session")
        token, new_session = renewed
        response = web.json_response({
            "success": True,
            "message": "Session refreshed successfully",
            "sessionToken": token,
            "expiresAt": new_session.expires_at,
        })
        if request.cookies.get(self.gate.cookie_name):
            self._set_cookie(response, token, new_session)
        return response

    def _set_cookie(
        self,
        response: web.Response,
        token: str,
        session: Session
    ) -> None:
        response.set_cookie(
            self.gate.cookie_name,
            token,
            max_age=int(session.expires_at - session.issued_at),
            httponly=True,
            samesite="Lax",
        )
