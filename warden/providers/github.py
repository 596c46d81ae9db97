"""GitHub OAuth and repository-permission client."""
import asyncio
from typing import Any, Optional
from urllib.parse import quote, urlencode

import aiohttp
from pydantic import ValidationError
from navconfig.logging import logging

from ..conf import (
    GITHUB_API_URL,
    GITHUB_OAUTH_URL,
    GITHUB_USER_AGENT,
    OAUTH_SCOPES,
    PROVIDER_TIMEOUT,
)
from ..auth.permission import Identity, TokenGrant
from ..exceptions import UpstreamFailure
from .abstract import AbstractIdentityProvider


logger = logging.getLogger("warden.providers.github")


class GitHubProvider(AbstractIdentityProvider):
    """Talks to github.com for the OAuth handshake and collaborator lookups.

    Every request carries a bounded total timeout; a timeout is reported as
    an ``UpstreamFailure`` like any other transport error.

    Usage:
        provider = GitHubProvider()
        grant = await provider.exchange_code(code, client_id, secret, redirect_uri)
        user = await provider.get_identity(grant.access_token)
    """

    name: str = "github"

    def __init__(
        self,
        api_url: str = GITHUB_API_URL,
        oauth_url: str = GITHUB_OAUTH_URL,
        timeout: float = PROVIDER_TIMEOUT,
        user_agent: str = GITHUB_USER_AGENT,
    ):
        self.api_url = api_url.rstrip("/")
        self.oauth_url = oauth_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.user_agent = user_agent

    def _api_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "User-Agent": self.user_agent,
            "Accept": "application/vnd.github+json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body.

        Raises:
            UpstreamFailure: on transport errors, timeouts, HTTP status >= 400
                or an undecodable body.
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(
                    method,
                    url,
                    json=payload,
                    headers=headers,
                ) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        raise UpstreamFailure(
                            f"GitHub API error: {resp.status} - {body[:200]}",
                            status_code=resp.status,
                        )
                    try:
                        return await resp.json(content_type=None)
                    except ValueError as exc:
                        raise UpstreamFailure(
                            f"Failed to parse GitHub API response: {exc}"
                        ) from exc
        except asyncio.TimeoutError as exc:
            raise UpstreamFailure("GitHub API request timeout") from exc
        except aiohttp.ClientError as exc:
            logger.error(f"GitHub API request failed: {exc}")
            raise UpstreamFailure(f"GitHub API request failed: {exc}") from exc

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> TokenGrant:
        payload = {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        response = await self._request(
            "POST",
            f"{self.oauth_url}/login/oauth/access_token",
            headers=headers,
            payload=payload,
        )
        if not isinstance(response, dict):
            raise UpstreamFailure("OAuth exchange failed: unexpected response")
        if response.get("error"):
            raise UpstreamFailure(
                f"OAuth exchange failed: {response['error']}",
                status_code=400,
            )
        if not response.get("access_token"):
            raise UpstreamFailure("OAuth exchange failed: no access token returned")
        scope = response.get("scope") or ""
        logger.debug("Successfully exchanged OAuth code for access token")
        return TokenGrant(
            access_token=response["access_token"],
            token_type=response.get("token_type", "bearer"),
            scopes=[s.strip() for s in scope.split(",") if s.strip()],
        )

    async def get_identity(self, access_token: str) -> Identity:
        data = await self._request(
            "GET",
            f"{self.api_url}/user",
            headers=self._api_headers(access_token),
        )
        try:
            user = Identity.model_validate(data)
        except ValidationError as exc:
            raise UpstreamFailure(f"Invalid GitHub user payload: {exc}") from exc
        logger.debug(f"Retrieved user info: {user.login}")
        return user

    async def get_primary_email(self, access_token: str) -> Optional[str]:
        try:
            emails = await self._request(
                "GET",
                f"{self.api_url}/user/emails",
                headers=self._api_headers(access_token),
            )
        except UpstreamFailure as exc:
            logger.warning(f"Failed to get user email: {exc}")
            return None
        if not isinstance(emails, list):
            logger.warning("Unexpected /user/emails payload, ignoring")
            return None
        for entry in emails:
            if not isinstance(entry, dict):
                continue
            if entry.get("primary") and entry.get("verified"):
                return entry.get("email")
        return None

    async def get_permission(
        self,
        access_token: str,
        owner: str,
        resource: str,
        subject_name: str,
    ) -> str:
        path = "/repos/{}/{}/collaborators/{}/permission".format(
            quote(owner, safe=""),
            quote(resource, safe=""),
            quote(subject_name, safe=""),
        )
        data = await self._request(
            "GET",
            f"{self.api_url}{path}",
            headers=self._api_headers(access_token),
        )
        permission = (data or {}).get("permission", "none")
        logger.debug(
            f"Retrieved permission for {subject_name} in {owner}/{resource}: {permission}"
        )
        return permission

    async def validate_token(self, access_token: str) -> bool:
        try:
            await self.get_identity(access_token)
            return True
        except UpstreamFailure as exc:
            logger.warning(f"Token validation failed: {exc}")
            return False

    def authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        state: str,
        scopes: Optional[list[str]] = None,
    ) -> str:
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "state": state,
            "scope": ",".join(scopes or OAUTH_SCOPES),
            "allow_signup": "true",
        }
        return f"{self.oauth_url}/login/oauth/authorize?{urlencode(params)}"
