"""Shared pytest fixtures for the Warden test-suite."""
from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
# navconfig must locate the project's env/ directory, not its own install dir.
os.environ.setdefault("SITE_ROOT", str(PROJECT_ROOT))

from warden.auth.permission import Identity, TokenGrant  # noqa: E402
from warden.conf import OAuthConfig  # noqa: E402
from warden.exceptions import UpstreamFailure  # noqa: E402
from warden.providers.abstract import AbstractIdentityProvider  # noqa: E402


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(AbstractIdentityProvider):
    """In-memory identity provider with programmable answers."""

    name = "fake"

    def __init__(self):
        self.codes: dict[str, TokenGrant] = {
            "good-code": TokenGrant(
                access_token="gho_alice",
                scopes=["read:user", "user:email", "repo"],
            ),
        }
        self.identities: dict[str, Identity] = {
            "gho_alice": Identity(
                id=42,
                login="alice",
                name="Alice",
                avatar_url="https://avatars.example/alice",
                public_repos=7,
            ),
        }
        self.emails: dict[str, str] = {"gho_alice": "alice@example.com"}
        self.permissions: dict[tuple[str, str, str], str] = {}
        self.permission_error: Optional[Exception] = None
        self.permission_delay: float = 0
        self.permission_calls = 0
        self.exchange_calls = 0
        self.closed = False

    async def exchange_code(self, code, client_id, client_secret, redirect_uri):
        self.exchange_calls += 1
        grant = self.codes.get(code)
        if grant is None:
            raise UpstreamFailure("OAuth exchange failed: bad_verification_code")
        return grant

    async def get_identity(self, access_token):
        identity = self.identities.get(access_token)
        if identity is None:
            raise UpstreamFailure("GitHub API error: 401", status_code=401)
        return identity

    async def get_primary_email(self, access_token):
        return self.emails.get(access_token)

    async def get_permission(self, access_token, owner, resource, subject_name):
        self.permission_calls += 1
        if self.permission_delay:
            await asyncio.sleep(self.permission_delay)
        if self.permission_error is not None:
            raise self.permission_error
        return self.permissions.get((owner, resource, subject_name), "none")

    def authorization_url(self, client_id, redirect_uri, state, scopes=None):
        return (
            f"https://provider.example/authorize?client_id={client_id}"
            f"&state={state}&scope={','.join(scopes or [])}"
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def alice() -> Identity:
    return Identity(id=42, login="alice", name="Alice")


@pytest.fixture
def oauth() -> OAuthConfig:
    return OAuthConfig(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:8080/api/auth/callback",
        scopes=["read:user", "user:email", "repo"],
    )
