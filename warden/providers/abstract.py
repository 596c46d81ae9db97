"""Identity/permission provider contract.

The authorization core never talks to the network directly; it depends on
this interface, so tests and alternative providers plug in without touching
the stores, resolver or gate.
"""
from abc import ABC, abstractmethod
from typing import Optional

from ..auth.permission import Identity, TokenGrant
from ..exceptions import UpstreamFailure


class AbstractIdentityProvider(ABC):
    """Remote service that authenticates users and reports repository access.

    Implementations raise ``UpstreamFailure`` on network errors, non-2xx
    responses and timeouts. Callers decide how to degrade: the handshake
    aborts, the permission resolver collapses the failure to ``none``.
    """

    name: str = "abstract"

    @abstractmethod
    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> TokenGrant:
        """Exchange an OAuth authorization code for an access token."""
        ...

    @abstractmethod
    async def get_identity(self, access_token: str) -> Identity:
        """Return the profile of the user owning ``access_token``."""
        ...

    @abstractmethod
    async def get_permission(
        self,
        access_token: str,
        owner: str,
        resource: str,
        subject_name: str,
    ) -> str:
        """Return the permission label of ``subject_name`` on ``owner/resource``.

        Returns:
            One of ``admin``, ``maintain``, ``write``, ``read`` or ``none``.
        """
        ...

    @abstractmethod
    def authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        state: str,
        scopes: Optional[list[str]] = None,
    ) -> str:
        """URL the user is redirected to in order to grant access."""
        ...

    async def get_primary_email(self, access_token: str) -> Optional[str]:
        """Verified primary email, when the provider exposes one separately."""
        return None

    async def validate_token(self, access_token: str) -> bool:
        """Check that ``access_token`` is still accepted by the provider.

        Default implementation performs a lightweight identity call.
        """
        try:
            await self.get_identity(access_token)
            return True
        except UpstreamFailure:
            return False

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None
