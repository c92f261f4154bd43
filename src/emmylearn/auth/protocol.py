"""Protocol defining the provider gateway interface.

The gateway is everything outside the sign-in core: the browser navigation
to the identity provider, the redirect back, and the exchange of the callback
for a session. MockProviderGateway implements it for tests and local
development.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emmylearn.auth.models import ProviderId, RequestConfig


class ProviderGatewayProtocol(Protocol):
    """Protocol for the browser/provider side of a sign-in.

    This defines the interface the orchestrator drives during a flow.
    """

    def current_hostname(self) -> str:
        """Return the hostname the app is currently served from.

        Returns:
            Hostname without scheme or port (e.g., "localhost").
        """
        ...

    async def authorize(self, provider: ProviderId, config: RequestConfig) -> str:
        """Send the user to the provider and wait for the redirect back.

        Args:
            provider: The identity provider to sign in with.
            config: Callback address and query parameters for this attempt.

        Returns:
            The full callback URL the provider redirected to.

        Raises:
            ConnectionError: If the provider could not be reached.
        """
        ...

    async def exchange_session(self, callback_url: str) -> Mapping[str, Any] | None:
        """Exchange a successful callback for the provider's session.

        Args:
            callback_url: The callback URL returned by ``authorize``.

        Returns:
            Session payload ``{"user": {...}}``, or None if no session exists.
        """
        ...
