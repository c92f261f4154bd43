"""Mock provider gateway for testing.

This module provides a mock implementation of the ProviderGatewayProtocol
that can be used in tests and local development without a browser or a real
identity provider.

Callbacks are scripted per attempt, so retry and timeout behaviour can be
exercised deterministically.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any, TypeAlias
from urllib.parse import urlencode

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from emmylearn.auth.models import ProviderId, RequestConfig

# Predefined test values for consistent behavior in tests
MOCK_USER_ID = "mock-user-123"
MOCK_EMAIL = "emmy@example.com"
MOCK_AUTH_CODE = "mock-auth-code"

# Appended to the redirect address when the script has nothing else to say
SUCCESS_CALLBACK = f"?{urlencode({'code': MOCK_AUTH_CODE})}"

# Script entry that never produces a callback (exercises the timeout)
HANG = None

_DEFAULT_SESSION = object()

ScriptEntry: TypeAlias = str | BaseException | None


def error_callback(
    code: str,
    description: str | None = None,
    *,
    in_fragment: bool = False,
) -> str:
    """Build the ``?error=...`` (or ``#error=...``) suffix a provider sends.

    Args:
        code: The provider error code (e.g., "server_error").
        description: Optional ``error_description`` value.
        in_fragment: Put the parameters in the fragment instead of the query.

    Returns:
        A callback suffix suitable for MockProviderGateway's script.
    """
    params = {"error": code}
    if description is not None:
        params["error_description"] = description
    prefix = "#" if in_fragment else "?"
    return f"{prefix}{urlencode(params)}"


def mock_session_payload(
    provider: str,
    user_id: str = MOCK_USER_ID,
    email: str = MOCK_EMAIL,
) -> dict[str, Any]:
    """Return a session payload in the provider's shape."""
    return {
        "user": {
            "id": user_id,
            "email": email,
            "app_metadata": {"provider": provider},
        }
    }


class MockProviderGateway:
    """Mock implementation of ProviderGatewayProtocol for testing.

    Script entries, consumed one per ``authorize`` call:
        - "?..." or "#..." - appended to the attempt's redirect address
        - any other string - returned verbatim as the callback URL
        - an exception instance - raised from ``authorize``
        - None (``HANG``) - never returns; the orchestrator's timeout fires

    Once the script runs out every attempt succeeds.
    """

    def __init__(
        self,
        script: Iterable[ScriptEntry] = (),
        *,
        hostname: str = "localhost",
        session: Mapping[str, Any] | None | object = _DEFAULT_SESSION,
    ) -> None:
        """Initialize the mock gateway.

        Args:
            script: Callback entries for successive attempts.
            hostname: Value reported by ``current_hostname``.
            session: Payload returned by ``exchange_session``. Defaults to a
                valid session for the last provider used.
        """
        self._script: deque[ScriptEntry] = deque(script)
        self._hostname = hostname
        self._session = session
        # Track navigations for testing
        self._navigations: list[dict[str, Any]] = []
        self._exchanged: list[str] = []

    def current_hostname(self) -> str:
        return self._hostname

    def set_hostname(self, hostname: str) -> None:
        self._hostname = hostname

    def push(self, *entries: ScriptEntry) -> None:
        """Append entries to the callback script."""
        self._script.extend(entries)

    async def authorize(self, provider: ProviderId, config: RequestConfig) -> str:
        """Record the navigation and return the next scripted callback."""
        self._navigations.append(
            {
                "provider": str(provider),
                "redirect_to": config.redirect_to,
                "query_params": dict(config.query_params),
            }
        )
        entry = self._script.popleft() if self._script else SUCCESS_CALLBACK

        # Yield once so concurrent flows interleave as they would in a browser
        await asyncio.sleep(0)

        if entry is None:
            await asyncio.Event().wait()
        if isinstance(entry, BaseException):
            raise entry
        if not isinstance(entry, str):
            msg = f"Unsupported script entry: {entry!r}"
            raise TypeError(msg)
        if entry.startswith(("?", "#")):
            return f"{config.redirect_to}{entry}"
        return entry

    async def exchange_session(self, callback_url: str) -> Mapping[str, Any] | None:
        """Return the configured session payload."""
        self._exchanged.append(callback_url)
        await asyncio.sleep(0)
        if self._session is _DEFAULT_SESSION:
            provider = (
                self._navigations[-1]["provider"] if self._navigations else "google"
            )
            return mock_session_payload(provider)
        return self._session  # type: ignore[return-value]

    # Test helper methods

    def get_navigations(self) -> list[dict[str, Any]]:
        """Return the navigations made so far (for test assertions)."""
        return self._navigations.copy()

    def get_exchanged_callbacks(self) -> list[str]:
        """Return callback URLs passed to ``exchange_session``."""
        return self._exchanged.copy()

    def clear_navigations(self) -> None:
        self._navigations.clear()
        self._exchanged.clear()
