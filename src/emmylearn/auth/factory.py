"""Sign-in orchestrator factory.

Provides a factory function that wires configuration into a
SignInOrchestrator, using the mock gateway when DEV__AUTH_MOCK is enabled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from emmylearn.auth.orchestrator import SignInOrchestrator
from emmylearn.auth.retry import RetryPolicy
from emmylearn.config import get_settings

if TYPE_CHECKING:
    from emmylearn.auth.protocol import ProviderGatewayProtocol


# Cached mock gateway instance to preserve its script across requests
_mock_gateway_instance: ProviderGatewayProtocol | None = None


def get_gateway() -> ProviderGatewayProtocol:
    """Return the mock gateway when DEV__AUTH_MOCK=true.

    Raises:
        ValueError: If mock mode is disabled. Real gateways live in the
            browser shell and must be passed to ``get_orchestrator``.
    """
    global _mock_gateway_instance  # noqa: PLW0603
    settings = get_settings()

    if not settings.dev.auth_mock:
        msg = (
            "No provider gateway configured. Pass a gateway to "
            "get_orchestrator() or set DEV__AUTH_MOCK=true in your .env file."
        )
        raise ValueError(msg)

    if _mock_gateway_instance is None:
        from emmylearn.auth.mock import MockProviderGateway

        _mock_gateway_instance = MockProviderGateway(
            hostname=settings.dev.mock_hostname
        )
    return _mock_gateway_instance


def get_orchestrator(
    gateway: ProviderGatewayProtocol | None = None,
) -> SignInOrchestrator:
    """Build a SignInOrchestrator from the current settings.

    Args:
        gateway: The browser/provider gateway. Defaults to ``get_gateway()``.

    Returns:
        A configured SignInOrchestrator.
    """
    settings = get_settings()
    return SignInOrchestrator(
        gateway if gateway is not None else get_gateway(),
        deploy=settings.deploy,
        retry_policy=RetryPolicy.from_config(settings.retry),
        callback_timeout_ms=settings.flow.callback_timeout_ms,
    )


def clear_config_cache() -> None:
    """Clear the configuration and mock gateway caches.

    Useful for testing when you need to reload configuration
    or reset the mock gateway's script.
    """
    global _mock_gateway_instance  # noqa: PLW0603
    get_settings.cache_clear()
    _mock_gateway_instance = None
