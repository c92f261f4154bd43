"""Authorization request configuration.

Builds the callback address and provider query parameters for one sign-in
attempt. Development builds point at the local dev server; anything else
points at the deployed site.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from emmylearn.auth.models import Environment, ProviderId, RequestConfig
from emmylearn.config import get_settings

if TYPE_CHECKING:
    from emmylearn.config import DeployConfig

CALLBACK_PATH = "/auth/callback"

# offline + consent forces a refresh token and an explicit consent screen
# on every sign-in, whatever the provider has cached.
OAUTH_QUERY_PARAMS: dict[str, str] = {
    "access_type": "offline",
    "prompt": "consent",
}


def get_app_url(
    environment: Environment,
    deploy: DeployConfig | None = None,
) -> str:
    """Return the application root URL for an environment.

    Args:
        environment: The classified environment.
        deploy: Deployment settings. Defaults to ``get_settings().deploy``.

    Returns:
        Root URL without a trailing slash.
    """
    if deploy is None:
        deploy = get_settings().deploy

    if environment == Environment.DEVELOPMENT:
        return f"http://localhost:{deploy.dev_port}"

    # Unrecognised environments get the production address
    base = f"https://{deploy.production_host}"
    if deploy.base_path:
        return f"{base}/{deploy.base_path}"
    return base


def build_request_config(
    environment: Environment,
    provider: ProviderId,
    deploy: DeployConfig | None = None,
) -> RequestConfig:
    """Build the authorization request for a provider.

    Every provider currently receives the same query parameters; ``provider``
    is accepted so provider-specific parameters can be added here.

    Args:
        environment: The classified environment.
        provider: The identity provider being signed in with.
        deploy: Deployment settings. Defaults to ``get_settings().deploy``.

    Returns:
        A RequestConfig for a single attempt.
    """
    return RequestConfig(
        redirect_to=f"{get_app_url(environment, deploy)}{CALLBACK_PATH}",
        query_params=OAUTH_QUERY_PARAMS,
    )
