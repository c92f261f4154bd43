"""Parsing of the provider's redirect back to ``/auth/callback``.

Providers are inconsistent about where they put the result: some use the
query string, some the fragment. Both are read.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

from emmylearn.auth.models import CallbackError, CallbackResult, CallbackSuccess

logger = logging.getLogger(__name__)

# Parameters the provider may leave on the callback URL
OAUTH_URL_PARAMS = frozenset(
    {
        "access_token",
        "expires_in",
        "refresh_token",
        "token_type",
        "error",
        "error_description",
        "error_code",
        "state",
        "code",
    }
)


def _params(component: str) -> dict[str, str]:
    """Decode a query or fragment component, keeping the first value per key."""
    parsed = parse_qs(component, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


def parse_callback_url(url: str) -> CallbackResult:
    """Extract the sign-in result from a callback URL.

    Args:
        url: The full callback URL, or just its ``?query`` / ``#fragment``.

    Returns:
        CallbackError if an ``error`` parameter is present in the query or
        the fragment (query wins), otherwise CallbackSuccess.
    """
    parts = urlsplit(url)
    for component in (parts.query, parts.fragment):
        params = _params(component)
        if "error" in params:
            description = params.get("error_description") or None
            logger.debug(
                "Callback carried error %r (description=%r)",
                params["error"],
                description,
            )
            return CallbackError(code=params["error"], description=description)
    return CallbackSuccess()


def _strip(component: str) -> str:
    kept = [
        (key, value)
        for key, value in parse_qsl(component, keep_blank_values=True)
        if key not in OAUTH_URL_PARAMS
    ]
    return urlencode(kept)


def clean_callback_url(url: str) -> str:
    """Remove OAuth parameters from the query and fragment of ``url``.

    Other parameters are preserved. Used after a callback has been handled
    so tokens and error codes do not linger in the address bar or history.

    Args:
        url: The callback URL.

    Returns:
        The URL without OAuth parameters.
    """
    parts = urlsplit(url)
    return urlunsplit(
        (
            parts.scheme,
            parts.netloc,
            parts.path,
            _strip(parts.query),
            _strip(parts.fragment),
        )
    )
