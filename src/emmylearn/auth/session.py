"""Structural validation of the session returned by the provider.

The payload shape is ``{"user": {"id", "email", "app_metadata": {...}}}``.
Only ``id`` and ``email`` are required; anything else the provider adds is
carried through in ``raw_metadata``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from emmylearn.auth.models import (
    InvalidSession,
    ProviderId,
    Session,
    SessionValidation,
    ValidSession,
)


def _provider_from_metadata(
    metadata: Mapping[str, Any],
    fallback: ProviderId | None,
) -> ProviderId | None:
    raw = metadata.get("provider")
    if isinstance(raw, str):
        try:
            return ProviderId(raw.lower())
        except ValueError:
            pass
    return fallback


def validate_session(
    candidate: Mapping[str, Any] | None,
    provider: ProviderId | None = None,
) -> SessionValidation:
    """Check that a session payload identifies a usable user.

    Args:
        candidate: Session payload from the provider, or None.
        provider: Provider the flow was started with, used when the payload
            does not name one.

    Returns:
        ValidSession wrapping a Session, or InvalidSession with a reason.
    """
    if not isinstance(candidate, Mapping):
        return InvalidSession(reason="no session returned")

    user = candidate.get("user")
    if not isinstance(user, Mapping):
        return InvalidSession(reason="session has no user")

    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        return InvalidSession(reason="user id missing or empty")

    email = user.get("email")
    if not isinstance(email, str) or "@" not in email:
        return InvalidSession(reason="user email missing or malformed")

    metadata = user.get("app_metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}

    return ValidSession(
        session=Session(
            user_id=user_id,
            email=email,
            provider=_provider_from_metadata(metadata, provider),
            raw_metadata=dict(metadata),
        )
    )
