"""Classification of provider error codes into user-facing errors."""

from __future__ import annotations

from emmylearn.auth.models import CallbackError, ClassifiedError, ErrorKind

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.USER_CANCELLED: (
        "Sign-in was cancelled. You can try again if you'd like."
    ),
    ErrorKind.CONFIGURATION_ERROR: (
        "Invalid sign-in request. Please contact support if this continues."
    ),
    ErrorKind.SERVER_ERROR: (
        "Server error during sign-in. Please try again in a moment."
    ),
    ErrorKind.NETWORK_ERROR: (
        "Network error during sign-in. "
        "Please check your connection and try again."
    ),
    ErrorKind.UNKNOWN: "An error occurred during sign-in. Please try again.",
}

SESSION_NOT_ESTABLISHED_MESSAGE = (
    "Your sign-in session could not be established. Please try signing in again."
)

# Provider ``error`` codes, matched exactly
_CODE_TO_KIND: dict[str, ErrorKind] = {
    "access_denied": ErrorKind.USER_CANCELLED,
    "invalid_request": ErrorKind.CONFIGURATION_ERROR,
    "server_error": ErrorKind.SERVER_ERROR,
    "network_error": ErrorKind.NETWORK_ERROR,
}


def message_for(kind: ErrorKind) -> str:
    """Return the user-facing message for an error kind."""
    return ERROR_MESSAGES[kind]


def classify_error(error: CallbackError) -> ClassifiedError:
    """Map a provider error to a kind and a message.

    Unrecognised codes (including an empty ``error`` value) are UNKNOWN.

    Args:
        error: The error parsed from the callback URL.

    Returns:
        ClassifiedError carrying the original code and description.
    """
    kind = _CODE_TO_KIND.get(error.code, ErrorKind.UNKNOWN)
    return ClassifiedError(
        kind=kind,
        message=message_for(kind),
        code=error.code,
        description=error.description,
    )
