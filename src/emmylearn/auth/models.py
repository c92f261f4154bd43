"""Data models for the sign-in flow.

These dataclasses and enums are the values passed between the environment
classifier, the redirect builder, the callback parser, the error classifier,
the retry policy, the session validator and the orchestrator. Variants that
form a closed union (callback results, retry decisions, outcomes) are
separate frozen dataclasses joined with a type alias so ``match`` can cover
them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from emmylearn.auth.trace import FlowTrace


class Environment(StrEnum):
    """Where the app is running, derived from the page hostname."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ProviderId(StrEnum):
    """Supported OAuth identity providers."""

    GOOGLE = "google"
    APPLE = "apple"


class ErrorKind(StrEnum):
    """Semantic category of a sign-in failure."""

    USER_CANCELLED = "user_cancelled"
    CONFIGURATION_ERROR = "configuration_error"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown_error"


class FlowState(StrEnum):
    """States of one sign-in flow."""

    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_CALLBACK = "awaiting_callback"
    SUCCEEDED = "succeeded"
    CLASSIFYING_ERROR = "classifying_error"
    RETRY_SCHEDULED = "retry_scheduled"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({FlowState.COMPLETED, FlowState.FAILED, FlowState.CANCELLED})


@dataclass(frozen=True)
class RequestConfig:
    """Authorization request handed to the browser for one attempt.

    Attributes:
        redirect_to: Absolute callback URL ending in ``/auth/callback``.
        query_params: Extra query parameters sent to the provider.
    """

    redirect_to: str
    query_params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the mapping so a consumer cannot mutate a shared config
        object.__setattr__(
            self, "query_params", MappingProxyType(dict(self.query_params))
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire shape consumed by the navigation collaborator."""
        return {
            "redirectTo": self.redirect_to,
            "queryParams": dict(self.query_params),
        }


# ---------------------------------------------------------------------------
# Callback results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CallbackSuccess:
    """The provider redirected back without an error."""


@dataclass(frozen=True)
class CallbackError:
    """The provider redirected back with an ``error`` parameter.

    Attributes:
        code: Raw value of the ``error`` parameter.
        description: Value of ``error_description``, if present.
    """

    code: str
    description: str | None = None


CallbackResult: TypeAlias = CallbackSuccess | CallbackError


@dataclass(frozen=True)
class ClassifiedError:
    """A provider error mapped to a kind and a user-facing message."""

    kind: ErrorKind
    message: str
    code: str
    description: str | None = None


# ---------------------------------------------------------------------------
# Retry decisions
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RetryAfter:
    """Schedule another attempt after ``delay_ms`` milliseconds."""

    delay_ms: int


@dataclass(frozen=True)
class GiveUp:
    """Stop retrying and report the failure."""


RetryDecision: TypeAlias = RetryAfter | GiveUp


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Session:
    """A validated signed-in user.

    Attributes:
        user_id: Provider-issued user ID.
        email: The user's email address.
        provider: Provider the user signed in with, if known.
        raw_metadata: The provider's ``app_metadata`` mapping, untouched.
    """

    user_id: str
    email: str
    provider: ProviderId | None = None
    raw_metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidSession:
    session: Session


@dataclass(frozen=True)
class InvalidSession:
    reason: str


SessionValidation: TypeAlias = ValidSession | InvalidSession


# ---------------------------------------------------------------------------
# Per-flow state
# ---------------------------------------------------------------------------
@dataclass
class AttemptContext:
    """Mutable state owned by exactly one in-flight sign-in flow.

    Attributes:
        flow_id: Unique ID of the flow.
        provider: Provider requested by the caller.
        trace: Event log for this flow.
        attempt_number: 0-based index of the current attempt.
        started_at: When the flow began (UTC).
        state: Current state of the flow.
    """

    flow_id: str
    provider: ProviderId
    trace: FlowTrace
    attempt_number: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    state: FlowState = FlowState.IDLE


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Completed:
    """The flow produced a validated session."""

    session: Session
    flow_id: str = ""
    attempts: int = 1


@dataclass(frozen=True)
class Failed:
    """The flow ended in an error the caller should display."""

    kind: ErrorKind
    message: str
    flow_id: str = ""
    attempts: int = 1


@dataclass(frozen=True)
class Cancelled:
    """The user (or the caller) abandoned the flow."""

    flow_id: str = ""
    attempts: int = 1


FlowOutcome: TypeAlias = Completed | Failed | Cancelled
