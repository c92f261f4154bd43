"""Sign-in module for Emmy's Learning App.

Runs OAuth sign-in with Google or Apple:
- Environment-aware callback addresses
- Callback parsing and error classification
- Automatic retry with exponential backoff for transient failures
- Session validation before the flow completes

Usage:
    from emmylearn.auth import get_orchestrator

    orchestrator = get_orchestrator(gateway)
    outcome = await orchestrator.begin_sign_in("google")

    match outcome:
        case Completed(session=session):
            ...
        case Failed(message=message):
            ...
        case Cancelled():
            ...
"""

from __future__ import annotations

from emmylearn.auth.callback import clean_callback_url, parse_callback_url
from emmylearn.auth.environment import classify_environment, is_development
from emmylearn.auth.errors import classify_error, message_for
from emmylearn.auth.factory import clear_config_cache, get_orchestrator
from emmylearn.auth.models import (
    CallbackError,
    CallbackSuccess,
    Cancelled,
    Completed,
    Environment,
    ErrorKind,
    Failed,
    FlowOutcome,
    FlowState,
    ProviderId,
    RequestConfig,
    Session,
)
from emmylearn.auth.orchestrator import SignInOrchestrator
from emmylearn.auth.protocol import ProviderGatewayProtocol
from emmylearn.auth.redirect import build_request_config, get_app_url
from emmylearn.auth.retry import RetryPolicy, is_retryable
from emmylearn.auth.session import validate_session

__all__ = [
    "CallbackError",
    "CallbackSuccess",
    "Cancelled",
    "Completed",
    "Environment",
    "ErrorKind",
    "Failed",
    "FlowOutcome",
    "FlowState",
    "ProviderGatewayProtocol",
    "ProviderId",
    "RequestConfig",
    "RetryPolicy",
    "Session",
    "SignInOrchestrator",
    "build_request_config",
    "classify_environment",
    "classify_error",
    "clean_callback_url",
    "clear_config_cache",
    "get_app_url",
    "get_orchestrator",
    "is_development",
    "is_retryable",
    "message_for",
    "parse_callback_url",
    "validate_session",
]
