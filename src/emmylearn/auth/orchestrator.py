"""Sign-in flow orchestration.

Drives one OAuth sign-in from request to a terminal outcome:

    IDLE -> REQUESTING -> AWAITING_CALLBACK -> SUCCEEDED | CLASSIFYING_ERROR
         -> RETRY_SCHEDULED -> REQUESTING ... | COMPLETED | FAILED | CANCELLED

Each call to ``begin_sign_in`` owns its own AttemptContext and runs in its
own task, so concurrent sign-ins never share retry counters. Callers only
ever see the terminal FlowOutcome; intermediate retries stay inside.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import uuid4

from emmylearn.auth.callback import parse_callback_url
from emmylearn.auth.environment import classify_environment
from emmylearn.auth.errors import SESSION_NOT_ESTABLISHED_MESSAGE, classify_error
from emmylearn.auth.models import (
    AttemptContext,
    CallbackError,
    CallbackResult,
    Cancelled,
    Completed,
    ErrorKind,
    Failed,
    FlowOutcome,
    FlowState,
    GiveUp,
    InvalidSession,
    ProviderId,
    RequestConfig,
    RetryAfter,
    ValidSession,
)
from emmylearn.auth.redirect import build_request_config
from emmylearn.auth.retry import RetryPolicy
from emmylearn.auth.session import validate_session
from emmylearn.auth.trace import FlowStage, FlowTrace
from emmylearn.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from emmylearn.auth.protocol import ProviderGatewayProtocol
    from emmylearn.config import DeployConfig

logger = logging.getLogger(__name__)

# Error code used when the callback never arrives or the provider is unreachable
_NETWORK_ERROR_CODE = "network_error"

# Kinds that need operator attention rather than just a user retry
_OPERATOR_KINDS = frozenset({ErrorKind.CONFIGURATION_ERROR, ErrorKind.UNKNOWN})


@dataclass
class _ActiveFlow:
    context: AttemptContext
    task: asyncio.Task[FlowOutcome]
    cancel_requested: bool = False


class SignInOrchestrator:
    """Runs sign-in flows against a provider gateway.

    Args:
        gateway: Browser/provider collaborator.
        deploy: Deployment settings for callback URLs.
        retry_policy: Backoff and attempt ceiling.
        callback_timeout_ms: How long to wait for the provider's redirect,
            and again for the session exchange.
        sleep: Awaitable sleep in seconds; injected by tests.
        history_size: Number of finished flow traces to keep.

    Unset settings default to ``get_settings()``.
    """

    def __init__(
        self,
        gateway: ProviderGatewayProtocol,
        *,
        deploy: DeployConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        callback_timeout_ms: int | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        history_size: int = 20,
    ) -> None:
        if deploy is None or retry_policy is None or callback_timeout_ms is None:
            settings = get_settings()
            if deploy is None:
                deploy = settings.deploy
            if retry_policy is None:
                retry_policy = RetryPolicy.from_config(settings.retry)
            if callback_timeout_ms is None:
                callback_timeout_ms = settings.flow.callback_timeout_ms
        if callback_timeout_ms <= 0:
            msg = f"callback_timeout_ms must be positive, got {callback_timeout_ms}"
            raise ValueError(msg)

        self._gateway = gateway
        self._deploy = deploy
        self._policy = retry_policy
        self._callback_timeout = callback_timeout_ms / 1000
        self._sleep = sleep
        self._active: dict[str, _ActiveFlow] = {}
        self._history: deque[FlowTrace] = deque(maxlen=history_size)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Caller-facing API
    # ------------------------------------------------------------------
    async def begin_sign_in(self, provider: ProviderId | str) -> FlowOutcome:
        """Run a sign-in flow to completion.

        Args:
            provider: Provider to sign in with ("google" or "apple").

        Returns:
            Completed, Failed or Cancelled.

        Raises:
            ValueError: If ``provider`` is not a supported provider.
        """
        provider = ProviderId(provider)
        flow_id = uuid4().hex
        context = AttemptContext(
            flow_id=flow_id,
            provider=provider,
            trace=FlowTrace(flow_id=flow_id, provider=str(provider)),
        )
        task = asyncio.create_task(self._run(context), name=f"sign-in-{flow_id}")
        flow = _ActiveFlow(context=context, task=task)
        self._active[flow_id] = flow

        try:
            return await task
        except asyncio.CancelledError:
            if not flow.cancel_requested:
                raise
            context.trace.record(FlowStage.COMPLETION, "flow_cancelled_by_caller")
            logger.info("Sign-in %s cancelled by caller", flow_id)
            return self._finish(
                context,
                FlowState.CANCELLED,
                Cancelled(flow_id=flow_id, attempts=context.attempt_number + 1),
            )
        finally:
            self._active.pop(flow_id, None)

    def cancel_sign_in(self, flow_id: str | None = None) -> int:
        """Cancel one active flow, or all of them.

        Does nothing when no matching flow is in progress.

        Args:
            flow_id: Flow to cancel; None cancels every active flow.

        Returns:
            Number of flows that were cancelled.
        """
        if flow_id is None:
            targets = list(self._active.values())
        else:
            flow = self._active.get(flow_id)
            targets = [flow] if flow is not None else []

        cancelled = 0
        for flow in targets:
            if flow.task.done():
                continue
            flow.cancel_requested = True
            flow.task.cancel()
            cancelled += 1
        return cancelled

    def active_flows(self) -> list[str]:
        """Return IDs of flows still in progress."""
        return list(self._active)

    def state_of(self, flow_id: str) -> FlowState:
        """Return the state of an active flow, or IDLE if it is not active."""
        flow = self._active.get(flow_id)
        if flow is None:
            return FlowState.IDLE
        return flow.context.state

    def recent_flows(self) -> list[FlowTrace]:
        """Return traces of recently finished flows, oldest first."""
        return list(self._history)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    async def _run(self, context: AttemptContext) -> FlowOutcome:
        logger.info(
            "Sign-in %s started with %s", context.flow_id, context.provider
        )
        context.trace.record(
            FlowStage.INITIATION, "flow_started", provider=str(context.provider)
        )

        while True:
            self._transition(context, FlowState.REQUESTING)
            config = self._build_request(context)

            self._transition(context, FlowState.AWAITING_CALLBACK)
            callback_url, result = await self._await_callback(context, config)

            if not isinstance(result, CallbackError):
                self._transition(context, FlowState.SUCCEEDED)
                outcome = await self._establish_session(context, callback_url)
                if not isinstance(outcome, CallbackError):
                    return outcome
                result = outcome

            self._transition(context, FlowState.CLASSIFYING_ERROR)
            classified = classify_error(result)
            context.trace.record(
                FlowStage.ERROR_RECOVERY,
                "error_classified",
                code=classified.code,
                kind=str(classified.kind),
                description=classified.description,
            )

            if classified.kind is ErrorKind.USER_CANCELLED:
                logger.info(
                    "Sign-in %s cancelled at the provider", context.flow_id
                )
                return self._finish(
                    context,
                    FlowState.CANCELLED,
                    Cancelled(
                        flow_id=context.flow_id,
                        attempts=context.attempt_number + 1,
                    ),
                )

            match self._policy.decide(classified.kind, context.attempt_number):
                case RetryAfter(delay_ms=delay_ms):
                    logger.warning(
                        "Sign-in %s attempt %d failed with %s; retrying in %d ms",
                        context.flow_id,
                        context.attempt_number + 1,
                        classified.kind,
                        delay_ms,
                    )
                    context.attempt_number += 1
                    self._transition(context, FlowState.RETRY_SCHEDULED)
                    context.trace.record(
                        FlowStage.ERROR_RECOVERY,
                        "retry_scheduled",
                        attempt=context.attempt_number,
                        delay_ms=delay_ms,
                    )
                    await self._sleep(delay_ms / 1000)
                case GiveUp():
                    return self._fail(context, classified.kind, classified.message)

    def _build_request(self, context: AttemptContext) -> RequestConfig:
        hostname = self._gateway.current_hostname()
        environment = classify_environment(hostname)
        config = build_request_config(environment, context.provider, self._deploy)
        context.trace.record(
            FlowStage.REDIRECT,
            "request_built",
            attempt=context.attempt_number,
            environment=str(environment),
            redirect_to=config.redirect_to,
        )
        return config

    async def _await_callback(
        self,
        context: AttemptContext,
        config: RequestConfig,
    ) -> tuple[str, CallbackResult]:
        """Wait for the provider redirect, synthesising network errors."""
        try:
            callback_url = await asyncio.wait_for(
                self._gateway.authorize(context.provider, config),
                timeout=self._callback_timeout,
            )
        except TimeoutError:
            context.trace.record(
                FlowStage.CALLBACK,
                "callback_timeout",
                timeout_s=self._callback_timeout,
            )
            return "", CallbackError(
                code=_NETWORK_ERROR_CODE,
                description=(
                    f"No callback received within {self._callback_timeout:g}s"
                ),
            )
        except OSError as exc:
            context.trace.record(
                FlowStage.CALLBACK, "provider_unreachable", error=repr(exc)
            )
            return "", CallbackError(
                code=_NETWORK_ERROR_CODE,
                description=str(exc) or type(exc).__name__,
            )

        context.trace.record(FlowStage.CALLBACK, "callback_received")
        return callback_url, parse_callback_url(callback_url)

    async def _establish_session(
        self,
        context: AttemptContext,
        callback_url: str,
    ) -> FlowOutcome | CallbackError:
        """Exchange and validate the session after a successful callback.

        Returns a CallbackError when the exchange could not reach the
        provider or did not answer within the callback timeout, so the
        caller can retry it like any other network error.
        """
        try:
            payload = await asyncio.wait_for(
                self._gateway.exchange_session(callback_url),
                timeout=self._callback_timeout,
            )
        except TimeoutError:
            context.trace.record(
                FlowStage.SESSION_ESTABLISHMENT,
                "session_exchange_timeout",
                timeout_s=self._callback_timeout,
            )
            return CallbackError(
                code=_NETWORK_ERROR_CODE,
                description=(
                    f"No session received within {self._callback_timeout:g}s"
                ),
            )
        except OSError as exc:
            context.trace.record(
                FlowStage.SESSION_ESTABLISHMENT,
                "session_exchange_failed",
                error=repr(exc),
            )
            return CallbackError(
                code=_NETWORK_ERROR_CODE,
                description=str(exc) or type(exc).__name__,
            )

        match validate_session(payload, context.provider):
            case ValidSession(session=session):
                context.trace.record(
                    FlowStage.SESSION_ESTABLISHMENT,
                    "session_validated",
                    user_id=session.user_id,
                )
                logger.info(
                    "Sign-in %s completed for user %s after %d attempt(s)",
                    context.flow_id,
                    session.user_id,
                    context.attempt_number + 1,
                )
                return self._finish(
                    context,
                    FlowState.COMPLETED,
                    Completed(
                        session=session,
                        flow_id=context.flow_id,
                        attempts=context.attempt_number + 1,
                    ),
                )
            case InvalidSession(reason=reason):
                context.trace.record(
                    FlowStage.SESSION_ESTABLISHMENT,
                    "session_rejected",
                    reason=reason,
                )
                return self._fail(
                    context,
                    ErrorKind.CONFIGURATION_ERROR,
                    SESSION_NOT_ESTABLISHED_MESSAGE,
                    detail=reason,
                )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _transition(self, context: AttemptContext, state: FlowState) -> None:
        logger.debug(
            "Sign-in %s: %s -> %s", context.flow_id, context.state, state
        )
        context.state = state

    def _fail(
        self,
        context: AttemptContext,
        kind: ErrorKind,
        message: str,
        *,
        detail: str | None = None,
    ) -> FlowOutcome:
        level = logging.ERROR if kind in _OPERATOR_KINDS else logging.WARNING
        logger.log(
            level,
            "Sign-in %s failed with %s after %d attempt(s)%s",
            context.flow_id,
            kind,
            context.attempt_number + 1,
            f": {detail}" if detail else "",
        )
        return self._finish(
            context,
            FlowState.FAILED,
            Failed(
                kind=kind,
                message=message,
                flow_id=context.flow_id,
                attempts=context.attempt_number + 1,
            ),
        )

    def _finish(
        self,
        context: AttemptContext,
        state: FlowState,
        outcome: FlowOutcome,
    ) -> FlowOutcome:
        self._transition(context, state)
        context.trace.record(FlowStage.COMPLETION, f"flow_{state}")
        context.trace.finish()
        self._history.append(context.trace)
        return outcome
