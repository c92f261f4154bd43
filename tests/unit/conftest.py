"""Shared fixtures for unit tests."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from emmylearn.auth.mock import MockProviderGateway
from emmylearn.auth.orchestrator import SignInOrchestrator
from emmylearn.auth.retry import RetryPolicy
from emmylearn.config import DeployConfig

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from emmylearn.auth.mock import ScriptEntry


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays_s: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays_s.append(seconds)

    @property
    def delays_ms(self) -> list[int]:
        return [round(s * 1000) for s in self.delays_s]


@pytest.fixture
def deploy() -> DeployConfig:
    """Default deployment settings, independent of any .env file."""
    return DeployConfig()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_orchestrator(
    deploy: DeployConfig,
    sleeper: SleepRecorder,
) -> Callable[..., tuple[SignInOrchestrator, MockProviderGateway]]:
    """Build an orchestrator over a scripted mock gateway.

    Usage:
        orchestrator, gateway = make_orchestrator(["?error=server_error"])
    """

    def _make(
        script: list[ScriptEntry] | None = None,
        *,
        hostname: str = "localhost",
        retry_policy: RetryPolicy | None = None,
        callback_timeout_ms: int = 50,
        **gateway_kwargs: object,
    ) -> tuple[SignInOrchestrator, MockProviderGateway]:
        gateway = MockProviderGateway(
            script or [], hostname=hostname, **gateway_kwargs
        )
        orchestrator = SignInOrchestrator(
            gateway,
            deploy=deploy,
            retry_policy=retry_policy or RetryPolicy(),
            callback_timeout_ms=callback_timeout_ms,
            sleep=sleeper,
        )
        return orchestrator, gateway

    return _make


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    """Remove handlers added by setup_logging after the test."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in [h for h in root.handlers if getattr(h, "_emmylearn_handler", False)]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)
