"""Tests for the retry policy."""

from __future__ import annotations

import pytest

from emmylearn.auth.models import ErrorKind, GiveUp, RetryAfter
from emmylearn.auth.retry import RETRYABLE_KINDS, RetryPolicy, is_retryable
from emmylearn.config import RetryConfig


class TestIsRetryable:
    @pytest.mark.parametrize(
        "kind", [ErrorKind.SERVER_ERROR, ErrorKind.NETWORK_ERROR]
    )
    def test_transient_kinds(self, kind: ErrorKind) -> None:
        assert is_retryable(kind) is True

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.USER_CANCELLED, ErrorKind.CONFIGURATION_ERROR, ErrorKind.UNKNOWN],
    )
    def test_permanent_kinds(self, kind: ErrorKind) -> None:
        assert is_retryable(kind) is False

    def test_retryable_set(self) -> None:
        assert RETRYABLE_KINDS == {ErrorKind.SERVER_ERROR, ErrorKind.NETWORK_ERROR}


class TestBackoff:
    """Tests for RetryPolicy.delay_for."""

    def test_default_sequence(self) -> None:
        policy = RetryPolicy(max_attempts=3, base_delay_ms=1000)
        assert [policy.delay_for(i) for i in range(3)] == [1000, 2000, 4000]

    def test_custom_base(self) -> None:
        policy = RetryPolicy(base_delay_ms=250)
        assert [policy.delay_for(i) for i in range(4)] == [250, 500, 1000, 2000]

    def test_zero_base_never_waits(self) -> None:
        policy = RetryPolicy(base_delay_ms=0)
        assert policy.delay_for(5) == 0


class TestDecide:
    """Tests for RetryPolicy.decide."""

    def test_schedules_until_ceiling(self) -> None:
        policy = RetryPolicy(max_attempts=3, base_delay_ms=1000)

        assert policy.decide(ErrorKind.SERVER_ERROR, 0) == RetryAfter(delay_ms=1000)
        assert policy.decide(ErrorKind.SERVER_ERROR, 1) == RetryAfter(delay_ms=2000)
        assert policy.decide(ErrorKind.SERVER_ERROR, 2) == GiveUp()

    def test_fourth_attempt_never_scheduled(self) -> None:
        policy = RetryPolicy(max_attempts=3, base_delay_ms=1000)
        scheduled = [
            n
            for n in range(10)
            if isinstance(policy.decide(ErrorKind.NETWORK_ERROR, n), RetryAfter)
        ]
        # Retries lead to attempts 2 and 3 only
        assert scheduled == [0, 1]

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.USER_CANCELLED, ErrorKind.CONFIGURATION_ERROR, ErrorKind.UNKNOWN],
    )
    @pytest.mark.parametrize("attempt_number", [0, 1, 2, 3, 10])
    def test_never_retries_permanent_kinds(
        self, kind: ErrorKind, attempt_number: int
    ) -> None:
        assert RetryPolicy().decide(kind, attempt_number) == GiveUp()

    def test_single_attempt_policy_never_retries(self) -> None:
        policy = RetryPolicy(max_attempts=1)
        assert policy.decide(ErrorKind.SERVER_ERROR, 0) == GiveUp()


class TestConstruction:
    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError, match="base_delay_ms"):
            RetryPolicy(base_delay_ms=-1)

    def test_from_config(self) -> None:
        policy = RetryPolicy.from_config(RetryConfig(max_attempts=5, base_delay_ms=200))
        assert policy == RetryPolicy(max_attempts=5, base_delay_ms=200)
