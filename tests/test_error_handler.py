"""Tests for the retry policy, the retry executor and response validation."""

from __future__ import annotations

from typing import List, Optional

import pytest

from harvester.error_handler import (
    ErrorHandler,
    RetryPolicy,
    call_with_retry,
    validate_graphql_response,
)
from harvester.exceptions import NetworkError, ServerError, UnauthorizedError


class ScriptedOperation:
    """Raises the scripted errors in order, then returns ``result``."""

    def __init__(self, errors: List[Exception], result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


# ---------------------------------------------------------------------------
# Pure decision
# ---------------------------------------------------------------------------

class TestDecide:
    policy = RetryPolicy()

    @pytest.mark.parametrize("attempt, expected_ms", [(1, 1000), (2, 2000), (3, 4000), (4, 8000)])
    def test_exponential_delays(self, attempt: int, expected_ms: float) -> None:
        decision = ErrorHandler.decide(self.policy, attempt, ServerError(502, "bad gateway"))
        assert decision.retry is True
        assert decision.delay_ms == expected_ms

    def test_gives_up_at_max_attempts(self) -> None:
        assert ErrorHandler.decide(self.policy, 5, NetworkError("reset")).retry is False

    def test_unauthorized_never_retried(self) -> None:
        decision = ErrorHandler.decide(self.policy, 1, UnauthorizedError())
        assert decision.retry is False
        assert decision.delay_ms == 0

    def test_policy_from_config(self, make_config) -> None:
        config = make_config(RETRY_MAX_ATTEMPTS=3, RETRY_MIN_DELAY_MS=250, RETRY_FACTOR=3)
        assert RetryPolicy.from_config(config) == RetryPolicy(max_attempts=3, min_delay_ms=250.0, factor=3.0)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class TestCallWithRetry:
    async def test_success_after_four_transient_failures(self, sleep) -> None:
        op = ScriptedOperation([NetworkError("a"), ServerError(500, "b"), ServerError(503, "c"), NetworkError("d")])
        attempts: List[tuple] = []

        result = await call_with_retry(
            op, RetryPolicy(), on_attempt=lambda n, err: attempts.append((n, err is None)), sleep=sleep
        )

        assert result == "ok"
        assert op.calls == 5
        assert sleep.calls == [1.0, 2.0, 4.0, 8.0]
        assert attempts == [(1, False), (2, False), (3, False), (4, False), (5, True)]

    async def test_unauthorized_aborts_without_backoff(self, sleep) -> None:
        op = ScriptedOperation([UnauthorizedError()])

        with pytest.raises(UnauthorizedError):
            await call_with_retry(op, RetryPolicy(), sleep=sleep)

        assert op.calls == 1
        assert sleep.calls == []

    async def test_unauthorized_on_later_attempt_stops_there(self, sleep) -> None:
        op = ScriptedOperation([NetworkError("a"), UnauthorizedError(), NetworkError("never reached")])

        with pytest.raises(UnauthorizedError):
            await call_with_retry(op, RetryPolicy(), sleep=sleep)

        assert op.calls == 2
        assert sleep.calls == [1.0]

    async def test_exhaustion_surfaces_last_error(self, sleep) -> None:
        errors = [ServerError(500 + i, f"fail {i}") for i in range(5)]
        op = ScriptedOperation(errors)

        with pytest.raises(ServerError) as excinfo:
            await call_with_retry(op, RetryPolicy(), sleep=sleep)

        assert excinfo.value.status_code == 504
        assert op.calls == 5
        assert len(sleep.calls) == 4

    async def test_non_transport_errors_propagate_immediately(self, sleep) -> None:
        op = ScriptedOperation([KeyError("bug")])

        with pytest.raises(KeyError):
            await call_with_retry(op, RetryPolicy(), sleep=sleep)

        assert op.calls == 1
        assert sleep.calls == []


# ---------------------------------------------------------------------------
# Response validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "body, valid",
    [
        ({"data": {"search": {}}}, True),
        ({"data": {"search": {}}, "errors": []}, True),
        ({"errors": [{"message": "Parse error"}]}, False),
        ({"data": None, "errors": [{"message": "x"}]}, False),
        ({}, False),
        ([], False),
    ],
)
def test_validate_graphql_response(body: Optional[object], valid: bool) -> None:
    assert validate_graphql_response(body) is valid
