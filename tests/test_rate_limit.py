"""Tests for quota snapshot parsing and the rate-limit governor."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from harvester.rate_limit import QuotaSnapshot, RateLimitGovernor, parse_timestamp
from tests.conftest import search_body

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _snapshot(remaining: int, reset_in: timedelta) -> QuotaSnapshot:
    return QuotaSnapshot(limit=5000, cost=1, remaining=remaining, reset_at=NOW + reset_in)


class TestGovernor:
    def test_low_quota_waits_until_reset_plus_margin(self) -> None:
        decision = RateLimitGovernor().evaluate(_snapshot(5, timedelta(seconds=30)), now=NOW)
        assert decision.proceed is False
        assert decision.wait_ms == 32000

    def test_threshold_is_inclusive(self) -> None:
        governor = RateLimitGovernor()
        assert governor.evaluate(_snapshot(10, timedelta(minutes=5)), now=NOW).proceed is False
        assert governor.evaluate(_snapshot(11, timedelta(minutes=5)), now=NOW).proceed is True

    @pytest.mark.parametrize("remaining", [0, 1, 5, 10])
    @pytest.mark.parametrize("reset_in_s", [-3600, -2, 0, 1, 30, 3600])
    def test_wait_never_below_one_second(self, remaining: int, reset_in_s: int) -> None:
        decision = RateLimitGovernor().evaluate(_snapshot(remaining, timedelta(seconds=reset_in_s)), now=NOW)
        assert decision.proceed is False
        assert decision.wait_ms >= 1000

    def test_missing_snapshot_proceeds(self) -> None:
        assert RateLimitGovernor().evaluate(None).proceed is True

    def test_from_config(self, make_config) -> None:
        governor = RateLimitGovernor.from_config(make_config(RATE_LIMIT_THRESHOLD=50, RATE_LIMIT_MARGIN_MS=500))
        decision = governor.evaluate(_snapshot(50, timedelta(seconds=10)), now=NOW)
        assert decision.wait_ms == 10500


class TestQuotaSnapshot:
    def test_parses_rate_limit_block(self) -> None:
        snapshot = QuotaSnapshot.from_response(search_body([], remaining=42, reset_at="2024-01-01T13:00:00Z"))
        assert snapshot == QuotaSnapshot(
            limit=5000, cost=1, remaining=42, reset_at=datetime(2024, 1, 1, 13, tzinfo=timezone.utc)
        )

    def test_absent_block_is_none(self) -> None:
        assert QuotaSnapshot.from_response({"data": {"search": {}}}) is None

    def test_malformed_block_is_none(self) -> None:
        body = {"data": {"rateLimit": {"remaining": 3, "resetAt": "not a date"}}}
        assert QuotaSnapshot.from_response(body) is None

    def test_naive_timestamp_assumed_utc(self) -> None:
        assert parse_timestamp("2024-01-01T00:00:00").tzinfo == timezone.utc
