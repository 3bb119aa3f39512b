"""Quota snapshot parsing and the pause-until-reset decision."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp such as ``2024-05-01T12:00:00Z`` into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class QuotaSnapshot:
    limit: int
    cost: int
    remaining: int
    reset_at: datetime

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> Optional["QuotaSnapshot"]:
        """Extract the ``rateLimit`` block from a GraphQL body, if present."""
        block = (data.get("data") or {}).get("rateLimit")
        if not isinstance(block, dict) or block.get("remaining") is None:
            return None
        try:
            return cls(
                limit=int(block.get("limit") or 0),
                cost=int(block.get("cost") or 0),
                remaining=int(block["remaining"]),
                reset_at=parse_timestamp(block["resetAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed rateLimit block {block}: {e}")
            return None


@dataclass(frozen=True)
class RateLimitDecision:
    proceed: bool
    wait_ms: float = 0.0


class RateLimitGovernor:
    """Decides from the last quota snapshot whether to pause before the next call.

    The snapshot reported by the service is taken as ground truth; the
    governor keeps no counters of its own. When it says wait, the caller
    sleeps ``wait_ms`` and re-requests the same page.
    """

    MIN_WAIT_MS = 1000.0

    def __init__(self, threshold: int = 10, safety_margin_ms: float = 2000.0):
        self.threshold = threshold
        self.safety_margin_ms = safety_margin_ms

    @classmethod
    def from_config(cls, config) -> "RateLimitGovernor":
        return cls(threshold=config.rate_limit_threshold, safety_margin_ms=config.rate_limit_margin_ms)

    def evaluate(self, snapshot: Optional[QuotaSnapshot], now: Optional[datetime] = None) -> RateLimitDecision:
        if snapshot is None or snapshot.remaining > self.threshold:
            return RateLimitDecision(proceed=True)

        now = now or datetime.now(timezone.utc)
        until_reset_ms = (snapshot.reset_at - now).total_seconds() * 1000
        wait_ms = max(self.MIN_WAIT_MS, until_reset_ms + self.safety_margin_ms)
        return RateLimitDecision(proceed=False, wait_ms=wait_ms)
