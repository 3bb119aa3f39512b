"""
Repository Harvester Pipeline

Drives cursor pagination over the repository search, one page at a time.
Each page goes through the retry wrapper and the rate-limit governor, is
normalized, and is upserted as one batch before the cursor advances.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

from harvester.error_handler import RetryPolicy, call_with_retry, validate_graphql_response
from harvester.exceptions import PersistenceError, TransportError
from harvester.graphql_client import Cursor, GraphQLClient
from harvester.nodes import SearchPage
from harvester.progress_manager import ProgressManager
from harvester.rate_limit import RateLimitGovernor

if TYPE_CHECKING:
    from harvester.config import Config
    from harvester.storage import PostgresRepositoryStore

logger = logging.getLogger(__name__)

STOP_TARGET_REACHED = "target_reached"
STOP_NO_MORE_PAGES = "no_more_pages"
STOP_NO_CURSOR = "no_cursor"
STOP_EMPTY_PAGE = "empty_page"
STOP_FATAL = "fatal"

# Reasons meaning the result set itself is exhausted; a checkpoint is no longer useful.
EXHAUSTED_REASONS = {STOP_NO_MORE_PAGES, STOP_NO_CURSOR, STOP_EMPTY_PAGE}


@dataclass
class CrawlState:
    """Mutable crawl position, owned by ``run_crawl_pipeline``."""

    target: int
    cursor: Optional[Cursor] = None
    page_no: int = 0
    requests: int = 0
    collected: int = 0
    graphql_error_retries: int = 0
    persist_retries: int = 0
    rate_limit_pauses: int = 0
    stop_reason: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def fatal(self) -> bool:
        return self.stop_reason == STOP_FATAL


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _short(cursor: Optional[Cursor]) -> str:
    return f"{cursor[:6]}..." if cursor else "null"


def _log_attempt(attempt: int, error: Optional[BaseException]) -> None:
    if error is None:
        logger.debug(f"GitHub call attempt {attempt} succeeded")
    else:
        logger.debug(f"GitHub call attempt {attempt} failed: {error}")


async def run_crawl_pipeline(
    config: "Config",
    store: "PostgresRepositoryStore",
    graphql_client: Optional[GraphQLClient] = None,
    progress_mgr: Optional[ProgressManager] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], datetime] = _utcnow,
) -> CrawlState:
    """
    Crawl search pages until the target is reached or the results run out.

    Args:
        config: Application configuration
        store: Persistence sink with an async ``upsert_batch(records)``
        graphql_client: Transport client (built from config if omitted)
        progress_mgr: Checkpoint store; state is restored from and saved to it
        sleep: Coroutine used for every pause, in seconds
        clock: Current UTC time, used against the quota reset time

    Returns:
        Final crawl state; ``stop_reason`` tells why the loop ended
    """
    graphql_client = graphql_client or GraphQLClient(config)
    retry_policy = RetryPolicy.from_config(config)
    governor = RateLimitGovernor.from_config(config)
    state = CrawlState(target=config.target_repos)

    if progress_mgr is not None:
        saved = progress_mgr.load()
        if saved:
            state.cursor = saved.get("cursor")
            state.page_no = int(saved.get("page_no") or 0)
            state.collected = int(saved.get("collected") or 0)

    logger.info(
        f"Starting crawl: target={state.target}, page_size={graphql_client.page_size}, "
        f"query={graphql_client.query_string!r}, resumed_at={state.collected}"
    )

    async with graphql_client._create_async_client() as aclient:
        while state.collected < state.target:
            cursor = state.cursor
            state.requests += 1
            logger.info(f"Requesting page {state.page_no + 1}, after cursor: {_short(cursor)}")

            try:
                data = await call_with_retry(
                    lambda: graphql_client.fetch_page(aclient, cursor),
                    retry_policy,
                    on_attempt=_log_attempt,
                    sleep=sleep,
                )
            except TransportError as e:
                logger.error(f"Fatal error calling GitHub: {e}")
                state.stop_reason = STOP_FATAL
                state.error = e
                break

            if not validate_graphql_response(data):
                state.graphql_error_retries += 1
                logger.warning(
                    f"Response rejected, retrying same page in {config.graphql_error_delay_ms / 1000:.1f}s "
                    f"(cumulative graphql_error_retries={state.graphql_error_retries})"
                )
                await sleep(config.graphql_error_delay_ms / 1000.0)
                continue

            page = SearchPage.from_response(data)
            if page.quota:
                logger.info(
                    f"RateLimit: remaining={page.quota.remaining} cost={page.quota.cost} "
                    f"resetAt={page.quota.reset_at.isoformat()}"
                )
            decision = governor.evaluate(page.quota, now=clock())
            if not decision.proceed:
                state.rate_limit_pauses += 1
                logger.warning(
                    f"Approaching rate limit. Sleeping {decision.wait_ms / 1000:.0f}s until reset, "
                    f"then retrying the same page"
                )
                await sleep(decision.wait_ms / 1000.0)
                continue

            records = page.records()
            if not records:
                logger.info("No more results from search. Stopping.")
                state.stop_reason = STOP_EMPTY_PAGE
                break

            try:
                await store.upsert_batch(records)
            except PersistenceError as e:
                state.persist_retries += 1
                logger.error(
                    f"DB upsert error: {e}. Retrying same page in {config.persist_error_delay_ms / 1000:.1f}s "
                    f"(cumulative persist_retries={state.persist_retries})"
                )
                await sleep(config.persist_error_delay_ms / 1000.0)
                continue

            state.collected += len(records)
            state.page_no += 1
            state.cursor = page.end_cursor
            logger.info(
                f"Processed page {state.page_no} items={len(records)} "
                f"total={state.collected}/{state.target} has_next={page.has_next_page} "
                f"repository_count={page.repository_count}"
            )
            if progress_mgr is not None:
                progress_mgr.save(state.cursor, state.page_no, state.collected)

            if not page.has_next_page:
                logger.info("No more pages available from GitHub search.")
                state.stop_reason = STOP_NO_MORE_PAGES
                break
            if not state.cursor:
                logger.warning("hasNextPage=True but no endCursor returned. Stopping.")
                state.stop_reason = STOP_NO_CURSOR
                break
            if state.collected >= state.target:
                break

            await sleep(config.page_delay_ms / 1000.0)

    if state.stop_reason is None:
        state.stop_reason = STOP_TARGET_REACHED

    if progress_mgr is not None and state.stop_reason in EXHAUSTED_REASONS:
        progress_mgr.clear()

    logger.info(
        f"Crawl finished: reason={state.stop_reason} collected={state.collected} pages={state.page_no} "
        f"requests={state.requests} rate_limit_pauses={state.rate_limit_pauses} "
        f"graphql_error_retries={state.graphql_error_retries} persist_retries={state.persist_retries}"
    )
    return state
