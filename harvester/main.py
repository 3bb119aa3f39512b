"""Crawler entry point: schema readiness, crawl loop, teardown."""

import asyncio
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from harvester.config import Config
from harvester.graphql_client import GraphQLClient
from harvester.pipeline import CrawlState, run_crawl_pipeline
from harvester.progress_manager import ProgressManager
from harvester.storage import PostgresRepositoryStore

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def crawl(config: Config, store: Optional[PostgresRepositoryStore] = None) -> CrawlState:
    """Ensure the schema, run the crawl, and always release the store."""
    store = store or PostgresRepositoryStore.from_config(config)
    progress_mgr = ProgressManager(config.state_file) if config.resume else None
    try:
        await store.ensure_schema()
        state = await run_crawl_pipeline(
            config,
            store,
            graphql_client=GraphQLClient(config),
            progress_mgr=progress_mgr,
        )
        logger.info(f"Crawl complete. Collected: {state.collected} (target {state.target})")
        return state
    finally:
        await store.close()


def main() -> int:
    """Run the crawler.

    Returns:
        Process exit code: 0 on graceful completion, 1 on a fatal
        transport failure or any unhandled error
    """
    load_dotenv()
    config = Config()
    setup_logging(config.log_level)

    if not config.github_token:
        logger.warning("GITHUB_TOKEN not set; set it in .env or the environment to avoid strict rate limits.")
    logger.info(f"Starting crawler. Target repos: {config.target_repos}")
    logger.debug(f"Configuration: {config.to_dict()}")

    try:
        state = asyncio.run(crawl(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return 1

    return 1 if state.fatal else 0


if __name__ == "__main__":
    sys.exit(main())
