"""Export of the repositories table to CSV."""

import asyncio
import logging
import os
import sys

import pandas as pd
from dotenv import load_dotenv

from harvester.config import Config
from harvester.exceptions import CrawlerError, ExportError
from harvester.s3_uploader import S3Uploader
from harvester.storage import PostgresRepositoryStore

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["repo_db_id", "repo_node_id", "name", "owner", "stars", "url", "updated_at"]


async def export_repositories(store: PostgresRepositoryStore, output_file: str) -> int:
    """Write every stored repository to ``output_file``, most starred first.

    Returns:
        Number of rows written
    """
    rows = await store.fetch_all()
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    # Nullable integer keeps missing database ids empty instead of turning the column into floats.
    df["repo_db_id"] = df["repo_db_id"].astype("Int64")
    try:
        df.to_csv(output_file, index=False)
    except OSError as e:
        raise ExportError(f"Failed to write {output_file}: {e}") from e

    logger.info(f"Wrote {output_file} rows: {len(df)} ({os.path.getsize(output_file)} bytes)")
    return len(df)


async def run_export(config: Config) -> int:
    store = PostgresRepositoryStore.from_config(config)
    try:
        count = await export_repositories(store, config.export_path)
    finally:
        await store.close()

    uploader = S3Uploader.from_config(config)
    if uploader.enabled:
        uploader.upload(config.export_path)
    return count


def main() -> int:
    load_dotenv()
    config = Config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        asyncio.run(run_export(config))
    except CrawlerError as e:
        logger.error(f"Export failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unhandled error during export: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
