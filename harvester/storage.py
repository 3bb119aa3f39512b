"""PostgreSQL persistence for harvested repositories."""

import logging
from typing import Any, Dict, Iterable, List, Optional

import psycopg
from psycopg.rows import dict_row

from harvester.exceptions import PersistenceError

logger = logging.getLogger(__name__)

CREATE_REPOSITORIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS repositories (
  repo_node_id TEXT PRIMARY KEY,
  repo_db_id BIGINT,
  name TEXT,
  owner TEXT,
  stars INTEGER NOT NULL DEFAULT 0,
  url TEXT,
  updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

CREATE_STARS_INDEX_SQL = "CREATE INDEX IF NOT EXISTS repositories_stars_idx ON repositories (stars DESC);"

UPSERT_REPOSITORY_SQL = """
INSERT INTO repositories (repo_node_id, repo_db_id, name, owner, stars, url, updated_at)
VALUES (%(repo_node_id)s, %(repo_db_id)s, %(name)s, %(owner)s, %(stars)s, %(url)s, NOW())
ON CONFLICT (repo_node_id) DO UPDATE
SET repo_db_id = EXCLUDED.repo_db_id,
    name = EXCLUDED.name,
    owner = EXCLUDED.owner,
    stars = EXCLUDED.stars,
    url = EXCLUDED.url,
    updated_at = NOW();
"""

SELECT_REPOSITORIES_SQL = """
SELECT repo_db_id, repo_node_id, name, owner, stars, url, updated_at
FROM repositories
ORDER BY stars DESC NULLS LAST;
"""


def dedupe_by_identity(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse records sharing a ``repo_node_id``; the last occurrence wins, first position kept."""
    by_id: Dict[str, Dict[str, Any]] = {}
    for record in records:
        by_id[record["repo_node_id"]] = record
    return list(by_id.values())


class PostgresRepositoryStore:
    """Idempotent upsert sink for repository records.

    Holds one async connection, opened on first use and released by
    :meth:`close`.
    """

    def __init__(self, conninfo: str):
        self.conninfo = conninfo
        self._conn: Optional[psycopg.AsyncConnection] = None

    @classmethod
    def from_config(cls, config) -> "PostgresRepositoryStore":
        return cls(config.conninfo)

    async def _connection(self) -> psycopg.AsyncConnection:
        if self._conn is None or self._conn.closed:
            try:
                self._conn = await psycopg.AsyncConnection.connect(self.conninfo)
            except psycopg.Error as e:
                raise PersistenceError(f"Could not connect to database: {e}") from e
        return self._conn

    async def ensure_schema(self) -> None:
        """Create the repositories table and its index if missing."""
        conn = await self._connection()
        try:
            async with conn.transaction():
                await conn.execute(CREATE_REPOSITORIES_TABLE_SQL)
                await conn.execute(CREATE_STARS_INDEX_SQL)
        except psycopg.Error as e:
            raise PersistenceError(f"Schema bootstrap failed: {e}") from e
        logger.info("Schema ready: repositories")

    async def upsert_batch(self, records: List[Dict[str, Any]]) -> int:
        """Insert or update a batch in one transaction.

        Returns:
            Number of distinct repositories written

        Raises:
            PersistenceError: nothing from the batch was committed
        """
        rows = dedupe_by_identity(records)
        if not rows:
            return 0
        conn = await self._connection()
        try:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.executemany(UPSERT_REPOSITORY_SQL, rows)
        except psycopg.Error as e:
            raise PersistenceError(f"Upsert of {len(rows)} repositories failed: {e}") from e
        logger.debug(f"Upserted {len(rows)} repositories")
        return len(rows)

    async def fetch_all(self) -> List[Dict[str, Any]]:
        """All stored repositories, most starred first."""
        conn = await self._connection()
        try:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(SELECT_REPOSITORIES_SQL)
                return await cur.fetchall()
        except psycopg.Error as e:
            raise PersistenceError(f"Reading repositories failed: {e}") from e

    async def count(self) -> int:
        conn = await self._connection()
        try:
            async with conn.cursor() as cur:
                await cur.execute("SELECT COUNT(*) FROM repositories;")
                row = await cur.fetchone()
        except psycopg.Error as e:
            raise PersistenceError(f"Counting repositories failed: {e}") from e
        return int(row[0]) if row else 0

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._conn is not None and not self._conn.closed:
            await self._conn.close()
            logger.info("Database connection closed")
        self._conn = None
