"""Shared fixtures: config from a controlled environment, fake sink, sleep recorder."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from harvester.config import Config
from harvester.exceptions import PersistenceError

GRAPHQL_URL = "https://api.github.test/graphql"
DEFAULT_RESET_AT = "2030-01-01T00:00:00Z"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def repo_node(i: int, stars: Optional[int] = 10, owner: Optional[str] = "octo") -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "id": f"R_{i}",
        "databaseId": 1000 + i,
        "name": f"repo-{i}",
        "url": f"https://github.com/octo/repo-{i}",
        "stargazerCount": stars,
        "owner": {"login": owner} if owner else None,
    }
    return node


def search_body(
    nodes: List[Dict[str, Any]],
    end_cursor: Optional[str] = None,
    has_next: bool = True,
    remaining: int = 4999,
    reset_at: str = DEFAULT_RESET_AT,
) -> Dict[str, Any]:
    return {
        "data": {
            "rateLimit": {"limit": 5000, "cost": 1, "remaining": remaining, "resetAt": reset_at},
            "search": {
                "repositoryCount": 1000000,
                "pageInfo": {"endCursor": end_cursor, "hasNextPage": has_next},
                "edges": [{"node": n} for n in nodes],
            },
        }
    }


def page_of(start: int, count: int, **kwargs: Any) -> Dict[str, Any]:
    return search_body([repo_node(i) for i in range(start, start + count)], **kwargs)


class FakeStore:
    """In-memory sink keyed by ``repo_node_id``, like the real upsert."""

    def __init__(self, failures: int = 0, rows: Optional[List[Dict[str, Any]]] = None) -> None:
        self.failures = failures
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.batches: List[List[Dict[str, Any]]] = []
        self.schema_calls = 0
        self.close_calls = 0
        self._export_rows = rows or []

    async def ensure_schema(self) -> None:
        self.schema_calls += 1

    async def upsert_batch(self, records: List[Dict[str, Any]]) -> int:
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("connection reset")
        self.batches.append(list(records))
        for record in records:
            self.rows[record["repo_node_id"]] = record
        return len(records)

    async def fetch_all(self) -> List[Dict[str, Any]]:
        return list(self._export_rows)

    async def close(self) -> None:
        self.close_calls += 1


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records requested durations in seconds."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_config(monkeypatch: pytest.MonkeyPatch) -> Callable[..., Config]:
    def _make(**env: Any) -> Config:
        base = {
            "GRAPHQL_URL": GRAPHQL_URL,
            "GITHUB_TOKEN": "test-token",
            "TARGET_REPOS": "250",
        }
        base.update({k: str(v) for k, v in env.items()})
        for key, value in base.items():
            monkeypatch.setenv(key, value)
        return Config()

    return _make


@pytest.fixture()
def config(make_config: Callable[..., Config]) -> Config:
    return make_config()


@pytest.fixture()
def sleep() -> SleepRecorder:
    return SleepRecorder()
