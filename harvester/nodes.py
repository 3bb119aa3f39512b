"""Search response parsing and repository record normalization."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from harvester.graphql_client import Cursor
from harvester.rate_limit import QuotaSnapshot

logger = logging.getLogger(__name__)

RECORD_FIELDS = ("repo_node_id", "repo_db_id", "name", "owner", "stars", "url")


class RepositoryNode:
    """Transforms GraphQL repository nodes into rows for the repositories table."""

    @staticmethod
    def transform(node: Dict[str, Any]) -> Dict[str, Any]:
        """Transform a GraphQL ``Repository`` node into a record.

        Args:
            node: GraphQL node (the ``node`` of a search edge)

        Returns:
            Record keyed by ``repo_node_id``; stars default to 0 and owner to None

        Raises:
            ValueError: the node carries no ``id``
        """
        node_id = node.get("id")
        if not node_id:
            raise ValueError(f"Repository node without id: {node!r}")

        owner = node.get("owner") or {}
        database_id = node.get("databaseId")
        stars = node.get("stargazerCount")

        return {
            "repo_node_id": str(node_id),
            "repo_db_id": int(database_id) if isinstance(database_id, int) else None,
            "name": node.get("name"),
            "owner": owner.get("login"),
            "stars": int(stars) if isinstance(stars, int) else 0,
            "url": node.get("url"),
        }


@dataclass
class SearchPage:
    """One page of the repository search, as returned by the API."""

    quota: Optional[QuotaSnapshot]
    repository_count: Optional[int]
    edges: List[Dict[str, Any]] = field(default_factory=list)
    end_cursor: Optional[Cursor] = None
    has_next_page: bool = False

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "SearchPage":
        search = (data.get("data") or {}).get("search") or {}
        page_info = search.get("pageInfo") or {}
        edges = search.get("edges") or []
        end_cursor = page_info.get("endCursor")
        return cls(
            quota=QuotaSnapshot.from_response(data),
            repository_count=search.get("repositoryCount"),
            edges=[e for e in edges if isinstance(e, dict)],
            end_cursor=Cursor(end_cursor) if end_cursor else None,
            has_next_page=bool(page_info.get("hasNextPage")),
        )

    def records(self) -> List[Dict[str, Any]]:
        """Normalize every edge that carries a repository node."""
        records = []
        for edge in self.edges:
            node = edge.get("node") or {}
            if not node.get("id"):
                logger.debug(f"Skipping edge without repository id: {edge}")
                continue
            records.append(RepositoryNode.transform(node))
        return records
