"""GraphQL transport for the GitHub repository search."""

import logging
import time
from typing import Any, Dict, NewType, Optional, TYPE_CHECKING

import httpx

from harvester.exceptions import (
    HTTPStatusError,
    NetworkError,
    ServerError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from harvester.config import Config

logger = logging.getLogger(__name__)

# Opaque pagination token issued by the search API. Never parsed or built locally.
Cursor = NewType("Cursor", str)

SEARCH_QUERY = """
query($queryString: String!, $first: Int!, $after: String) {
  rateLimit {
    limit
    cost
    remaining
    resetAt
  }
  search(query: $queryString, type: REPOSITORY, first: $first, after: $after) {
    repositoryCount
    pageInfo {
      endCursor
      hasNextPage
    }
    edges {
      node {
        ... on Repository {
          id
          databaseId
          name
          url
          stargazerCount
          owner {
            login
          }
        }
      }
    }
  }
}
"""


class GraphQLClient:
    """Issues single search calls against the GitHub GraphQL API.

    One call per ``fetch_page``; failures are mapped onto the transport
    exceptions in :mod:`harvester.exceptions` and never retried here.
    """

    def __init__(self, config: "Config"):
        """Initialize GraphQL client.

        Args:
            config: Application configuration
        """
        self.config = config
        self.endpoint = config.graphql_url
        self.query_string = config.search_query
        self.page_size = config.page_size
        self.http_timeout = config.http_timeout

    def _create_async_client(self) -> httpx.AsyncClient:
        """Create the async HTTP client carrying the bearer credential."""
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": self.config.user_agent,
        }
        if self.config.github_token:
            headers["authorization"] = f"bearer {self.config.github_token}"
        return httpx.AsyncClient(headers=headers, timeout=self.http_timeout)

    def build_variables(self, after: Optional[Cursor]) -> Dict[str, Any]:
        """Build the query variables for one page.

        Args:
            after: Cursor returned by the previous page, None for the first page

        Returns:
            GraphQL variables
        """
        return {
            "queryString": self.query_string,
            "first": self.page_size,
            "after": after,
        }

    async def fetch_page(self, client: httpx.AsyncClient, after: Optional[Cursor]) -> Dict[str, Any]:
        """Fetch a single search page.

        Args:
            client: Async HTTP client from ``_create_async_client``
            after: Pagination cursor

        Returns:
            Decoded GraphQL response body

        Raises:
            UnauthorizedError: credential rejected (HTTP 401)
            ServerError: HTTP 5xx
            HTTPStatusError: any other non-success status
            NetworkError: timeout, connection failure or undecodable body
        """
        payload = {"query": SEARCH_QUERY, "variables": self.build_variables(after)}
        t_start = time.perf_counter()
        try:
            response = await client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timeout after {self.http_timeout}s: {e}") from e
        except httpx.RequestError as e:
            # transport faults plus body decoding and redirect loops
            raise NetworkError(f"Network error: {e}") from e

        t_ms = (time.perf_counter() - t_start) * 1000
        logger.debug(f"POST {self.endpoint} -> HTTP {response.status_code} in {t_ms:.1f}ms")

        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code >= 500:
            raise ServerError(response.status_code, f"Server error {response.status_code}")
        if response.is_error:
            raise HTTPStatusError(response.status_code, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON body: {e}") from e
        if not isinstance(data, dict):
            raise NetworkError(f"Response is not a JSON object: {type(data).__name__}")
        return data
