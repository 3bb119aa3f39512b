"""GitHub repository harvester modules."""

from harvester.config import Config
from harvester.error_handler import ErrorHandler, RetryPolicy, call_with_retry, validate_graphql_response
from harvester.graphql_client import Cursor, GraphQLClient
from harvester.nodes import RepositoryNode, SearchPage
from harvester.progress_manager import ProgressManager
from harvester.rate_limit import QuotaSnapshot, RateLimitGovernor
from harvester.storage import PostgresRepositoryStore
from harvester.pipeline import CrawlState, run_crawl_pipeline

__all__ = [
    "Config",
    "ErrorHandler",
    "RetryPolicy",
    "call_with_retry",
    "validate_graphql_response",
    "Cursor",
    "GraphQLClient",
    "RepositoryNode",
    "SearchPage",
    "ProgressManager",
    "QuotaSnapshot",
    "RateLimitGovernor",
    "PostgresRepositoryStore",
    "CrawlState",
    "run_crawl_pipeline",
]
