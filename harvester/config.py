"""Configuration parsing and validation."""

import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class Config:
    """Application configuration with validation."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Crawl config
        self.target_repos = self._parse_positive_int("TARGET_REPOS", 100000)
        self.search_query = os.getenv("SEARCH_QUERY", "stars:>0")
        self.page_size = self._parse_page_size()
        self.resume = os.getenv("RESUME", "false").lower() in {"true", "1", "yes"}
        self.state_file = os.getenv("STATE_FILE", ".crawl_state.json")

        # GitHub config
        self.github_token: Optional[str] = os.getenv("GITHUB_TOKEN") or None
        self.graphql_url = os.getenv("GRAPHQL_URL", "https://api.github.com/graphql")
        self.http_timeout = self._parse_float("HTTP_TIMEOUT", 20.0)
        self.user_agent = os.getenv("USER_AGENT", "github-crawler")

        # Retry config
        self.retry_max_attempts = self._parse_positive_int("RETRY_MAX_ATTEMPTS", 5)
        self.retry_min_delay_ms = self._parse_float("RETRY_MIN_DELAY_MS", 1000.0)
        self.retry_factor = self._parse_float("RETRY_FACTOR", 2.0)

        # Throttling config
        self.rate_limit_threshold = self._parse_positive_int("RATE_LIMIT_THRESHOLD", 10)
        self.rate_limit_margin_ms = self._parse_float("RATE_LIMIT_MARGIN_MS", 2000.0)
        self.graphql_error_delay_ms = self._parse_float("GRAPHQL_ERROR_DELAY_MS", 5000.0)
        self.persist_error_delay_ms = self._parse_float("PERSIST_ERROR_DELAY_MS", 3000.0)
        self.page_delay_ms = self._parse_float("PAGE_DELAY_MS", 200.0)

        # Database config
        self.db_host = os.getenv("DB_HOST", "localhost")
        self.db_port = self._parse_positive_int("DB_PORT", 5432)
        self.db_user = os.getenv("DB_USER", "postgres")
        self.db_password = os.getenv("DB_PASS", "postgres")
        self.db_name = os.getenv("DB_NAME", "github_data")

        # Output config
        self.export_path = os.getenv("EXPORT_PATH", "repos_dump.csv")
        self.s3_bucket = os.getenv("S3_BUCKET") or None
        self.s3_prefix = os.getenv("S3_PREFIX", "github/repos/")
        self.aws_region = os.getenv("AWS_REGION", "us-east-1")

        self.log_level = self._parse_log_level()

    @staticmethod
    def _parse_page_size() -> int:
        """Parse and validate PAGE_SIZE environment variable.

        Returns:
            Valid page size (1-100, default 100)
        """
        page_size_env = os.getenv("PAGE_SIZE", str(MAX_PAGE_SIZE))
        try:
            page_size = int(page_size_env)
        except ValueError:
            logger.warning(f"Invalid PAGE_SIZE: {page_size_env}, using {MAX_PAGE_SIZE}")
            return MAX_PAGE_SIZE
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            logger.warning(f"PAGE_SIZE {page_size} out of range [1-{MAX_PAGE_SIZE}], clamping")
            return max(1, min(MAX_PAGE_SIZE, page_size))
        return page_size

    @staticmethod
    def _parse_log_level() -> str:
        """Parse LOG_LEVEL; unknown names fall back to INFO."""
        level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            logger.warning(f"Invalid LOG_LEVEL: {level}, using INFO")
            return "INFO"
        return level

    @staticmethod
    def _parse_positive_int(name: str, default: int) -> int:
        raw = os.getenv(name, str(default))
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"Invalid {name}: {raw}, using {default}")
            return default
        if value < 1:
            logger.warning(f"{name} must be positive, got {value}, using {default}")
            return default
        return value

    @staticmethod
    def _parse_float(name: str, default: float) -> float:
        raw = os.getenv(name, str(default))
        try:
            return max(0.0, float(raw))
        except ValueError:
            logger.warning(f"Invalid {name}: {raw}, using {default}")
            return default

    @property
    def conninfo(self) -> str:
        """libpq connection string for the repositories database."""
        return (
            f"host={self.db_host} port={self.db_port} dbname={self.db_name} "
            f"user={self.db_user} password={self.db_password}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for logging (secrets masked)."""
        return {
            "target_repos": self.target_repos,
            "search_query": self.search_query,
            "page_size": self.page_size,
            "resume": self.resume,
            "github_token": "***" if self.github_token else None,
            "db": f"{self.db_user}@{self.db_host}:{self.db_port}/{self.db_name}",
            "export_path": self.export_path,
            "s3_bucket": self.s3_bucket,
        }

    def __str__(self) -> str:
        """String representation of config."""
        return (
            f"Config(target={self.target_repos}, query={self.search_query!r}, "
            f"page_size={self.page_size}, db={self.db_host}:{self.db_port}/{self.db_name})"
        )
