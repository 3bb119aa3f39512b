"""Crawl checkpoint for resuming from the last persisted cursor."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ProgressManager:
    """Manages saving and loading crawl progress state."""

    def __init__(self, state_file: str = ".crawl_state.json"):
        """Initialize progress manager.

        Args:
            state_file: Path to state file for persistence
        """
        self.state_file = state_file

    def save(self, cursor: Optional[str], page_no: int, collected: int) -> None:
        """Save crawl progress state to file.

        Args:
            cursor: Cursor of the next page to request
            page_no: Pages persisted so far
            collected: Records persisted so far
        """
        try:
            state = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "cursor": cursor,
                "page_no": page_no,
                "collected": collected,
            }
            with open(self.state_file, "w") as f:
                json.dump(state, f, indent=2)
            logger.debug(f"Progress saved: {page_no} pages, {collected} records")
        except OSError as e:
            logger.warning(f"Failed to save progress: {e}")

    def load(self) -> Optional[Dict[str, Any]]:
        """Load previous crawl progress state.

        Returns:
            State dict with cursor, page_no, collected if it exists, None otherwise
        """
        if not os.path.exists(self.state_file):
            return None

        try:
            with open(self.state_file, "r") as f:
                state = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load progress: {e}")
            return None
        if not isinstance(state, dict):
            logger.warning(f"Ignoring malformed progress file {self.state_file}")
            return None
        try:
            state["page_no"] = int(state.get("page_no") or 0)
            state["collected"] = int(state.get("collected") or 0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring progress file with non-numeric counters: {self.state_file}")
            return None

        logger.info(
            f"Loaded progress: page {state.get('page_no', 0)}, "
            f"{state.get('collected', 0)} records, "
            f"cursor={bool(state.get('cursor'))}"
        )
        return state

    def clear(self) -> None:
        """Clear saved progress state."""
        if os.path.exists(self.state_file):
            try:
                os.remove(self.state_file)
                logger.info("Progress state cleared")
            except OSError as e:
                logger.warning(f"Failed to clear progress: {e}")
