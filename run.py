"""Crawl GitHub repositories into PostgreSQL until TARGET_REPOS is reached."""

import sys

from harvester.main import main

if __name__ == "__main__":
    sys.exit(main())
