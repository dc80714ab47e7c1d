#!/usr/bin/env python3
"""Script to initialize the PostgreSQL response cache and drop expired entries."""

import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stale_repos.infrastructure.cache_store import PostgresCacheStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Initialize cache schema and purge expired rows."""
    try:
        cache_store = PostgresCacheStore()
        cache_store.connect()
        cache_store.initialize_schema()
        cache_store.purge_expired()
        cache_store.close()
        logger.info("Cache setup completed successfully")
        return 0
    except Exception as e:
        logger.error(f"Failed to set up cache: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
