#!/usr/bin/env python3
"""Script to report an organization's stale repositories and their affiliated users."""

import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stale_repos.application.parameters import load_parameters
from stale_repos.application.report import render_markdown
from stale_repos.application.stale_repository_service import StaleRepositoryService
from stale_repos.infrastructure.cache_store import InMemoryCacheStore, PostgresCacheStore
from stale_repos.infrastructure.cached_client import CachedGitHubClient
from stale_repos.infrastructure.github_client import GitHubClient

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main(argv=None):
    """Fetch stale repositories and print the Markdown report."""
    cache_store = None
    try:
        parameters = load_parameters(argv)

        if parameters.cache_backend == "postgres":
            cache_store = PostgresCacheStore()
            cache_store.connect()
            cache_store.initialize_schema()
        else:
            cache_store = InMemoryCacheStore()

        github_client = CachedGitHubClient(
            GitHubClient(token=parameters.token, server_url=parameters.github_server),
            cache_store,
            default_retention=parameters.cache_ttl_seconds,
        )
        service = StaleRepositoryService(github_client, parameters.stale_date)

        stale_repos = service.build_report(parameters.organization)
        print(render_markdown(parameters.organization, parameters.stale_date, stale_repos))

        github_client.log_cache_stats()
        return 0

    except Exception as e:
        logger.error(f"Report failed: {e}", exc_info=True)
        return 1

    finally:
        if isinstance(cache_store, PostgresCacheStore):
            cache_store.close()


if __name__ == "__main__":
    sys.exit(main())
