"""Transparent response cache in front of the GitHub client."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from stale_repos.infrastructure.github_client import GitHubClient

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 3600


@dataclass
class CacheStats:
    """Running totals of cache lookups."""

    hits: int = 0
    misses: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> Optional[float]:
        """Fraction of lookups served from the cache, None before any lookup."""
        if self.total == 0:
            return None
        return self.hits / self.total


class CachedGitHubClient:
    """
    GitHub client wrapper that serves repeated calls from a key-value store.

    Calls are keyed by their descriptor (query or route), their parameters and
    the client's options, so clients with different servers or tokens can share
    one store. Failed calls are never stored. There is no locking: two callers
    racing on the same uncached key both reach GitHub and the last write wins.
    """

    def __init__(self, client: GitHubClient, cache, default_retention: int = DEFAULT_RETENTION_SECONDS):
        """
        Args:
            client: Executor for the underlying GraphQL and REST calls
            cache: Store exposing ``get(key)`` and ``set(key, value, retention_seconds)``
            default_retention: Retention used when a call does not pass one
        """
        self.client = client
        self.cache = cache
        self.default_retention = default_retention
        self.fingerprint = json.dumps(client.options(), sort_keys=True)
        self.stats = CacheStats()

    @property
    def noreply_host(self) -> str:
        return self.client.noreply_host

    def cache_key(self, descriptor: Dict[str, Any], parameters: Optional[Dict[str, Any]]) -> str:
        """
        Serialize the call signature.

        Raises:
            TypeError: If the parameters are not plain JSON values
        """
        return json.dumps(
            {**descriptor, "parameters": parameters, "client": self.fingerprint},
            sort_keys=True,
        )

    def cached_call(
        self,
        descriptor: Dict[str, Any],
        parameters: Optional[Dict[str, Any]],
        call: Callable[[], Any],
        retention: Optional[int] = None,
    ) -> Any:
        """
        Return the cached response for this call signature or perform the call.

        Args:
            descriptor: Identity of the operation, e.g. {"route": "GET /users/{username}"}
            parameters: Parameters of the call, part of the key
            call: Performs the remote call on a miss
            retention: Seconds to keep a fresh response

        Returns:
            The response payload, unchanged
        """
        key = self.cache_key(descriptor, parameters)

        cached_data = self.cache.get(key)
        if cached_data is not None:
            self.stats.hits += 1
            logger.debug(f"cache hit: {json.dumps(descriptor)[:120]} {json.dumps(parameters)}")
            return cached_data

        self.stats.misses += 1
        live_data = call()
        self.cache.set(key, live_data, self.default_retention if retention is None else retention)
        return live_data

    def graphql_cached(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
        retention: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self.cached_call(
            {"query": query},
            parameters,
            lambda: self.client.graphql(query, parameters),
            retention,
        )

    def request_cached(
        self,
        route: str,
        parameters: Optional[Dict[str, Any]] = None,
        retention: Optional[int] = None,
    ) -> Any:
        return self.cached_call(
            {"route": route},
            parameters,
            lambda: self.client.request(route, parameters),
            retention,
        )

    def log_cache_stats(self) -> None:
        hit_rate = self.stats.hit_rate
        rate = "n/a" if hit_rate is None else f"{hit_rate * 100:.1f}%"
        logger.info(f"Cache stats: hits={self.stats.hits} misses={self.stats.misses} hit rate={rate}")
