"""GitHub GraphQL and REST API client with rate limiting and retry logic."""

import hashlib
import logging
import os
import re
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, urlparse

import requests

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when the GitHub API answers with an error."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthenticationError(GitHubAPIError):
    """Raised when GitHub rejects the token."""
    pass


class RateLimitExceeded(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded."""
    pass


ROUTE_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class GitHubClient:
    """Client for the GitHub GraphQL and REST APIs with retry mechanisms."""

    DEFAULT_SERVER_URL = "https://github.com"
    MAX_RETRIES = 5
    RETRY_DELAY_SECONDS = 1
    RATE_LIMIT_BUFFER = 100  # Reserve some API calls for safety
    TIMEOUT_SECONDS = 30
    SECONDARY_RATE_LIMIT_WAIT_SECONDS = 60

    def __init__(self, token: Optional[str] = None, server_url: Optional[str] = None):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token. If None, uses GITHUB_TOKEN env var.
            server_url: GitHub server URL, e.g. https://github.example.com for Enterprise.
        """
        if token is None:
            token = os.getenv("GITHUB_TOKEN")

        self.token = token
        self.server_url = (server_url or self.DEFAULT_SERVER_URL).rstrip("/")
        self.api_url, self.graphql_url = self._api_urls(self.server_url)

        self.headers = {
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    @staticmethod
    def _api_urls(server_url: str) -> Tuple[str, str]:
        if urlparse(server_url).hostname == "github.com":
            return "https://api.github.com", "https://api.github.com/graphql"
        return f"{server_url}/api/v3", f"{server_url}/api/graphql"

    @property
    def noreply_host(self) -> str:
        """Host used in users.noreply.<host> placeholder emails."""
        return urlparse(self.server_url).hostname or "github.com"

    def options(self) -> Dict[str, Any]:
        """Settings that change API responses, without the raw token."""
        token_digest = hashlib.sha256(self.token.encode()).hexdigest() if self.token else None
        return {"api_url": self.api_url, "token_sha256": token_digest}

    def _wait_for_reset(self, response: requests.Response) -> int:
        reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
        return max(reset_time - int(time.time()), 0) + 10

    def _parse_retry_after(self, value: str) -> int:
        try:
            return max(int(value), 0)
        except ValueError:
            # HTTP-date form
            return self.SECONDARY_RATE_LIMIT_WAIT_SECONDS

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send an HTTP request, retrying transport failures and exhausted rate limits.

        Raises:
            AuthenticationError: If the token is rejected
            RateLimitExceeded: If the rate limit stays exhausted
            GitHubAPIError: For any other non-success status
            requests.RequestException: If the request fails after retries
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                response = requests.request(
                    method,
                    url,
                    headers=self.headers,
                    timeout=self.TIMEOUT_SECONDS,
                    **kwargs
                )
            except requests.exceptions.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. Retrying in {delay}s...")
                    time.sleep(delay)
                    continue
                raise

            if response.status_code == 401:
                raise AuthenticationError("Authentication failed. Check your GitHub token.", status=401)

            if response.status_code in (403, 429):
                remaining = int(response.headers.get("X-RateLimit-Remaining", 1))
                retry_after = response.headers.get("Retry-After")
                # Secondary rate limits answer with Retry-After while quota remains
                if remaining == 0 or retry_after is not None:
                    if attempt < self.MAX_RETRIES - 1:
                        if retry_after is not None:
                            wait_time = self._parse_retry_after(retry_after)
                        else:
                            wait_time = self._wait_for_reset(response)
                        logger.warning(f"Rate limit exceeded. Waiting {wait_time} seconds...")
                        time.sleep(wait_time)
                        continue
                    raise RateLimitExceeded("Rate limit exceeded", status=response.status_code)
                raise GitHubAPIError(f"Forbidden: {response.text}", status=response.status_code)

            if not response.ok:
                raise GitHubAPIError(
                    f"{method} {url} failed with status {response.status_code}: {response.text}",
                    status=response.status_code,
                )

            return response

        raise GitHubAPIError("Max retries exceeded")

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL query.

        Args:
            query: GraphQL query string
            variables: Query variables

        Returns:
            The ``data`` object of the GraphQL response
        """
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        for attempt in range(self.MAX_RETRIES):
            response = self._send("POST", self.graphql_url, json=payload)
            data = response.json()

            if "errors" not in data:
                return data.get("data") or {}

            error_messages = [err.get("message", "") for err in data["errors"]]
            if any("rate limit" in msg.lower() for msg in error_messages):
                remaining = int(response.headers.get("X-RateLimit-Remaining", 0))
                if remaining <= self.RATE_LIMIT_BUFFER and attempt < self.MAX_RETRIES - 1:
                    wait_time = self._wait_for_reset(response)
                    logger.warning(f"Rate limit approaching. Waiting {wait_time} seconds...")
                    time.sleep(wait_time)
                    continue
                raise RateLimitExceeded(f"Rate limit exceeded: {error_messages}")

            raise GitHubAPIError(f"GraphQL errors: {error_messages}")

        raise GitHubAPIError("Max retries exceeded")

    def request(self, route: str, parameters: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a REST route such as ``GET /orgs/{org}/members``.

        Placeholders are filled from ``parameters``; the remaining parameters
        become the query string for GET and the JSON body otherwise.

        Returns:
            The decoded JSON body, or None for empty responses
        """
        method, url, remaining = self.resolve_route(route, parameters or {})

        if method == "GET":
            response = self._send(method, url, params=remaining or None)
        else:
            response = self._send(method, url, json=remaining or None)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def resolve_route(self, route: str, parameters: Dict[str, Any]) -> Tuple[str, str, Dict[str, Any]]:
        """Split a route into method, absolute URL and unused parameters."""
        try:
            method, path = route.split(" ", 1)
        except ValueError:
            method, path = "GET", route

        remaining = dict(parameters)
        missing = []

        def fill(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in remaining:
                missing.append(name)
                return match.group(0)
            return quote(str(remaining.pop(name)), safe="")

        path = ROUTE_PLACEHOLDER.sub(fill, path.strip())
        if missing:
            raise ValueError(f"Missing parameters for route {route}: {', '.join(missing)}")

        return method.upper(), f"{self.api_url}{path}", remaining
