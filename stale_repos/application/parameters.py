"""Run parameters from command-line flags with environment fallback."""

import argparse
import logging
import os
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Optional, Sequence
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ORGANIZATION_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")
STALE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
CACHE_BACKENDS = ("memory", "postgres")


class ValidationError(ValueError):
    """Raised when a parameter is malformed."""
    pass


@dataclass(frozen=True)
class Parameters:
    github_server: str
    organization: str
    token: str
    stale_date: str
    cache_backend: str = "memory"
    cache_ttl_seconds: int = 3600


def validate_organization(organization: str) -> None:
    if not ORGANIZATION_PATTERN.match(organization or ""):
        raise ValidationError(f"Invalid organization syntax, must be alphanumeric with dashes. Value: {organization!r}")


def validate_stale_date(stale_date: str) -> None:
    if not STALE_DATE_PATTERN.match(stale_date or ""):
        raise ValidationError(f"Invalid stale date, must be YYYY-MM-DD. Value: {stale_date!r}")
    try:
        date.fromisoformat(stale_date)
    except ValueError as e:
        raise ValidationError(f"Invalid stale date: {e}") from e


def validate_url(name: str, url: str) -> None:
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(f"Invalid {name}, must be a valid URL. Value: {url!r}")


def validate_token(token: str) -> None:
    if not token or any(ch.isspace() for ch in token):
        raise ValidationError("Invalid token, must be a non-empty string without whitespace")


def positive_int(name: str, value) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}, must be a positive number. Value: {value!r}") from None
    if number < 1:
        raise ValidationError(f"Invalid {name}, must be a positive number. Value: {value!r}")
    return number


def calculate_stale_date(days_until_stale: int, today: Optional[date] = None) -> str:
    """Cutoff date ``days_until_stale`` days before today, as YYYY-MM-DD."""
    today = today or date.today()
    return (today - timedelta(days=days_until_stale)).isoformat()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Report an organization's repositories without recent pushes and who is affiliated with them."
    )
    parser.add_argument("--github-server-url", help="GitHub server URL (env: GITHUB_SERVER_URL)")
    parser.add_argument("--organization", help="Organization to scan (env: GITHUB_REPOSITORY_OWNER)")
    parser.add_argument("--token", help="GitHub token (env: GITHUB_TOKEN)")
    parser.add_argument("--days-until-stale", help="Days without a push before a repository is stale (env: DAYS_UNTIL_STALE)")
    parser.add_argument("--cache-backend", help="Response cache: memory or postgres (env: CACHE_BACKEND)")
    parser.add_argument("--cache-ttl-seconds", help="Seconds to keep cached responses (env: CACHE_TTL_SECONDS)")
    return parser


def load_parameters(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    today: Optional[date] = None,
) -> Parameters:
    """
    Read and validate run parameters.

    Flags win over environment variables, which win over defaults.

    Raises:
        ValidationError: If any value is malformed
    """
    environ = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)

    def pick(flag_value, env_name: str, default=None):
        if flag_value:
            return flag_value
        return environ.get(env_name) or default

    github_server = pick(args.github_server_url, "GITHUB_SERVER_URL", "https://github.com")
    validate_url("github-server-url", github_server)

    organization = pick(args.organization, "GITHUB_REPOSITORY_OWNER", "")
    validate_organization(organization)

    token = pick(args.token, "GITHUB_TOKEN", "")
    validate_token(token)

    days_until_stale = positive_int("days-until-stale", pick(args.days_until_stale, "DAYS_UNTIL_STALE", 365))

    cache_backend = pick(args.cache_backend, "CACHE_BACKEND", "memory")
    if cache_backend not in CACHE_BACKENDS:
        raise ValidationError(f"Invalid cache-backend, must be one of {', '.join(CACHE_BACKENDS)}. Value: {cache_backend!r}")

    cache_ttl_seconds = positive_int("cache-ttl-seconds", pick(args.cache_ttl_seconds, "CACHE_TTL_SECONDS", 3600))

    parameters = Parameters(
        github_server=github_server.rstrip("/"),
        organization=organization,
        token=token,
        stale_date=calculate_stale_date(days_until_stale, today),
        cache_backend=cache_backend,
        cache_ttl_seconds=cache_ttl_seconds,
    )
    logger.debug(
        f"Parameters: server={parameters.github_server} organization={parameters.organization} "
        f"stale_date={parameters.stale_date} cache={parameters.cache_backend}/{parameters.cache_ttl_seconds}s"
    )
    return parameters
