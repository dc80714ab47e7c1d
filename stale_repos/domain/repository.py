"""Domain entities for stale GitHub repositories."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from stale_repos.domain.affiliation import AffiliationList


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp, tolerating missing values."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class StaleRepository:
    """Repository whose last push predates the stale cutoff."""

    name: str
    description: str = ""
    updated_at: Optional[datetime] = None
    pushed_at: Optional[datetime] = None
    latest_release: Optional[datetime] = None
    affiliations: AffiliationList = field(default_factory=AffiliationList)

    @classmethod
    def from_timestamps(
        cls,
        name: str,
        description: str,
        updated_at: Optional[str],
        pushed_at: Optional[str],
        latest_release: Optional[str],
    ) -> "StaleRepository":
        """
        Build an entry whose ``updated_at`` is the most recent activity signal.

        Args:
            name: Repository name
            description: Repository description, may be empty
            updated_at: Repository update timestamp
            pushed_at: Last push timestamp
            latest_release: Creation timestamp of the latest release, if any
        """
        pushed = parse_timestamp(pushed_at)
        release = parse_timestamp(latest_release)
        signals = [ts for ts in (parse_timestamp(updated_at), pushed, release) if ts is not None]

        return cls(
            name=name,
            description=description,
            updated_at=max(signals) if signals else None,
            pushed_at=pushed,
            latest_release=release,
        )
