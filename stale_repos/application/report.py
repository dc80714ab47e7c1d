"""Markdown rendering of the stale repository report."""

from datetime import datetime
from typing import Iterable, List, Optional

from stale_repos.domain.affiliation import AffiliatedUser
from stale_repos.domain.repository import StaleRepository


def _format_date(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else "never"


def format_user(user: AffiliatedUser) -> str:
    parts = [user.login or "(unknown login)"]
    if user.name:
        parts.append(f"({user.name})")
    if user.email:
        parts.append(f"<{user.email}>")
    line = " ".join(parts)
    if user.permission:
        line += f" [{user.permission}]"
    if user.affiliation:
        line += f" via {user.affiliation}"
    return line


def render_repository(repository: StaleRepository) -> List[str]:
    lines = [f"## {repository.name}"]
    if repository.description:
        lines += ["", f"_{repository.description}_"]
    lines += [
        "",
        f"- Last activity: {_format_date(repository.updated_at)}",
        f"- Last pushed: {_format_date(repository.pushed_at)}",
        f"- Latest release: {_format_date(repository.latest_release)}",
        "",
        "Affiliated users:",
        "",
    ]
    if repository.affiliations:
        lines += [f"* {format_user(user)}" for user in repository.affiliations]
    else:
        lines.append("* none found")
    return lines


def render_markdown(organization: str, stale_date: str, repositories: Iterable[StaleRepository]) -> str:
    """Render the whole report as a Markdown document."""
    repositories = list(repositories)
    lines = [
        f"# Stale repositories in {organization}",
        "",
        f"{len(repositories)} repositories without pushes since {stale_date}.",
    ]
    for repository in repositories:
        lines.append("")
        lines += render_repository(repository)
    return "\n".join(lines) + "\n"
