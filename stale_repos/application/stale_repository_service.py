"""Application service for finding stale repositories and who is affiliated with them."""

import logging
from typing import Any, Dict, List, Optional

from stale_repos.application.parameters import validate_organization, validate_stale_date
from stale_repos.domain.affiliation import AffiliatedUser, AffiliationList
from stale_repos.domain.repository import StaleRepository
from stale_repos.infrastructure.cached_client import CachedGitHubClient

logger = logging.getLogger(__name__)

RECENT_COMMITTER = "recent committer"
COLLABORATOR = "collaborator"
ORGANIZATION_ADMIN = "organization admin"

MEMBERS_PAGE_SIZE = 100

STALE_REPOS_QUERY = """
query stale_repos($search_query: String!, $limit: Int!, $history: Int!) {
    search(query: $search_query, type: REPOSITORY, first: $limit) {
        edges {
            node {
                ... on Repository {
                    name
                    description
                    updatedAt
                    pushedAt
                    latestRelease {
                        createdAt
                    }
                    isArchived
                    isDisabled
                    defaultBranchRef {
                        target {
                            ... on Commit {
                                history(first: $history) {
                                    nodes {
                                        committedDate
                                        author {
                                            name
                                            email
                                            user {
                                                login
                                                name
                                                email
                                            }
                                        }
                                    }
                                }
                            }
                        }
                    }
                    collaborators(affiliation: DIRECT) {
                        edges {
                            permission
                            node {
                                login
                                name
                                email
                            }
                        }
                    }
                }
            }
        }
    }
}
"""


class StaleRepositoryService:
    """Service for collecting an organization's stale repositories."""

    def __init__(
        self,
        github_client: CachedGitHubClient,
        stale_date: str,
        search_limit: int = 15,
        history_limit: int = 15,
        include_admins: bool = True,
    ):
        """
        Initialize the service.

        Args:
            github_client: Cached GitHub API client
            stale_date: Cutoff date (YYYY-MM-DD); repositories pushed before it are stale
            search_limit: Maximum number of repositories returned by the search
            history_limit: Number of recent default-branch commits inspected per repository
            include_admins: Whether organization admins are added to every repository
        """
        self.github_client = github_client
        self.stale_date = stale_date
        self.search_limit = search_limit
        self.history_limit = history_limit
        self.include_admins = include_admins

    def _new_affiliations(self) -> AffiliationList:
        return AffiliationList(noreply_host=self.github_client.noreply_host)

    def get_repository_admins(self, org: str) -> AffiliationList:
        """Organization admins with their public profile details."""
        validate_organization(org)

        members = []
        page = 1
        while True:
            batch = self.github_client.request_cached(
                "GET /orgs/{org}/members",
                {"org": org, "role": "admin", "per_page": MEMBERS_PAGE_SIZE, "page": page}
            ) or []
            members.extend(batch)
            # A short page is the last one
            if len(batch) < MEMBERS_PAGE_SIZE:
                break
            page += 1

        admins = self._new_affiliations()
        for member in members or []:
            user = self.github_client.request_cached(
                "GET /users/{username}",
                {"username": member["login"]}
            )
            admins.add(AffiliatedUser(
                login=user["login"],
                name=user.get("name") or "",
                email=user.get("email") or "",
                affiliation=ORGANIZATION_ADMIN,
                permission="admin",
            ))

        logger.info(f"Found {len(admins)} admins in {org}")
        return admins

    def get_stale_repos(self, org: str) -> List[StaleRepository]:
        """
        Search the organization for repositories without pushes since the stale date.

        Raises:
            ValidationError: If the organization or stale date is malformed
        """
        # Both values end up in the search string
        validate_organization(org)
        validate_stale_date(self.stale_date)

        search_query = f"org:{org} pushed:<{self.stale_date} archived:false"
        logger.info(f"Searching stale repositories: {search_query}")

        graph = self.github_client.graphql_cached(STALE_REPOS_QUERY, {
            "search_query": search_query,
            "limit": self.search_limit,
            "history": self.history_limit,
        })

        stale_repos = []
        for edge in (graph.get("search") or {}).get("edges") or []:
            repository = self.extract_stale_repository_data(edge.get("node") or {})
            if repository is not None:
                stale_repos.append(repository)

        logger.info(f"Found {len(stale_repos)} stale repositories in {org}")
        return stale_repos

    def extract_stale_repository_data(self, node: Dict[str, Any]) -> Optional[StaleRepository]:
        """
        Convert a search result node into a report entry.

        Recent commit authors are added before direct collaborators.
        Archived and disabled repositories yield None.
        """
        if node.get("isArchived") or node.get("isDisabled"):
            logger.warning(f"Skipping repository {node.get('name')}: archived or disabled")
            return None

        repository = StaleRepository.from_timestamps(
            name=node["name"],
            description=node.get("description") or "",
            updated_at=node.get("updatedAt"),
            pushed_at=node.get("pushedAt"),
            latest_release=(node.get("latestRelease") or {}).get("createdAt"),
        )
        repository.affiliations = self._new_affiliations()

        target = (node.get("defaultBranchRef") or {}).get("target") or {}
        for commit in (target.get("history") or {}).get("nodes") or []:
            author = (commit or {}).get("author")
            if author:
                repository.affiliations.add(commit_author_to_user(author))

        for edge in (node.get("collaborators") or {}).get("edges") or []:
            if edge and edge.get("node"):
                user = edge["node"]
                repository.affiliations.add(AffiliatedUser(
                    login=user.get("login") or "",
                    name=user.get("name") or "",
                    email=user.get("email") or "",
                    affiliation=COLLABORATOR,
                    permission=edge.get("permission") or "",
                ))

        return repository

    def build_report(self, org: str) -> List[StaleRepository]:
        """Stale repositories with organization admins reconciled into each one."""
        admins = self.get_repository_admins(org) if self.include_admins else []
        stale_repos = self.get_stale_repos(org)

        for repository in stale_repos:
            for admin in admins:
                repository.affiliations.add(admin)

        return stale_repos


def commit_author_to_user(author: Dict[str, Any]) -> AffiliatedUser:
    """
    Prefer the linked GitHub account, falling back to the raw git identity.

    The git email is only used for unlinked authors; for a known login it is
    often a noreply placeholder standing in for a hidden profile email.
    """
    user = author.get("user") or {}
    login = user.get("login") or ""
    email = user.get("email") or ""
    if not login:
        email = email or author.get("email") or ""

    return AffiliatedUser(
        login=login,
        name=user.get("name") or author.get("name") or "",
        email=email,
        affiliation=RECENT_COMMITTER,
    )
