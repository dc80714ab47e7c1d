"""Affiliated user records and the reconciliation that deduplicates them."""

import re
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from typing import Iterator, List, MutableSequence, Optional


DEFAULT_NOREPLY_HOST = "github.com"


@dataclass(frozen=True)
class AffiliatedUser:
    """One known association between a person and a repository."""

    login: str = ""
    name: str = ""
    email: str = ""
    affiliation: str = ""
    permission: str = ""


def merge_single_entry(a: str, b: str) -> str:
    """
    Merge two values of the same field.

    Distinct non-empty values are joined as "a, b" so no observed value is lost.
    """
    if a == b or (a and not b):
        return a
    if b and not a:
        return b
    return f"{a}, {b}"


def merge_user_infos(existing: AffiliatedUser, incoming: AffiliatedUser) -> AffiliatedUser:
    """
    Return a new record combining both users field by field.

    Affiliations are concatenated without deduplication, so a user seen as
    "collaborator" twice through different paths may read
    "collaborator, recent committer, collaborator".
    """
    merged = {
        field.name: merge_single_entry(getattr(existing, field.name), getattr(incoming, field.name))
        for field in fields(AffiliatedUser)
    }
    return AffiliatedUser(**merged)


def _noreply_pattern(host: str) -> "re.Pattern[str]":
    return re.compile(rf"^(.*)\+([^@]*)@users\.noreply\.{re.escape(host)}$")


def normalize_user(user: AffiliatedUser, noreply_host: str = DEFAULT_NOREPLY_HOST) -> AffiliatedUser:
    """Resolve noreply emails into logins and drop names that repeat the login."""
    if not user.login:
        match = _noreply_pattern(noreply_host).match(user.email)
        if match:
            # the placeholder address carries nothing beyond the username
            user = replace(user, login=match.group(2), email="")

    if user.name == user.login:
        user = replace(user, name="")

    return user


def is_same_user(existing: AffiliatedUser, candidate: AffiliatedUser) -> bool:
    if candidate.login and existing.login == candidate.login:
        return True
    return bool(
        candidate.email
        and candidate.name
        and existing.email == candidate.email
        and existing.name == candidate.name
    )


def find_matching_user(users: Sequence, candidate: AffiliatedUser) -> Optional[int]:
    """Index of the first user equivalent to ``candidate``, or None."""
    for index, user in enumerate(users):
        if is_same_user(user, candidate):
            return index
    return None


def add_unique_user(
    users: MutableSequence,
    user: AffiliatedUser,
    noreply_host: str = DEFAULT_NOREPLY_HOST,
) -> None:
    """
    Insert a possibly partial user record into a deduplicated collection.

    The record is normalized first, then merged into the first equivalent
    entry (replacing it at the same index) or appended. ``users`` is only ever
    appended to or assigned by index.

    A record with neither a login nor a name never matches anything, so
    inserting an email-only record twice leaves two entries.

    Matching is a linear scan, fine for the collaborator and commit counts of
    a single repository. A login index would be needed for much larger sets.

    Args:
        users: Collection to update in place
        user: Candidate record; it is not modified
        noreply_host: Host of the noreply email domain to resolve
    """
    candidate = normalize_user(user, noreply_host)

    index = find_matching_user(users, candidate)
    if index is None:
        users.append(candidate)
    else:
        users[index] = merge_user_infos(users[index], candidate)


class AffiliationList(Sequence):
    """Ordered, deduplicated users that can only grow or be merged in place."""

    def __init__(self, users: Optional[List[AffiliatedUser]] = None, noreply_host: str = DEFAULT_NOREPLY_HOST):
        self._users: List[AffiliatedUser] = []
        self.noreply_host = noreply_host
        for user in users or []:
            self.add(user)

    def add(self, user: AffiliatedUser) -> None:
        add_unique_user(self._users, user, self.noreply_host)

    def __getitem__(self, index):
        return self._users[index]

    def __len__(self) -> int:
        return len(self._users)

    def __iter__(self) -> Iterator[AffiliatedUser]:
        return iter(self._users)

    def __eq__(self, other) -> bool:
        if isinstance(other, AffiliationList):
            return self._users == other._users
        if isinstance(other, list):
            return self._users == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"AffiliationList({self._users!r})"
