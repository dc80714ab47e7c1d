from __future__ import annotations

import dataclasses

import pytest

from stale_repos.domain.affiliation import (
    AffiliatedUser,
    AffiliationList,
    add_unique_user,
    merge_single_entry,
    merge_user_infos,
)

user1 = AffiliatedUser(
    login="octocat",
    email="octocat@github.com",
    name="The Octocat",
    permission="All-Knowing",
    affiliation="owns everything",
)

user2 = AffiliatedUser(
    login="monalisa",
    email="mona@github.com",
    name="Mona Lisa",
    permission="Read-Only",
    affiliation="Liked by everyone",
)


def test_adding_user_to_empty_collection_yields_that_user() -> None:
    users: list[AffiliatedUser] = []
    add_unique_user(users, user1)
    assert users == [user1]


def test_adding_different_user_appends_in_order() -> None:
    users = [user1]
    add_unique_user(users, user2)
    assert users == [user1, user2]


def test_adding_same_user_twice_is_idempotent() -> None:
    once: list[AffiliatedUser] = []
    add_unique_user(once, user1)

    twice: list[AffiliatedUser] = []
    add_unique_user(twice, user1)
    add_unique_user(twice, user1)

    assert twice == once == [user1]


def test_user_without_login_merges_into_user_with_login() -> None:
    users = [user1]
    add_unique_user(users, dataclasses.replace(user1, login=""))
    assert users == [user1]


def test_user_with_login_fills_in_missing_login() -> None:
    users = [dataclasses.replace(user1, login="")]
    add_unique_user(users, user1)
    assert users == [user1]


def test_same_login_with_different_email_concatenates_emails() -> None:
    users = [user1]
    add_unique_user(users, dataclasses.replace(user1, email="second@mail.com"))

    assert len(users) == 1
    assert users[0] == dataclasses.replace(user1, email="octocat@github.com, second@mail.com")


def test_matching_login_never_grows_collection() -> None:
    users = [user1, user2]
    add_unique_user(users, AffiliatedUser(login="monalisa", affiliation="collaborator"))

    assert len(users) == 2
    assert users[1].affiliation == "Liked by everyone, collaborator"


def test_noreply_email_is_resolved_to_login() -> None:
    users: list[AffiliatedUser] = []
    add_unique_user(users, AffiliatedUser(email="123456+octocat@users.noreply.github.com"))
    assert users == [AffiliatedUser(login="octocat", email="")]


def test_noreply_email_is_kept_when_login_known() -> None:
    email = "123456+octocat@users.noreply.github.com"
    users: list[AffiliatedUser] = []
    add_unique_user(users, AffiliatedUser(login="someone", email=email))
    assert users[0].email == email


def test_noreply_email_for_enterprise_host() -> None:
    users: list[AffiliatedUser] = []
    add_unique_user(
        users,
        AffiliatedUser(email="42+hubot@users.noreply.github.example.com"),
        noreply_host="github.example.com",
    )
    assert users[0].login == "hubot"
    assert users[0].email == ""


def test_noreply_email_for_other_host_is_not_resolved() -> None:
    users: list[AffiliatedUser] = []
    add_unique_user(users, AffiliatedUser(email="42+hubot@users.noreply.github.example.com"))
    assert users[0].login == ""


def test_noreply_commit_merges_with_collaborator_record() -> None:
    users = [AffiliatedUser(login="octocat", name="The Octocat", affiliation="collaborator")]
    add_unique_user(
        users,
        AffiliatedUser(name="The Octocat", email="1+octocat@users.noreply.github.com", affiliation="recent committer"),
    )
    assert users == [
        AffiliatedUser(login="octocat", name="The Octocat", affiliation="collaborator, recent committer")
    ]


def test_name_equal_to_login_is_cleared() -> None:
    users: list[AffiliatedUser] = []
    add_unique_user(users, AffiliatedUser(login="hubot", name="hubot"))
    assert users[0].name == ""


def test_email_without_name_does_not_match() -> None:
    users = [AffiliatedUser(name="Mona Lisa", email="mona@github.com")]
    add_unique_user(users, AffiliatedUser(email="mona@github.com"))
    assert len(users) == 2


def test_first_match_wins() -> None:
    users = [
        AffiliatedUser(login="a", name="Ann", email="ann@example.com"),
        AffiliatedUser(login="b"),
    ]
    add_unique_user(users, AffiliatedUser(login="b", name="Ann", email="ann@example.com"))

    assert users[0].login == "a, b"
    assert users[1] == AffiliatedUser(login="b")


def test_empty_record_becomes_standalone_entry() -> None:
    users = [user1]
    add_unique_user(users, AffiliatedUser())
    assert users == [user1, AffiliatedUser()]


def test_candidate_is_not_modified() -> None:
    candidate = AffiliatedUser(login="hubot", name="hubot")
    add_unique_user([], candidate)
    assert candidate.name == "hubot"


def test_repeated_affiliations_accumulate_duplicates() -> None:
    # known limitation: affiliations are concatenated without deduplication
    users: list[AffiliatedUser] = []
    add_unique_user(users, AffiliatedUser(login="octocat", affiliation="collaborator"))
    add_unique_user(users, AffiliatedUser(login="octocat", affiliation="recent committer"))
    add_unique_user(users, AffiliatedUser(login="octocat", affiliation="collaborator"))

    assert users[0].affiliation == "collaborator, recent committer, collaborator"


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("x", "x", "x"),
        ("x", "", "x"),
        ("", "y", "y"),
        ("", "", ""),
        ("x", "y", "x, y"),
    ],
)
def test_merge_single_entry(a: str, b: str, expected: str) -> None:
    assert merge_single_entry(a, b) == expected


def test_merge_user_infos_returns_new_record() -> None:
    existing = AffiliatedUser(login="octocat", email="a@example.com")
    merged = merge_user_infos(existing, AffiliatedUser(login="octocat", name="The Octocat", email="b@example.com"))

    assert merged == AffiliatedUser(login="octocat", name="The Octocat", email="a@example.com, b@example.com")
    assert existing == AffiliatedUser(login="octocat", email="a@example.com")


def test_affiliation_list_deduplicates_and_preserves_order() -> None:
    users = AffiliationList([user1, user2, dataclasses.replace(user1, affiliation="collaborator")])

    assert len(users) == 2
    assert [u.login for u in users] == ["octocat", "monalisa"]
    assert users[0].affiliation == "owns everything, collaborator"
    assert users == AffiliationList([users[0], user2])


def test_affiliation_list_rejects_direct_assignment() -> None:
    users = AffiliationList([user1])
    with pytest.raises(TypeError):
        users[0] = user2  # type: ignore[index]


def test_email_only_record_is_not_deduplicated() -> None:
    # known limitation: without a login or a name there is nothing to match on
    users: list[AffiliatedUser] = []
    add_unique_user(users, AffiliatedUser(email="dev@example.com"))
    add_unique_user(users, AffiliatedUser(email="dev@example.com"))

    assert users == [AffiliatedUser(email="dev@example.com"), AffiliatedUser(email="dev@example.com")]
