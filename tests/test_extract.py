from __future__ import annotations

from gittooling.extract import (
    MERGE_PATTERN,
    extract_pr_number,
    extract_prs_from_commits,
    extract_prs_from_log_lines,
    title_from_message,
)
from gittooling.models import Commit


def test_extract_pr_number_from_squash_trailer():
    assert extract_pr_number("Fix login redirect (#123)") == 123


def test_extract_pr_number_none_without_trailer():
    assert extract_pr_number("Merge branch 'dev' into rtm") is None
    assert extract_pr_number("Bump version to #12") is None


def test_extract_pr_number_merge_commit_pattern():
    message = "Merge pull request #77 from org/feature-x"
    assert extract_pr_number(message, MERGE_PATTERN) == 77
    assert extract_pr_number(message) is None


def test_title_from_message_strips_trailer_and_body():
    message = "Add dark mode (#42)\n\nLong description (#41)"
    assert title_from_message(message) == "Add dark mode"


def test_extract_prs_from_commits_skips_non_pr_commits():
    commits = [
        Commit(oid="a1", message="Add feature X (#101)"),
        Commit(oid="a2", message="Merge branch 'main'"),
        Commit(oid="a3", message="Fix typo (#99)"),
    ]

    prs = extract_prs_from_commits(commits)

    assert [pr.number for pr in prs] == [101, 99]
    assert prs[0].title == "Add feature X"
    assert prs[1].title == "Fix typo"


def test_extract_prs_from_commits_first_mention_wins():
    commits = [
        Commit(oid="a1", message="Follow-up for search (#5)"),
        Commit(oid="a2", message="Other change (#6)"),
        Commit(oid="a3", message="Search (#5)"),
    ]

    prs = extract_prs_from_commits(commits)

    assert [pr.number for pr in prs] == [5, 6]
    assert prs[0].title == "Follow-up for search"


def test_extract_prs_from_commits_empty():
    assert extract_prs_from_commits([]) == []


def test_extract_prs_from_log_lines():
    lines = [
        "1111111111111111111111111111111111111111 Add cache (#12)",
        "",
        "2222222222222222222222222222222222222222 Chore: format",
        "3333333333333333333333333333333333333333 Add projects (#10)",
    ]

    prs = extract_prs_from_log_lines(lines)

    assert [(pr.number, pr.title) for pr in prs] == [(12, "Add cache"), (10, "Add projects")]


def test_repeated_pr_reported_once():
    lines = ["aaa111 Fix bug (#42)", "bbb222 Add feature (#43)", "ccc333 Fix bug (#42)"]

    prs = extract_prs_from_log_lines(lines)

    assert [(pr.number, pr.title) for pr in prs] == [(42, "Fix bug"), (43, "Add feature")]
