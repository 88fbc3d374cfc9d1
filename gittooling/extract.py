"""
Pull request extraction from commit messages.

Recognized conventions:
- Squash merges: subject ends with a "(#123)" trailer
- Merge commits: "Merge pull request #123 from ..."
"""

from __future__ import annotations

import re
from typing import Iterable, Pattern

from .models import Commit, PullRequestRef


SQUASH_PATTERN = re.compile(r"\(#(\d+)\)")
MERGE_PATTERN = re.compile(r"Merge pull request #(\d+)")

_TRAILER_SUFFIX = re.compile(r"\s*\(#\d+\)\s*$")


def extract_pr_number(message: str, pattern: Pattern[str] = SQUASH_PATTERN) -> int | None:
    """Return the PR number referenced by a commit message, if any."""
    match = pattern.search(message)
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        return None


def title_from_message(message: str) -> str:
    """First line of a commit message without its "(#N)" trailer."""
    first_line = message.split("\n", 1)[0]
    return _TRAILER_SUFFIX.sub("", first_line).strip()


def extract_prs_from_commits(
    commits: Iterable[Commit],
    pattern: Pattern[str] = SQUASH_PATTERN,
) -> list[PullRequestRef]:
    """
    Collect the PRs referenced by a sequence of commits.

    The first commit mentioning a PR wins; later mentions of the same
    number (follow-up commits, reverts of reverts) are dropped. History
    is newest-first, so the newest mention supplies the title.
    """
    seen: set[int] = set()
    prs: list[PullRequestRef] = []

    for commit in commits:
        number = extract_pr_number(commit.message, pattern)
        if number is None or number in seen:
            continue
        seen.add(number)
        prs.append(PullRequestRef(number=number, title=title_from_message(commit.message)))

    return prs


def extract_prs_from_log_lines(
    lines: Iterable[str],
    pattern: Pattern[str] = SQUASH_PATTERN,
) -> list[PullRequestRef]:
    """Parse "<sha> <subject>" lines from `git log --pretty=format:'%H %s'`."""
    commits = []
    for line in lines:
        oid, _, subject = line.strip().partition(" ")
        if oid:
            commits.append(Commit(oid=oid, message=subject))
    return extract_prs_from_commits(commits, pattern)
