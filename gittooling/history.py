"""
Branch history fetching over the GitHub GraphQL API.

Two ways to learn which PRs a branch contains:
- Walk the branch's commit history and parse PR trailers
- Query merged pull requests whose base is the branch
"""

from __future__ import annotations

import logging
from typing import Iterator

from .extract import extract_prs_from_commits
from .github import GitHubAPIError, GitHubClient
from .models import Commit, PageInfo, PullRequestRef


logger = logging.getLogger(__name__)

COMMIT_PAGE_SIZE = 100
MERGED_PR_PAGE_SIZE = 20

COMMITS_IN_BRANCH_QUERY = """
query CommitsInBranch($owner: String!, $repo: String!, $branch: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    ref(qualifiedName: $branch) {
      target {
        ... on Commit {
          history(first: $first, after: $after) {
            nodes {
              oid
              message
            }
            pageInfo {
              hasNextPage
              endCursor
            }
          }
        }
      }
    }
  }
}
"""

MERGED_PULL_REQUESTS_QUERY = """
query MergedPullRequests($owner: String!, $repo: String!, $baseRef: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequests(baseRefName: $baseRef, states: MERGED, first: $first, after: $after,
                 orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes {
        number
        title
        url
        mergeCommit {
          oid
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


class BranchFetchError(Exception):
    """Fetching a branch's history failed; no partial result is kept."""
    def __init__(self, branch: str, cause: Exception):
        super().__init__(f"failed to fetch commits for branch '{branch}': {cause}")
        self.branch = branch
        self.cause = cause


def fetch_commit_page(
    client: GitHubClient,
    owner: str,
    repo: str,
    branch_ref: str,
    after: str | None = None,
    page_size: int = COMMIT_PAGE_SIZE,
) -> tuple[list[Commit], PageInfo]:
    """Fetch one page of a branch's commit history (newest first)."""
    data = client.query("CommitsInBranch", COMMITS_IN_BRANCH_QUERY, {
        "owner": owner,
        "repo": repo,
        "branch": branch_ref,
        "first": page_size,
        "after": after,
    })

    # Unknown ref -> ref is null; non-commit target -> no history key
    ref = (data.get("repository") or {}).get("ref") or {}
    history = (ref.get("target") or {}).get("history") or {}

    commits = [
        Commit(oid=node.get("oid", ""), message=node.get("message", ""))
        for node in history.get("nodes") or []
    ]
    return commits, PageInfo.from_node(history.get("pageInfo"))


def fetch_all_commits(
    client: GitHubClient,
    owner: str,
    repo: str,
    branch_ref: str,
    limit: int = 0,
    page_size: int = COMMIT_PAGE_SIZE,
) -> list[Commit]:
    """
    Fetch a branch's commit history, following cursors.

    Args:
        client: GraphQL client
        owner: Repository owner
        repo: Repository name
        branch_ref: Branch name or qualified ref
        limit: Stop after this many commits (0 = no limit)
        page_size: Commits per request

    Returns:
        Commits newest first, at most `limit` when a limit is set

    Raises:
        BranchFetchError: Any API failure; pages already read are discarded
    """
    commits: list[Commit] = []
    cursor: str | None = None

    while True:
        try:
            page, page_info = fetch_commit_page(client, owner, repo, branch_ref, cursor, page_size)
        except GitHubAPIError as e:
            raise BranchFetchError(branch_ref, e) from e

        if not page:
            break

        if limit > 0 and len(commits) + len(page) >= limit:
            commits.extend(page[: limit - len(commits)])
            break
        commits.extend(page)

        cursor = page_info.next_cursor()
        if cursor is None:
            break

    logger.debug("Fetched %d commits for %s/%s:%s", len(commits), owner, repo, branch_ref)
    return commits


def fetch_prs_for_branch(
    client: GitHubClient,
    owner: str,
    repo: str,
    branch: str,
    limit: int = 0,
) -> list[PullRequestRef]:
    """PRs referenced by commit trailers on a branch."""
    commits = fetch_all_commits(client, owner, repo, branch, limit=limit)
    return extract_prs_from_commits(commits)


def fetch_merged_prs_page(
    client: GitHubClient,
    owner: str,
    repo: str,
    base_branch: str,
    after: str | None = None,
    page_size: int = MERGED_PR_PAGE_SIZE,
) -> tuple[list[PullRequestRef], PageInfo]:
    """Fetch one page of PRs merged into `base_branch`, most recently updated first."""
    page_size = max(1, min(page_size, 100))
    try:
        data = client.query("MergedPullRequests", MERGED_PULL_REQUESTS_QUERY, {
            "owner": owner,
            "repo": repo,
            "baseRef": base_branch,
            "first": page_size,
            "after": after,
        })
    except GitHubAPIError as e:
        raise BranchFetchError(base_branch, e) from e

    connection = (data.get("repository") or {}).get("pullRequests") or {}
    prs = [PullRequestRef.from_node(node) for node in connection.get("nodes") or [] if node]
    return prs, PageInfo.from_node(connection.get("pageInfo"))


def iter_merged_pr_pages(
    client: GitHubClient,
    owner: str,
    repo: str,
    base_branch: str,
    page_size: int = MERGED_PR_PAGE_SIZE,
) -> Iterator[tuple[list[PullRequestRef], PageInfo]]:
    """Yield pages of merged PRs until the connection is exhausted."""
    cursor: str | None = None
    while True:
        prs, page_info = fetch_merged_prs_page(client, owner, repo, base_branch, cursor, page_size)
        yield prs, page_info
        cursor = page_info.next_cursor()
        if cursor is None:
            return


def fetch_merged_prs(
    client: GitHubClient,
    owner: str,
    repo: str,
    base_branch: str,
    limit: int = 0,
    page_size: int = MERGED_PR_PAGE_SIZE,
) -> list[PullRequestRef]:
    """Merged PRs into `base_branch`, up to `limit` (0 = all)."""
    prs: list[PullRequestRef] = []
    for page, _ in iter_merged_pr_pages(client, owner, repo, base_branch, page_size):
        prs.extend(page)
        if limit > 0 and len(prs) >= limit:
            return prs[:limit]
    return prs
