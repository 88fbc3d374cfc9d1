"""
Branch diff engine for git-tooling.

Answers "which PRs are in branch A but not in branch B?" with one of
three strategies:
- ancestry: PRs merged into A whose merge commit is not reachable from B
- trailer: PR trailers of A's history minus those of B's history
- local: PR trailers of `git log B..A`, no API calls
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, TypeVar

from . import git
from .cache import BranchPRs, PRCache, read_branch_prs, store_branch_prs
from .extract import extract_prs_from_log_lines
from .github import GitHubAPIError, GitHubClient
from .history import fetch_merged_prs, fetch_prs_for_branch
from .models import PullRequestRef


logger = logging.getLogger(__name__)

STRATEGIES = ("ancestry", "trailer", "local")

T = TypeVar("T")

AncestryChecker = Callable[[str, str], bool]


class BranchNotFoundError(Exception):
    """A branch does not exist locally or on the remote."""
    def __init__(self, branch: str):
        super().__init__(f"branch '{branch}' does not exist locally or on origin")
        self.branch = branch


def diff_prs(prs_a: Iterable[PullRequestRef], prs_b: Iterable[PullRequestRef]) -> list[PullRequestRef]:
    """
    PRs of A whose number does not appear in B, in A's order.

    Equality is by PR number only; A's titles and URLs are kept as-is.
    """
    in_b = {pr.number for pr in prs_b}
    return [pr for pr in prs_a if pr.number not in in_b]


def is_ancestor_confirmed(merge_commit: str, branch_b: str, checker: AncestryChecker | None = None) -> bool:
    """True when the merge commit is already reachable from branch B."""
    checker = checker or git.is_ancestor
    return checker(merge_commit, branch_b)


def diff_by_ancestry(
    prs_a: Iterable[PullRequestRef],
    branch_b: str,
    checker: AncestryChecker | None = None,
) -> list[PullRequestRef]:
    """
    PRs of A whose merge commit is not an ancestor of branch B.

    PRs without a merge commit cannot be checked and are left out.
    """
    missing = []
    for pr in prs_a:
        if not pr.merge_commit:
            logger.debug("Skipping PR #%d: no merge commit", pr.number)
            continue
        if not is_ancestor_confirmed(pr.merge_commit, branch_b, checker):
            missing.append(pr)
    return missing


def fetch_branch_pair(fetch_a: Callable[[], T], fetch_b: Callable[[], T]) -> tuple[T, T]:
    """
    Run two branch fetches concurrently and wait for both.

    If either fetch fails its exception is raised (A's first) and no
    result is returned.
    """
    with ThreadPoolExecutor(max_workers=2) as pool:
        future_a = pool.submit(fetch_a)
        future_b = pool.submit(fetch_b)
        return future_a.result(), future_b.result()


class BranchDiffer:
    """Computes missing PRs between two branches of one repository."""

    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        cache_factory: Callable[[], PRCache] | None = PRCache,
        page_size: int = 20,
    ):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.cache_factory = cache_factory
        self.page_size = page_size

    def ensure_branch_exists(self, branch: str, local_only: bool = False) -> None:
        """Raise BranchNotFoundError unless the branch exists locally or remotely."""
        if git.does_local_branch_exist(branch):
            return
        if not local_only:
            try:
                if self.client.branch_exists(self.owner, self.repo, branch):
                    return
            except GitHubAPIError as e:
                logger.debug("Remote branch check for '%s' failed: %s", branch, e)
        raise BranchNotFoundError(branch)

    def target_ref(self, branch: str, use_local: bool) -> str:
        return branch if use_local else f"origin/{branch}"

    def compare(
        self,
        branch_a: str,
        branch_b: str,
        strategy: str = "ancestry",
        limit: int = 0,
        use_local: bool = False,
    ) -> list[PullRequestRef]:
        """
        List PRs merged into `branch_a` that are missing from `branch_b`.

        Args:
            branch_a: Source branch
            branch_b: Target branch
            strategy: One of STRATEGIES
            limit: Max PRs (ancestry) or commits (trailer) to scan, 0 = all
            use_local: Compare local branches instead of origin/<branch>
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"unknown strategy '{strategy}' (expected one of {', '.join(STRATEGIES)})")

        # Refresh origin/<branch> first; cache keys hash these refs
        if not use_local:
            git.fetch_branches(branch_a, branch_b)

        if strategy == "trailer":
            return self.compare_trailers(branch_a, branch_b, limit, use_local)
        if strategy == "local":
            return self.compare_local(branch_a, branch_b, use_local)
        return self.compare_ancestry(branch_a, branch_b, limit, use_local)

    def compare_ancestry(self, branch_a: str, branch_b: str, limit: int = 0, use_local: bool = False) -> list[PullRequestRef]:
        merged = fetch_merged_prs(self.client, self.owner, self.repo, branch_a, limit=limit, page_size=self.page_size)
        return diff_by_ancestry(merged, self.target_ref(branch_b, use_local))

    def compare_trailers(self, branch_a: str, branch_b: str, limit: int = 0, use_local: bool = False) -> list[PullRequestRef]:
        """
        Diff the trailer PRs of both branches.

        The two branch reads run concurrently and only read the cache;
        new snapshots are written once both have finished.
        """
        cache = self.cache_factory() if self.cache_factory is not None else None
        result_a, result_b = fetch_branch_pair(
            lambda: self.branch_prs(branch_a, limit, use_local, cache),
            lambda: self.branch_prs(branch_b, limit, use_local, cache),
        )
        if cache is not None:
            for result in (result_a, result_b):
                store_branch_prs(cache, self.owner, self.repo, result)
        return diff_prs(result_a.prs, result_b.prs)

    def compare_local(self, branch_a: str, branch_b: str, use_local: bool = False) -> list[PullRequestRef]:
        lines = git.log_between(self.target_ref(branch_b, use_local), self.target_ref(branch_a, use_local))
        prs = extract_prs_from_log_lines(lines)
        for pr in prs:
            pr.url = f"https://github.com/{self.owner}/{self.repo}/pull/{pr.number}"
        return prs

    def branch_prs(
        self,
        branch: str,
        limit: int = 0,
        use_local: bool = False,
        cache: PRCache | None = None,
    ) -> BranchPRs:
        """Trailer PRs of one branch, read through `cache` when given."""
        def fetcher(name: str) -> list[PullRequestRef]:
            return fetch_prs_for_branch(self.client, self.owner, self.repo, name, limit=limit)

        if cache is None:
            return BranchPRs(branch=branch, prs=fetcher(branch))

        return read_branch_prs(
            self.owner,
            self.repo,
            branch,
            fetcher=fetcher,
            hash_getter=git.get_branch_head_hash,
            cache=cache,
            use_local=use_local,
        )
