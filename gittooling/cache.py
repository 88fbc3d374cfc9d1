"""
Branch PR cache for git-tooling.

Stores, per branch, the PR numbers found at a given head commit:

    {"owner/repo:branch@<sha>": [101, 102, ...]}

Only one snapshot per branch is kept; writing a new head hash removes the
previous one. The whole file is rewritten on every write. There is no
file locking, so concurrent invocations may race.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .git import GitError
from .models import PullRequestRef


logger = logging.getLogger(__name__)

CACHE_APP_NAME = "peddi-tooling"
CACHE_FILENAME = "prs_cache.json"


class CacheError(Exception):
    """The cache location cannot be used."""


def cache_key(owner: str, repo: str, branch: str, commit_hash: str) -> str:
    return f"{branch_prefix(owner, repo, branch)}{commit_hash}"


def branch_prefix(owner: str, repo: str, branch: str) -> str:
    return f"{owner}/{repo}:{branch}@"


def user_cache_dir() -> Path:
    """Platform user cache directory."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA")
        if not base:
            raise CacheError("%LOCALAPPDATA% is not set")
        return Path(base)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg and Path(xdg).is_absolute():
        return Path(xdg)
    return Path.home() / ".cache"


def get_cache_path(create: bool = True) -> Path:
    """Location of the cache file, creating its directory if needed."""
    cache_dir = user_cache_dir() / CACHE_APP_NAME
    if create:
        try:
            cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"could not create cache directory {cache_dir}: {e}") from e
    return cache_dir / CACHE_FILENAME


class PRCache:
    """JSON-file cache of branch PR numbers keyed by branch head hash."""

    def __init__(self, path: Path | None = None):
        self.path = path or get_cache_path()
        self.data: dict[str, list[int]] = {}
        self.load()

    def load(self) -> None:
        """Read the cache file; a missing or corrupt file gives an empty cache."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self.data = {}
            return
        except OSError as e:
            raise CacheError(f"could not read cache {self.path}: {e}") from e

        try:
            raw = json.loads(content)
        except json.JSONDecodeError:
            logger.debug("Discarding unparseable cache file %s", self.path)
            self.data = {}
            return

        if not isinstance(raw, dict) or not all(
            isinstance(v, list) and all(isinstance(n, int) for n in v) for v in raw.values()
        ):
            logger.debug("Discarding malformed cache file %s", self.path)
            self.data = {}
            return

        self.data = raw

    def get(self, owner: str, repo: str, branch: str, commit_hash: str) -> list[int] | None:
        numbers = self.data.get(cache_key(owner, repo, branch, commit_hash))
        return list(numbers) if numbers is not None else None

    def put(self, owner: str, repo: str, branch: str, commit_hash: str, numbers: list[int]) -> bool:
        """
        Store the PR numbers for a branch head, replacing older snapshots.

        Returns:
            False if the cache file could not be written (logged, not raised)
        """
        prefix = branch_prefix(owner, repo, branch)
        for key in [k for k in self.data if k.startswith(prefix)]:
            del self.data[key]

        self.data[cache_key(owner, repo, branch, commit_hash)] = list(numbers)
        return self.save()

    def save(self) -> bool:
        try:
            self.path.write_text(json.dumps(self.data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to save cache %s: %s", self.path, e)
            return False
        return True


PRFetcher = Callable[[str], list[PullRequestRef]]
HashGetter = Callable[[str], str]
CacheFactory = Callable[[], PRCache]


@dataclass
class BranchPRs:
    """PRs of one branch, plus what is needed to cache them afterwards."""
    branch: str
    prs: list[PullRequestRef]
    commit_hash: str | None = None  # None when the head could not be resolved
    from_cache: bool = False


def read_branch_prs(
    owner: str,
    repo: str,
    branch: str,
    fetcher: PRFetcher,
    hash_getter: HashGetter,
    cache: PRCache,
    use_local: bool = False,
) -> BranchPRs:
    """
    Read-through PR fetch for one branch; never writes the cache.

    Safe to run for two branches at once against the same PRCache, since
    it only reads. Pass the result to store_branch_prs once all reads
    are done.

    Args:
        owner: Repository owner
        repo: Repository name
        branch: Branch name (without remote prefix)
        fetcher: Live fetch, called with the branch name
        hash_getter: Resolves a ref to its head SHA
        cache: Open cache, read only
        use_local: Hash the local branch instead of origin/<branch>
    """
    branch_ref = branch if use_local else f"origin/{branch}"

    try:
        commit_hash = hash_getter(branch_ref)
    except GitError as e:
        # Detached or unknown ref: skip the cache entirely
        logger.debug("No head hash for %s (%s); fetching without cache", branch_ref, e)
        return BranchPRs(branch=branch, prs=fetcher(branch))

    numbers = cache.get(owner, repo, branch, commit_hash)
    if numbers is not None:
        logger.info("Cache hit for branch '%s'. Loading %d PRs.", branch, len(numbers))
        return BranchPRs(
            branch=branch,
            prs=[PullRequestRef(number=n) for n in numbers],
            commit_hash=commit_hash,
            from_cache=True,
        )

    return BranchPRs(branch=branch, prs=fetcher(branch), commit_hash=commit_hash)


def store_branch_prs(cache: PRCache, owner: str, repo: str, result: BranchPRs) -> None:
    """Write a live result back to the cache; cache hits and unhashed branches are skipped."""
    if result.from_cache or result.commit_hash is None:
        return
    cache.put(owner, repo, result.branch, result.commit_hash, [pr.number for pr in result.prs])


def fetch_prs_with_cache(
    owner: str,
    repo: str,
    branch: str,
    fetcher: PRFetcher,
    hash_getter: HashGetter,
    cache_factory: CacheFactory = PRCache,
    use_local: bool = False,
) -> list[PullRequestRef]:
    """
    Read-through/write-through PR fetch for a single branch.

    Returns:
        Cached PRs (numbers only) on a hit, the live result otherwise

    Raises:
        CacheError: The cache location is unusable
    """
    cache = cache_factory()
    result = read_branch_prs(owner, repo, branch, fetcher, hash_getter, cache, use_local)
    store_branch_prs(cache, owner, repo, result)
    return result.prs
