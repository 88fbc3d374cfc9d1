"""
Local git access for git-tooling.

Thin wrappers over the `git` executable. Boolean checks report False on a
non-zero exit instead of raising; lookups that must succeed raise GitError.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from urllib.parse import urlparse


class GitError(Exception):
    """A git command that had to succeed failed."""


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
    )


def _check_output(args: list[str], cwd: Path | None = None) -> str:
    result = _run(args, cwd=cwd)
    if result.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
    return result.stdout


def is_inside_git_repository(cwd: Path | None = None) -> bool:
    return _run(["rev-parse", "--is-inside-work-tree"], cwd=cwd).returncode == 0


def does_local_branch_exist(branch: str, cwd: Path | None = None) -> bool:
    """Check refs/heads/<branch> without touching the network."""
    result = _run(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], cwd=cwd)
    return result.returncode == 0


def get_branch_names(cwd: Path | None = None) -> list[str]:
    """All local and remote-tracking branch names, HEAD excluded."""
    result = _run(["branch", "--all", "--format=%(refname:short)"], cwd=cwd)
    if result.returncode != 0:
        return []

    branches = []
    for line in result.stdout.strip().splitlines():
        line = line.strip()
        if line and line != "HEAD":
            branches.append(line)
    return branches


def get_remote_url(remote: str = "origin", cwd: Path | None = None) -> str:
    return _check_output(["remote", "get-url", remote], cwd=cwd).strip()


def parse_git_remote_url(raw_url: str) -> tuple[str, str]:
    """
    Split a remote URL into (owner, repo).

    Handles SSH (git@host:owner/repo.git) and HTTP(S) URLs, with or
    without the .git suffix.

    Raises:
        ValueError: URL has no owner/repo path
    """
    raw_url = raw_url.strip()

    if raw_url.startswith("git@"):
        _, sep, path = raw_url.partition(":")
        if not sep:
            raise ValueError(f"failed to parse SSH URL: {raw_url}")
    else:
        path = urlparse(raw_url).path

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]

    owner, sep, repo = path.partition("/")
    if not sep or not owner or not repo:
        raise ValueError(f"failed to parse repository path: {raw_url}")
    return owner, repo


def get_repo_owner_and_name(cwd: Path | None = None) -> tuple[str, str]:
    """Owner and name of the `origin` remote."""
    try:
        url = get_remote_url(cwd=cwd)
    except GitError as e:
        raise GitError(f"failed to get git remote: {e}") from e
    try:
        return parse_git_remote_url(url)
    except ValueError as e:
        raise GitError(str(e)) from e


def get_branch_head_hash(ref: str, cwd: Path | None = None) -> str:
    """Resolve a ref to its commit SHA."""
    try:
        return _check_output(["rev-parse", ref], cwd=cwd).strip()
    except GitError as e:
        raise GitError(f"could not get SHA for branch '{ref}'") from e


def is_ancestor(commit: str, ref: str, cwd: Path | None = None) -> bool:
    """True when `commit` is reachable from the tip of `ref`."""
    return _run(["merge-base", "--is-ancestor", commit, ref], cwd=cwd).returncode == 0


def fetch_branches(*branches: str, remote: str = "origin", cwd: Path | None = None) -> None:
    """Fetch the given branches (all branches when none given)."""
    args = ["fetch", remote, *branches] if branches else ["fetch", "--all"]
    _check_output(args, cwd=cwd)


def log_between(base: str, head: str, cwd: Path | None = None) -> list[str]:
    """`git log base..head` as `<sha> <subject>` lines, newest first."""
    output = _check_output(["log", f"{base}..{head}", "--pretty=format:%H %s"], cwd=cwd)
    return [line for line in output.strip().splitlines() if line]
