"""
GitHub GraphQL API client for git-tooling.

Executes named GraphQL operations against api.github.com.
Authentication is read from GITHUB_TOKEN or GH_TOKEN, falling back to
the GitHub CLI (`gh auth token`).

Supports:
- Named operations with variables
- GraphQL error reporting (error types preserved)
- Rate limit detection
- Retry of connection failures
"""

from __future__ import annotations

import os
import subprocess
import time
from typing import Any

import requests

from . import __version__


GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
MAX_RETRIES = 3
RETRY_DELAY = 1.0
REQUEST_TIMEOUT = 30


VIEWER_LOGIN_QUERY = """
query ViewerLogin {
  viewer {
    login
  }
}
"""

BRANCH_EXISTS_QUERY = """
query BranchExists($owner: String!, $repo: String!, $branch: String!) {
  repository(owner: $owner, name: $repo) {
    ref(qualifiedName: $branch) {
      name
    }
  }
}
"""


class GitHubAPIError(Exception):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GitHubAPIError):
    """Rate limit exceeded."""
    def __init__(self, reset_time: int | None = None):
        super().__init__("GitHub API rate limit exceeded", 403)
        self.reset_time = reset_time


class GitHubAuthError(GitHubAPIError):
    """No usable GitHub credentials."""
    def __init__(self, message: str | None = None):
        super().__init__(
            message or "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login`",
            401,
        )


class GraphQLError(GitHubAPIError):
    """The query executed but GitHub reported errors."""
    def __init__(self, message: str, errors: list[dict[str, Any]], data: dict[str, Any] | None = None):
        super().__init__(message, 200)
        self.errors = errors
        # Partial result returned alongside the errors
        self.data = data or {}

    @property
    def types(self) -> set[str]:
        return {e.get("type", "") for e in self.errors}


def resolve_token() -> str | None:
    """Find a GitHub token from the environment or the GitHub CLI."""
    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        # gh not installed or not logged in
        return None
    return result.stdout.strip() or None


class GitHubClient:
    """GitHub GraphQL client with retry and rate limit handling."""

    def __init__(self, token: str | None = None, session: requests.Session | None = None):
        self.token = token or resolve_token()
        self.session = session or requests.Session()

        if self.token:
            self.session.headers["Authorization"] = f"bearer {self.token}"

        self.session.headers["Accept"] = "application/json"
        self.session.headers["User-Agent"] = f"git-tooling/{__version__}"

    def _post(self, payload: dict[str, Any]) -> requests.Response:
        """POST a GraphQL payload with retry and rate limit handling."""
        for attempt in range(MAX_RETRIES):
            try:
                response = self.session.post(GITHUB_GRAPHQL_URL, json=payload, timeout=REQUEST_TIMEOUT)

                # Check rate limit
                if response.status_code in (403, 429):
                    remaining = response.headers.get("X-RateLimit-Remaining")
                    if remaining == "0" or response.status_code == 429:
                        reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                        raise RateLimitError(reset_time)

                if response.status_code == 401:
                    raise GitHubAuthError("GitHub rejected the token (401). Run `gh auth login` or update GITHUB_TOKEN")

                # Check for errors
                if response.status_code >= 400:
                    raise GitHubAPIError(
                        f"GitHub API error: {response.status_code} - {response.text}",
                        response.status_code
                    )

                return response

            except requests.RequestException as e:
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                raise GitHubAPIError(f"Request failed: {e}")

        raise GitHubAPIError("Max retries exceeded")

    def query(self, name: str, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Execute a named GraphQL operation.

        Args:
            name: Operation name (used in error messages)
            document: GraphQL query text
            variables: Query variables; None values are sent as null

        Returns:
            The `data` object of the response

        Raises:
            GitHubAuthError: No token available
            GraphQLError: GitHub returned an `errors` array
            GitHubAPIError: HTTP or connection failure
        """
        if not self.token:
            raise GitHubAuthError()

        payload = {
            "query": document,
            "variables": variables or {},
            "operationName": name,
        }
        response = self._post(payload)
        body = response.json()

        errors = body.get("errors")
        if errors:
            messages = "; ".join(e.get("message", "unknown error") for e in errors)
            raise GraphQLError(f"{name} failed: {messages}", errors, body.get("data"))

        return body.get("data") or {}

    def viewer_login(self) -> str:
        """Login of the authenticated user."""
        data = self.query("ViewerLogin", VIEWER_LOGIN_QUERY)
        return data["viewer"]["login"]

    def branch_exists(self, owner: str, repo: str, branch: str) -> bool:
        """Check whether a branch exists on the remote repository."""
        data = self.query("BranchExists", BRANCH_EXISTS_QUERY, {
            "owner": owner,
            "repo": repo,
            "branch": f"refs/heads/{branch}",
        })
        repository = data.get("repository") or {}
        return repository.get("ref") is not None
