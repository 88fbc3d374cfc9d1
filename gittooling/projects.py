"""
GitHub Projects (v2) listing for git-tooling.

Fetches project items (organization project first, repository project as
fallback), filters them with plain predicates, and sorts them either by
type and number or by a custom field value.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

import click

from .github import GitHubClient, GraphQLError
from .models import IssueContent, LinkedPullRequest, PageInfo, ProjectItem, PullRequestContent
from .render import Theme


logger = logging.getLogger(__name__)

ITEMS_PAGE_SIZE = 100
NO_GROUP = object()

ItemFilter = Callable[[ProjectItem], bool]

PULL_REQUEST_FRAGMENT = """
fragment PullRequestFields on PullRequest {
  number
  title
  mergedAt
  reviewRequests(first: 10) {
    nodes {
      requestedReviewer {
        ... on User {
          login
        }
      }
    }
  }
}
"""

PROJECT_ITEMS_SELECTION = """
title
items(first: $first, after: $after) {
  nodes {
    id
    fieldValueByName(name: $fieldName) {
      __typename
      ... on ProjectV2ItemFieldSingleSelectValue {
        name
      }
      ... on ProjectV2ItemFieldTextValue {
        text
      }
    }
    content {
      __typename
      ... on Issue {
        number
        title
        timelineItems(itemTypes: [CONNECTED_EVENT, CROSS_REFERENCED_EVENT, REFERENCED_EVENT], first: 5) {
          nodes {
            __typename
            ... on ConnectedEvent {
              subject {
                ... on PullRequest {
                  ...PullRequestFields
                }
              }
            }
            ... on CrossReferencedEvent {
              source {
                ... on PullRequest {
                  ...PullRequestFields
                }
              }
            }
            ... on ReferencedEvent {
              subject {
                ... on PullRequest {
                  ...PullRequestFields
                }
              }
            }
          }
        }
      }
      ... on PullRequest {
        ...PullRequestFields
      }
      ... on DraftIssue {
        title
      }
    }
  }
  pageInfo {
    hasNextPage
    endCursor
  }
}
"""

ORG_PROJECT_ITEMS_QUERY = (
    "query OrgProjectItems($owner: String!, $number: Int!, $first: Int!, $after: String, $fieldName: String!) {\n"
    "  organization(login: $owner) {\n"
    "    projectV2(number: $number) {\n"
    + PROJECT_ITEMS_SELECTION
    + "    }\n  }\n}\n"
    + PULL_REQUEST_FRAGMENT
)

REPO_PROJECT_ITEMS_QUERY = (
    "query RepoProjectItems($owner: String!, $repo: String!, $number: Int!, $first: Int!, $after: String, $fieldName: String!) {\n"
    "  repository(owner: $owner, name: $repo) {\n"
    "    projectV2(number: $number) {\n"
    + PROJECT_ITEMS_SELECTION
    + "    }\n  }\n}\n"
    + PULL_REQUEST_FRAGMENT
)

LAST_PROJECT_NUMBER_QUERY = """
query LastProjectNumber($owner: String!, $repo: String!) {
  organization(login: $owner) {
    projectsV2(first: 1, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        number
        createdAt
      }
    }
  }
  repository(owner: $owner, name: $repo) {
    projectsV2(first: 1, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        number
        createdAt
      }
    }
  }
}
"""


class ProjectNotFoundError(Exception):
    """No project with the requested number is visible."""


def _is_not_found(error: GraphQLError) -> bool:
    return "NOT_FOUND" in error.types


def _fetch_project_items(
    client: GitHubClient,
    name: str,
    document: str,
    owner_key: str,
    variables: dict[str, Any],
) -> tuple[list[ProjectItem], str] | None:
    """
    Page through one project's items.

    Returns None when the owner has no such project.
    """
    items: list[ProjectItem] = []
    title = ""
    cursor: str | None = None

    while True:
        data = client.query(name, document, {**variables, "after": cursor})
        project = (data.get(owner_key) or {}).get("projectV2")
        if project is None:
            if cursor is None:
                return None
            raise ProjectNotFoundError(f"project #{variables['number']} disappeared during pagination")

        title = project.get("title", "")
        connection = project.get("items") or {}
        for node in connection.get("nodes") or []:
            item = ProjectItem.from_node(node or {})
            if item is not None:
                items.append(item)

        cursor = PageInfo.from_node(connection.get("pageInfo")).next_cursor()
        if cursor is None:
            return items, title


def fetch_project_data(
    client: GitHubClient,
    owner: str,
    repo: str,
    project_number: int,
    group_by: str = "",
) -> tuple[list[ProjectItem], str]:
    """
    Fetch all items of a project.

    The organization project is tried first; a repository project is
    used only when the organization has no project with that number.

    Returns:
        (items, project title)

    Raises:
        ProjectNotFoundError: Neither owner has the project
        GitHubAPIError: Any other API failure
    """
    variables = {
        "owner": owner,
        "number": project_number,
        "first": ITEMS_PAGE_SIZE,
        "fieldName": group_by,
    }

    try:
        result = _fetch_project_items(client, "OrgProjectItems", ORG_PROJECT_ITEMS_QUERY, "organization", variables)
    except GraphQLError as e:
        # Personal accounts are not organizations
        if not _is_not_found(e):
            raise
        logger.debug("No organization '%s'; trying repository project", owner)
        result = None

    if result is None:
        try:
            result = _fetch_project_items(
                client,
                "RepoProjectItems",
                REPO_PROJECT_ITEMS_QUERY,
                "repository",
                {**variables, "repo": repo},
            )
        except GraphQLError as e:
            if not _is_not_found(e):
                raise
            result = None

    if result is None:
        raise ProjectNotFoundError(
            f"failed to find project #{project_number}. Please check the project ID and your permissions"
        )
    return result


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def get_last_project_number(client: GitHubClient, owner: str, repo: str) -> int:
    """Number of the most recently created project of the org or the repo."""
    try:
        data = client.query("LastProjectNumber", LAST_PROJECT_NUMBER_QUERY, {"owner": owner, "repo": repo})
    except GraphQLError as e:
        # Partial data is still useful when the owner is a user
        if not _is_not_found(e):
            raise
        data = e.data

    # Ties go to the repository project
    candidates = []
    for key in ("repository", "organization"):
        nodes = ((data.get(key) or {}).get("projectsV2") or {}).get("nodes") or []
        if nodes:
            candidates.append(nodes[0])

    if not candidates:
        raise ProjectNotFoundError(f"no projects found in organization or repository for '{owner}/{repo}'")

    newest = max(candidates, key=lambda node: _parse_timestamp(node["createdAt"]))
    return newest["number"]


def resolve_field_value(item: ProjectItem) -> str:
    """The group-by field value of an item, or "" when unset."""
    if item.field_value is None:
        return ""
    return item.field_value.value


def linked_prs(item: ProjectItem) -> list[LinkedPullRequest]:
    """
    PRs linked to an issue through its timeline, highest number first.

    Non-issue items have no linked PRs.
    """
    if not isinstance(item.content, IssueContent):
        return []

    prs = [
        event.pull_request
        for event in item.content.timeline
        if event.pull_request is not None and event.pull_request.number != 0
    ]
    return sorted(prs, key=lambda pr: pr.number, reverse=True)


def _related_prs(item: ProjectItem) -> list[LinkedPullRequest]:
    if isinstance(item.content, PullRequestContent):
        return [item.content.pr]
    return linked_prs(item)


def no_pr_filter(item: ProjectItem) -> bool:
    if isinstance(item.content, PullRequestContent):
        return False
    if isinstance(item.content, IssueContent):
        return not linked_prs(item)
    return True


def with_pr_filter(item: ProjectItem) -> bool:
    if isinstance(item.content, PullRequestContent):
        return True
    if isinstance(item.content, IssueContent):
        return bool(linked_prs(item))
    return False


def pr_not_merged_filter(item: ProjectItem) -> bool:
    return any(not pr.is_merged for pr in _related_prs(item))


def reviewer_filter(login: str) -> ItemFilter:
    """Items whose PR (or linked PR) requests a review from `login`."""
    def matches(item: ProjectItem) -> bool:
        return any(login in pr.reviewers for pr in _related_prs(item))
    return matches


FILTERS: dict[str, ItemFilter | None] = {
    "all": None,
    "no-pr": no_pr_filter,
    "with-pr": with_pr_filter,
    "pr-not-merged": pr_not_merged_filter,
}


def _type_order_key(item: ProjectItem) -> tuple[int, int]:
    if isinstance(item.content, PullRequestContent):
        return (0, -item.content.pr.number)
    return (1, 0)


def _group_order_key(item: ProjectItem) -> tuple[bool, str]:
    value = resolve_field_value(item)
    return (value == "", value)


def project_items(
    items: list[ProjectItem],
    item_filter: ItemFilter | None = None,
    group_by: str = "",
) -> list[ProjectItem]:
    """
    Filter and order project items for display.

    Grouped: ascending by field value, items without a value last.
    Ungrouped: pull requests first (highest number first), then issues
    and drafts in their original order.
    """
    selected = [item for item in items if item_filter is None or item_filter(item)]

    # sorted() is stable; ties keep their fetched order
    if group_by:
        return sorted(selected, key=_group_order_key)
    return sorted(selected, key=_type_order_key)


def format_item(item: ProjectItem) -> str:
    if isinstance(item.content, IssueContent):
        return f"Issue #{item.content.number}: {item.content.title}"
    if isinstance(item.content, PullRequestContent):
        return f"PR #{item.content.pr.number}: {item.content.pr.title}"
    return f"Draft: {item.content.title}"


def render_project_items(
    items: list[ProjectItem],
    project_number: int,
    title: str,
    group_by: str = "",
    echo: Callable[[str], Any] = click.echo,
    theme: Theme | None = None,
) -> None:
    """Print items, one per line, with a blank line between groups."""
    header = f"Project #{project_number} - {title}"
    separator = "-" * 50
    if theme is not None:
        header = theme.style_header(header)
        separator = theme.style_muted(separator)
    echo(header)
    echo(separator)
    echo("")

    last_group: object = NO_GROUP
    for item in items:
        line = format_item(item)
        if group_by:
            group = resolve_field_value(item)
            if last_group is not NO_GROUP and group != last_group:
                echo("")
            last_group = group
            prefix = f"[{group}]"
            if theme is not None:
                prefix = theme.style_divider(prefix)
            line = f"{prefix} {line}"
        echo(line)
