"""
Data model for git-tooling.

Records parsed from GitHub GraphQL nodes:
- PullRequestRef: a PR identified by number (diff engine currency)
- Commit / PageInfo: branch history pagination
- ProjectItem: a project board row whose content is one of
  IssueContent, PullRequestContent or DraftIssueContent
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union


@dataclass
class PullRequestRef:
    """A pull request reference; `number` is the identity."""
    number: int
    title: str = ""
    merge_commit: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "merge_commit": self.merge_commit,
        }

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "PullRequestRef":
        """Parse a `pullRequests` node."""
        merge_commit = node.get("mergeCommit") or {}
        return cls(
            number=node.get("number", 0),
            title=node.get("title", ""),
            merge_commit=merge_commit.get("oid") or None,
            url=node.get("url"),
        )


@dataclass
class Commit:
    """A commit from branch history."""
    oid: str
    message: str


@dataclass
class PageInfo:
    """Cursor pagination state of a GraphQL connection."""
    has_next_page: bool = False
    end_cursor: str | None = None

    def next_cursor(self) -> str | None:
        """Cursor for the next page, or None once the connection is exhausted."""
        if not self.has_next_page:
            return None
        return self.end_cursor

    @classmethod
    def from_node(cls, node: dict[str, Any] | None) -> "PageInfo":
        node = node or {}
        return cls(
            has_next_page=bool(node.get("hasNextPage", False)),
            end_cursor=node.get("endCursor"),
        )


@dataclass
class LinkedPullRequest:
    """PR fragment attached to project items and issue timelines."""
    number: int
    title: str
    merged_at: str | None = None
    reviewers: list[str] = field(default_factory=list)

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "merged_at": self.merged_at,
            "reviewers": list(self.reviewers),
        }

    @classmethod
    def from_node(cls, node: dict[str, Any] | None) -> "LinkedPullRequest | None":
        """Parse a PullRequest fragment; None when the node is not a PR."""
        if not node or not node.get("number"):
            return None

        reviewers = []
        for request in (node.get("reviewRequests") or {}).get("nodes") or []:
            reviewer = (request or {}).get("requestedReviewer") or {}
            # Team reviewers have no login
            if reviewer.get("login"):
                reviewers.append(reviewer["login"])

        return cls(
            number=node["number"],
            title=node.get("title", ""),
            merged_at=node.get("mergedAt"),
            reviewers=reviewers,
        )


TimelineKind = Literal["connected", "cross_referenced", "referenced"]


@dataclass
class TimelineEvent:
    """An issue timeline event that may point at a pull request."""
    kind: TimelineKind
    pull_request: LinkedPullRequest | None = None

    # GraphQL __typename -> (kind, key holding the referenced node)
    SHAPES = {
        "ConnectedEvent": ("connected", "subject"),
        "CrossReferencedEvent": ("cross_referenced", "source"),
        "ReferencedEvent": ("referenced", "subject"),
    }

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "TimelineEvent | None":
        shape = cls.SHAPES.get(node.get("__typename", ""))
        if shape is None:
            return None
        kind, key = shape
        return cls(kind=kind, pull_request=LinkedPullRequest.from_node(node.get(key)))


@dataclass
class IssueContent:
    number: int
    title: str
    timeline: list[TimelineEvent] = field(default_factory=list)
    kind: Literal["Issue"] = "Issue"


@dataclass
class PullRequestContent:
    pr: LinkedPullRequest
    kind: Literal["PullRequest"] = "PullRequest"


@dataclass
class DraftIssueContent:
    title: str
    kind: Literal["DraftIssue"] = "DraftIssue"


ItemContent = Union[IssueContent, PullRequestContent, DraftIssueContent]


def parse_item_content(node: dict[str, Any] | None) -> ItemContent | None:
    """
    Parse the `content` union of a project item.

    Returns None for content types this tool does not display
    (e.g. items the viewer has no access to).
    """
    if not node:
        return None

    typename = node.get("__typename")
    if typename == "Issue":
        timeline = []
        for event_node in (node.get("timelineItems") or {}).get("nodes") or []:
            event = TimelineEvent.from_node(event_node or {})
            if event is not None:
                timeline.append(event)
        return IssueContent(
            number=node.get("number", 0),
            title=node.get("title", ""),
            timeline=timeline,
        )
    if typename == "PullRequest":
        pr = LinkedPullRequest.from_node(node)
        if pr is None:
            return None
        return PullRequestContent(pr=pr)
    if typename == "DraftIssue":
        return DraftIssueContent(title=node.get("title", ""))
    return None


@dataclass
class FieldValue:
    """A project custom field value (single-select or text)."""
    kind: Literal["single_select", "text"]
    value: str

    @classmethod
    def from_node(cls, node: dict[str, Any] | None) -> "FieldValue | None":
        if not node:
            return None
        typename = node.get("__typename")
        if typename == "ProjectV2ItemFieldSingleSelectValue":
            return cls(kind="single_select", value=node.get("name") or "")
        if typename == "ProjectV2ItemFieldTextValue":
            return cls(kind="text", value=node.get("text") or "")
        return None


@dataclass
class ProjectItem:
    """A row of a GitHub Project (v2) board."""
    id: str
    content: ItemContent
    field_value: FieldValue | None = None

    @property
    def kind(self) -> str:
        return self.content.kind

    @property
    def number(self) -> int | None:
        if isinstance(self.content, IssueContent):
            return self.content.number
        if isinstance(self.content, PullRequestContent):
            return self.content.pr.number
        return None

    @property
    def title(self) -> str:
        if isinstance(self.content, PullRequestContent):
            return self.content.pr.title
        return self.content.title

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.kind,
            "number": self.number,
            "title": self.title,
            "field_value": self.field_value.value if self.field_value else None,
        }
        if isinstance(self.content, PullRequestContent):
            data["merged_at"] = self.content.pr.merged_at
            data["reviewers"] = list(self.content.pr.reviewers)
        return data

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "ProjectItem | None":
        content = parse_item_content(node.get("content"))
        if content is None:
            return None
        return cls(
            id=node.get("id", ""),
            content=content,
            field_value=FieldValue.from_node(node.get("fieldValueByName")),
        )
