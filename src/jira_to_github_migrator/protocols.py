"""Protocols separating the migration logic from the trackers it talks to.

The migration talks to the outside world through three narrow contracts:

1. TargetTransport: primitive reads and writes against the repository and its
   Projects (v2) board. ``GhCliTransport`` shells out to an already
   authenticated ``gh`` CLI; ``GitHubApiTransport`` uses PyGithub with a token.
   ``GitHubTarget`` and ``ProjectBoard`` build the idempotent operations on
   top, so swapping transports never touches orchestration code.
2. SourceTracker: the read side, implemented by ``JiraClient``.
3. AuthSession: an interactive browser session able to attach files to an
   issue, which GitHub's APIs do not allow.

Every transport failure is raised as UpstreamError; failures caused by
GitHub's secondary rate limits are raised as RateLimitError so callers can
back off and retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from .models import SourceComment, SourceIssue, TargetIssue


class ProjectFields(NamedTuple):
    """Node ids discovered on a project board."""

    project_id: str | None
    status_field_id: str | None
    estimate_field_id: str | None


class StatusOption(NamedTuple):
    """One column of the board's single-select Status field."""

    id: str
    name: str


class SourceTracker(Protocol):
    """Read access to the tracker issues are migrated from."""

    def fetch_all(self, jql: str, page_size: int = ...) -> list[SourceIssue]: ...

    def get_comments(self, key: str, page_size: int = ...) -> list[SourceComment]: ...

    def download_all_attachments(self, issue: SourceIssue, dest_dir: Path) -> list[Path]:
        """Download what can be downloaded; failures are logged and skipped."""
        ...


class TargetTransport(Protocol):
    """Primitive operations against the destination repository."""

    def check_auth(self) -> bool:
        """Return True if the transport holds usable GitHub credentials."""
        ...

    def find_issues_by_label(self, label: str, limit: int = 1) -> list[TargetIssue]:
        """Return issues (any state) carrying the label."""
        ...

    def label_exists(self, name: str) -> bool: ...

    def create_label(self, name: str, color: str) -> None:
        """Create the label, or update its colour if it already exists."""
        ...

    def create_issue(self, title: str, body: str, labels: Sequence[str]) -> TargetIssue: ...

    def edit_issue(self, number: int, *, title: str, body: str) -> None: ...

    def get_issue_labels(self, number: int) -> list[str]: ...

    def edit_issue_labels(self, number: int, *, add: Sequence[str] = (), remove: Sequence[str] = ()) -> None: ...

    def add_comment(self, number: int, body: str) -> None:
        """Post a comment.

        Raises:
            RateLimitError: If GitHub asks us to slow down
            UpstreamError: On any other failure
        """
        ...

    def get_issue_node_id(self, number: int) -> str | None: ...

    def get_sub_issue_numbers(self, parent_number: int) -> list[int]: ...

    def add_sub_issue(self, parent_node_id: str, child_node_id: str) -> None: ...

    def get_project_fields(self, project_number: int) -> ProjectFields: ...

    def get_status_options(self, project_number: int) -> list[StatusOption]: ...

    def add_project_item(self, project_number: int, issue_url: str) -> str | None:
        """Add an issue to the board and return the item id.

        Raises:
            UpstreamError: With "already exists" in the message if the issue is on the board
        """
        ...

    def find_project_item(self, project_number: int, issue_url: str, issue_number: int) -> str | None: ...

    def set_item_option(self, project_id: str, item_id: str, field_id: str, option_id: str) -> None: ...

    def set_item_number(self, project_id: str, item_id: str, field_id: str, value: float) -> None: ...


class AuthSession(Protocol):
    """A logged-in browser able to attach files to issues."""

    def wait_for_interactive_login(self) -> None:
        """Block until an operator has logged in. Runs once per process."""
        ...

    def upload_attachments(self, issue_url: str, paths: Sequence[Path]) -> int:
        """Attach the files to the issue as one comment and return how many were attached."""
        ...

    def close(self) -> None: ...
