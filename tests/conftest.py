"""
Pytest configuration and fixtures.

The fakes here stand in for GitHub and JIRA in unit tests. FakeTransport keeps
issues, labels, comments, sub-issues and board items in memory and is safe to
use from the migration's worker threads.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from jira_to_github_migrator.config import MigrationConfig
from jira_to_github_migrator.exceptions import UpstreamError
from jira_to_github_migrator.models import SourceAttachment, SourceComment, SourceIssue, TargetIssue
from jira_to_github_migrator.protocols import ProjectFields, StatusOption

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

BOARD_OPTIONS: list[StatusOption] = [
    StatusOption(id="opt-backlog", name="Backlog"),
    StatusOption(id="opt-progress", name="In Progress"),
    StatusOption(id="opt-review", name="Code Review"),
    StatusOption(id="opt-done", name="Done"),
]


class FakeTransport:
    """In-memory TargetTransport."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.issues: dict[int, dict[str, object]] = {}
        self.labels: dict[str, str] = {}
        self.comments: dict[int, list[str]] = {}
        self.sub_issues: dict[int, list[int]] = {}
        self.project_items: dict[str, str] = {}
        self.item_fields: dict[tuple[str, str], object] = {}
        self.fail_titles_containing: set[str] = set()
        self.project_fields = ProjectFields(project_id="PVT_1", status_field_id="F_STATUS", estimate_field_id="F_EST")
        self.status_options: list[StatusOption] = list(BOARD_OPTIONS)
        self.add_project_item_calls: list[str] = []
        self.authenticated = True

    def _url(self, number: int) -> str:
        return f"https://github.com/org/repo/issues/{number}"

    def check_auth(self) -> bool:
        return self.authenticated

    def find_issues_by_label(self, label: str, limit: int = 1) -> list[TargetIssue]:
        with self._lock:
            found = [
                TargetIssue(number=number, url=self._url(number))
                for number, issue in sorted(self.issues.items())
                if label in issue["labels"]  # type: ignore[operator]
            ]
        return found[:limit]

    def label_exists(self, name: str) -> bool:
        return name in self.labels

    def create_label(self, name: str, color: str) -> None:
        self.labels[name] = color

    def create_issue(self, title: str, body: str, labels: Sequence[str]) -> TargetIssue:
        if any(marker in title for marker in self.fail_titles_containing):
            msg = f"Failed to create issue '{title}'"
            raise UpstreamError(msg, status=500)
        with self._lock:
            number = len(self.issues) + 1
            self.issues[number] = {"title": title, "body": body, "labels": list(labels)}
        return TargetIssue(number=number, url=self._url(number))

    def edit_issue(self, number: int, *, title: str, body: str) -> None:
        if any(marker in title for marker in self.fail_titles_containing):
            msg = f"Failed to edit issue #{number}"
            raise UpstreamError(msg, status=500)
        self.issues[number].update(title=title, body=body)

    def get_issue_labels(self, number: int) -> list[str]:
        return list(self.issues[number]["labels"])  # type: ignore[call-overload]

    def edit_issue_labels(self, number: int, *, add: Sequence[str] = (), remove: Sequence[str] = ()) -> None:
        labels: list[str] = self.issues[number]["labels"]  # type: ignore[assignment]
        labels[:] = [label for label in labels if label not in remove] + [a for a in add if a not in labels]

    def add_comment(self, number: int, body: str) -> None:
        with self._lock:
            self.comments.setdefault(number, []).append(body)

    def get_issue_node_id(self, number: int) -> str | None:
        return f"I_{number}" if number in self.issues else None

    def get_sub_issue_numbers(self, parent_number: int) -> list[int]:
        return list(self.sub_issues.get(parent_number, []))

    def add_sub_issue(self, parent_node_id: str, child_node_id: str) -> None:
        parent = int(parent_node_id.removeprefix("I_"))
        child = int(child_node_id.removeprefix("I_"))
        with self._lock:
            self.sub_issues.setdefault(parent, []).append(child)

    def get_project_fields(self, project_number: int) -> ProjectFields:
        return self.project_fields

    def get_status_options(self, project_number: int) -> list[StatusOption]:
        return self.status_options

    def add_project_item(self, project_number: int, issue_url: str) -> str | None:
        with self._lock:
            self.add_project_item_calls.append(issue_url)
            if issue_url in self.project_items:
                msg = "Content already exists in this project"
                raise UpstreamError(msg)
            item_id = f"PVTI_{len(self.project_items) + 1}"
            self.project_items[issue_url] = item_id
        return item_id

    def find_project_item(self, project_number: int, issue_url: str, issue_number: int) -> str | None:
        return self.project_items.get(issue_url)

    def set_item_option(self, project_id: str, item_id: str, field_id: str, option_id: str) -> None:
        self.item_fields[(item_id, field_id)] = option_id

    def set_item_number(self, project_id: str, item_id: str, field_id: str, value: float) -> None:
        self.item_fields[(item_id, field_id)] = value

    def issue_numbers_by_key(self) -> dict[str, int]:
        """Map JIRA key (from the title) to issue number."""
        return {
            str(issue["title"]).split("]", 1)[0].lstrip("["): number for number, issue in self.issues.items()
        }


class FakeSource:
    """In-memory SourceTracker."""

    def __init__(
        self,
        issues: Sequence[SourceIssue],
        comments: dict[str, list[SourceComment]] | None = None,
    ) -> None:
        self.issues = list(issues)
        self.comments = comments or {}

    def fetch_all(self, jql: str, page_size: int = 100) -> list[SourceIssue]:
        return list(self.issues)

    def get_comments(self, key: str, page_size: int = 100) -> list[SourceComment]:
        return list(self.comments.get(key, []))

    def download_all_attachments(self, issue: SourceIssue, dest_dir: Path) -> list[Path]:
        paths: list[Path] = []
        for attachment in issue.attachments:
            path = dest_dir / attachment.filename
            _ = path.write_bytes(b"data")
            paths.append(path)
        return paths


def make_issue(
    key: str,
    *,
    issue_type: str = "Story",
    epic_key: str | None = None,
    status: str | None = "Open",
    story_points: float | None = None,
    attachments: tuple[SourceAttachment, ...] = (),
) -> SourceIssue:
    return SourceIssue(
        key=key,
        id=key.rsplit("-", 1)[-1],
        summary=f"Summary of {key}",
        description=f"h2. About {key}",
        status=status,
        priority="3-Medium",
        issue_type=issue_type,
        assignee="Jane Doe",
        created="2024-01-15T10:30:45.000+0000",
        updated="2024-01-16T09:00:00.000+0000",
        story_points=story_points,
        epic_key=epic_key,
        attachments=attachments,
    )


@pytest.fixture
def issue_factory() -> Callable[..., SourceIssue]:
    return make_issue


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def config(tmp_path: Path) -> MigrationConfig:
    return MigrationConfig(
        owner="org",
        repo="repo",
        jql='project = "DEMO"',
        jira_base_url="https://jira.example.com",
        skip_attachments=True,
        comment_delay=0,
        retry_base_delay=2.0,
        report_path=tmp_path / "report.json",
    )


@pytest.fixture
def source_factory() -> type[FakeSource]:
    return FakeSource
