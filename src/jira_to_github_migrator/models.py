"""Data models exchanged between the JIRA client, the GitHub target and the orchestrator.

Source records are validated once, at ingestion, in the ``from_api``
constructors. Everything downstream works with plain typed attributes and
never inspects raw JIRA payloads again.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class JiraFieldIds:
    """Instance-specific custom field ids (they differ between JIRA servers)."""

    story_points: str = "customfield_10004"
    epic_link: str = "customfield_10008"


@dataclass(frozen=True)
class SourceAttachment:
    """An attachment on a JIRA issue; content_url needs the bearer token to fetch."""

    id: str
    filename: str
    content_url: str
    mime_type: str = ""
    size: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SourceAttachment:
        return cls(
            id=str(data.get("id", "")),
            filename=data.get("filename") or f"attachment-{data.get('id', 'unknown')}",
            content_url=data.get("content", ""),
            mime_type=data.get("mimeType") or "",
            size=int(data.get("size") or 0),
        )


@dataclass(frozen=True)
class SourceComment:
    """A comment on a JIRA issue."""

    id: str
    author: str
    body: str
    created: str = ""
    updated: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SourceComment:
        author = data.get("author") or {}
        return cls(
            id=str(data.get("id", "")),
            author=author.get("displayName") or "Unknown",
            body=data.get("body") or "",
            created=data.get("created") or "",
            updated=data.get("updated") or "",
        )


def _name_of(value: object) -> str | None:
    """Return the name of a JIRA field that may be a plain string or a {"name": ...} object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        name = value.get("name")
        return name if isinstance(name, str) and name else None
    return None


def _as_points(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # pyright: ignore[reportArgumentType]
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SourceIssue:
    """Immutable snapshot of a JIRA issue, fetched once per run."""

    key: str
    id: str
    summary: str
    description: str = ""
    status: str | None = None
    priority: str | None = None
    issue_type: str | None = None
    assignee: str | None = None
    created: str = ""
    updated: str = ""
    labels: tuple[str, ...] = ()
    attachments: tuple[SourceAttachment, ...] = ()
    story_points: float | None = None
    epic_key: str | None = None

    @property
    def is_epic(self) -> bool:
        return (self.issue_type or "").lower() == "epic"

    def browse_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/browse/{self.key}"

    @classmethod
    def from_api(cls, data: dict[str, Any], field_ids: JiraFieldIds | None = None) -> SourceIssue:
        """Build a SourceIssue from a REST v2 issue payload."""
        field_ids = field_ids or JiraFieldIds()
        fields: dict[str, Any] = data.get("fields") or {}
        assignee = fields.get("assignee") or {}
        epic_key = fields.get(field_ids.epic_link)

        return cls(
            key=data["key"],
            id=str(data.get("id", "")),
            summary=fields.get("summary") or "",
            description=fields.get("description") or "",
            status=_name_of(fields.get("status")),
            priority=_name_of(fields.get("priority")),
            issue_type=_name_of(fields.get("issuetype")),
            assignee=assignee.get("displayName") if isinstance(assignee, dict) else None,
            created=fields.get("created") or "",
            updated=fields.get("updated") or "",
            labels=tuple(fields.get("labels") or ()),
            attachments=tuple(SourceAttachment.from_api(a) for a in fields.get("attachment") or ()),
            story_points=_as_points(fields.get(field_ids.story_points)),
            epic_key=epic_key if isinstance(epic_key, str) and epic_key else None,
        )


@dataclass(frozen=True)
class TargetIssue:
    """An issue on the GitHub side."""

    number: int
    url: str


@dataclass
class MigrationResult:
    """Outcome of migrating one JIRA issue."""

    jira_key: str
    jira_url: str
    is_epic: bool = False
    github_issue: TargetIssue | None = None
    success: bool = False
    error: str | None = None
    attachments_uploaded: int = 0
    comments_added: int = 0
    updated: bool = False
    linked_to_epic: str | None = None
    estimate_set: float | None = None


@dataclass
class MigrationReport:
    """Aggregated outcome of a migration run, persisted as the audit artifact."""

    started_at: str
    target_repo: str
    jql: str
    dry_run: bool = False
    completed_at: str = ""
    total_issues: int = 0
    successful_migrations: int = 0
    failed_migrations: int = 0
    created_count: int = 0
    updated_count: int = 0
    epics_created: int = 0
    children_linked: int = 0
    orphans_created: int = 0
    total_comments_added: int = 0
    total_attachments_uploaded: int = 0
    results: list[MigrationResult] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed_migrations > 0

    def record(self, result: MigrationResult) -> None:
        """Add a result and update the counters."""
        self.results.append(result)
        self.total_comments_added += result.comments_added
        self.total_attachments_uploaded += result.attachments_uploaded

        if not result.success:
            self.failed_migrations += 1
            return

        self.successful_migrations += 1
        if result.updated:
            self.updated_count += 1
        else:
            self.created_count += 1

        if result.is_epic:
            self.epics_created += 1
        elif result.linked_to_epic:
            self.children_linked += 1
        else:
            self.orphans_created += 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
