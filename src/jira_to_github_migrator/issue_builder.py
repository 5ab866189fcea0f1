"""Build GitHub issue titles, bodies and comments from JIRA data."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from .markdown import convert_jira_to_markdown

if TYPE_CHECKING:
    from .models import SourceComment, SourceIssue

# Minimum time difference (in seconds) to consider showing "edited" timestamp
LAST_EDITED_THRESHOLD_SECONDS = 60


def format_timestamp(iso_timestamp: str) -> str:
    """Format ISO 8601 timestamp to human-readable format.

    Args:
        iso_timestamp: ISO 8601 formatted timestamp string, as JIRA returns it
            (e.g. "2024-01-15T10:30:45.000+0000")

    Returns:
        Formatted timestamp (e.g., "2024-01-15 10:30:45Z").
        Returns original value if parsing fails.
    """
    if not iso_timestamp:
        return iso_timestamp

    try:
        timestamp_dt = dt.datetime.fromisoformat(iso_timestamp)
        formatted = timestamp_dt.isoformat(sep=" ", timespec="seconds")
        return formatted.replace("+00:00", "Z")
    except (ValueError, AttributeError):
        return iso_timestamp


def should_show_last_edited(created_at: str, updated_at: str) -> bool:
    """Check if the edited timestamp should be shown.

    Returns:
        True if updated_at differs from created_at by more than LAST_EDITED_THRESHOLD_SECONDS
    """
    if not created_at or not updated_at:
        return False

    try:
        created_dt = dt.datetime.fromisoformat(created_at)
        updated_dt = dt.datetime.fromisoformat(updated_at)
    except (ValueError, AttributeError):
        return False

    diff = abs((updated_dt - created_dt).total_seconds())
    return diff > LAST_EDITED_THRESHOLD_SECONDS


def build_issue_title(issue: SourceIssue) -> str:
    return f"[{issue.key}] {issue.summary}"


def build_issue_body(issue: SourceIssue, jira_base_url: str) -> str:
    """Build complete GitHub issue body with migration header and JIRA metadata.

    Args:
        issue: The JIRA issue
        jira_base_url: Base URL of the JIRA server, used for the backlink

    Returns:
        Complete issue body for GitHub
    """
    body = f"> **Migrated from [{issue.key}]({issue.browse_url(jira_base_url)})**\n\n"
    description = convert_jira_to_markdown(issue.description)
    if description:
        body += f"{description}\n\n"
    body += "---\n\n"
    body += "## Original JIRA Metadata\n\n"
    body += f"- **Status:** {issue.status or 'Unknown'}\n"
    body += f"- **Priority:** {issue.priority or 'Unknown'}\n"
    body += f"- **Issue Type:** {issue.issue_type or 'Unknown'}\n"
    body += f"- **Assignee:** {issue.assignee or 'Unassigned'}\n"
    body += f"- **Created:** {format_timestamp(issue.created) or 'Unknown'}\n"
    body += f"- **Updated:** {format_timestamp(issue.updated) or 'Unknown'}\n"
    body += f"- **Original Labels:** {', '.join(issue.labels) if issue.labels else 'None'}\n"
    if issue.story_points is not None:
        body += f"- **Story Points:** {issue.story_points:g}\n"
    if issue.attachments:
        body += "\n_Attachments will be added in a comment below._\n"
    return body


def format_comment(comment: SourceComment) -> str:
    """Render a JIRA comment with an author/date header."""
    header = f"> **{comment.author}** commented on {format_timestamp(comment.created)}"
    if should_show_last_edited(comment.created, comment.updated):
        header += f" (edited {format_timestamp(comment.updated)})"
    return f"{header}\n\n{convert_jira_to_markdown(comment.body)}"
