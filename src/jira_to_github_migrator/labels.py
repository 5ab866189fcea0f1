"""
Label scheme for migrated issues.

Each migrated issue carries a ``jira:KEY`` tag label (the idempotency marker),
the ``migrated-from-jira`` marker, and managed ``status:``/``priority:``/``type:``
labels derived from the JIRA fields. Labels outside the managed prefixes are
never touched on re-runs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final, NamedTuple

from .exceptions import UpstreamError
from .utils import normalize_label

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .models import SourceIssue
    from .protocols import TargetTransport

logger: logging.Logger = logging.getLogger(__name__)

MIGRATED_LABEL: Final[str] = "migrated-from-jira"
TAG_PREFIX: Final[str] = "jira:"
MANAGED_PREFIXES: Final[tuple[str, ...]] = ("status:", "priority:", "type:")
DEFAULT_COLOR: Final[str] = "ededed"

_PREFIX_COLORS: Final[dict[str, str]] = {
    TAG_PREFIX: "0052CC",
    "status:": "0E8A16",
    "type:": "1D76DB",
}
_PRIORITY_COLORS: Final[dict[str, str]] = {
    "priority:1": "B60205",
    "priority:2": "D93F0B",
    "priority:3": "FBCA04",
    "priority:4": "0E8A16",
    "priority:5": "C2E0C6",
}


def tag_label(jira_key: str) -> str:
    return f"{TAG_PREFIX}{jira_key}"


def label_color(name: str) -> str:
    """Pick a colour for a label by its prefix."""
    if name == MIGRATED_LABEL:
        return "5319E7"
    # JIRA priorities usually look like "1-Critical"; the digit decides the colour
    for prefix, color in _PRIORITY_COLORS.items():
        if name.startswith(prefix):
            return color
    for prefix, color in _PREFIX_COLORS.items():
        if name.startswith(prefix):
            return color
    return DEFAULT_COLOR


def is_managed(name: str) -> bool:
    return name.startswith(MANAGED_PREFIXES)


def build_managed_labels(issue: SourceIssue) -> list[str]:
    """Status, priority and type labels for the issue, skipping fields JIRA left empty."""
    labels: list[str] = []
    if issue.status:
        labels.append(f"status:{normalize_label(issue.status)}")
    if issue.priority:
        labels.append(f"priority:{normalize_label(issue.priority)}")
    if issue.issue_type:
        labels.append(f"type:{normalize_label(issue.issue_type)}")
    return labels


def build_issue_labels(issue: SourceIssue) -> list[str]:
    """All labels a newly created issue gets."""
    return [tag_label(issue.key), MIGRATED_LABEL, *build_managed_labels(issue)]


class LabelDiff(NamedTuple):
    """Managed labels to add and remove so an existing issue reflects the current JIRA state."""

    add: list[str]
    remove: list[str]


def diff_managed_labels(current: Iterable[str], desired: Sequence[str]) -> LabelDiff:
    """Compare the managed labels on an issue with the desired ones.

    Unmanaged labels (tag, marker and anything added by hand on GitHub) are ignored.
    """
    current_managed = {name for name in current if is_managed(name)}
    desired_set = set(desired)
    return LabelDiff(
        add=[name for name in desired if name not in current_managed],
        remove=sorted(current_managed - desired_set),
    )


def ensure_labels_exist(transport: TargetTransport, labels: Iterable[str]) -> None:
    """Create any missing labels.

    A label that cannot be created with its scheme colour is retried with the
    default colour; if that fails too the error propagates.
    """
    for name in labels:
        if transport.label_exists(name):
            continue

        color = label_color(name)
        try:
            transport.create_label(name, color)
            logger.info(f"Created label: {name}")
        except UpstreamError as e:
            if color == DEFAULT_COLOR:
                raise
            logger.warning(f"Failed to create label {name} with colour {color}, retrying with default: {e}")
            transport.create_label(name, DEFAULT_COLOR)
