"""
Projects (v2) board placement for migrated issues.

The board is discovered once per run. Each issue is then added as an item,
its Status column is set from the JIRA status and, for non-epics, its
Estimate field from the story points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .exceptions import UpstreamError
from .gh_cli import issue_number_from_url
from .utils import normalize_label

if TYPE_CHECKING:
    from .protocols import TargetTransport

logger: logging.Logger = logging.getLogger(__name__)

DRY_RUN_ITEM_ID: Final[str] = "dry-run-item-id"

BACKLOG: Final[str] = "Backlog"
PRIORITISED_BACKLOG: Final[str] = "Prioritised Backlog"
REFINED: Final[str] = "Refined Tickets"
IN_PROGRESS: Final[str] = "In Progress"
CODE_REVIEW: Final[str] = "Code Review"
READY_FOR_TEST: Final[str] = "Ready For Test"
IN_TEST: Final[str] = "In Test"
READY_FOR_SIGN_OFF: Final[str] = "Ready For Sign Off"
DONE: Final[str] = "Done"

BOARD_COLUMNS: Final[tuple[str, ...]] = (
    BACKLOG,
    PRIORITISED_BACKLOG,
    REFINED,
    IN_PROGRESS,
    CODE_REVIEW,
    READY_FOR_TEST,
    IN_TEST,
    READY_FOR_SIGN_OFF,
    DONE,
)

# Normalised JIRA status -> board column
STATUS_TO_COLUMN: Final[dict[str, str]] = {
    "new": BACKLOG,
    "open": BACKLOG,
    "backlog": BACKLOG,
    "to-do": BACKLOG,
    "todo": BACKLOG,
    "prioritised-backlog": PRIORITISED_BACKLOG,
    "prioritized-backlog": PRIORITISED_BACKLOG,
    "next---prioritised": PRIORITISED_BACKLOG,
    "ready-for-progress": REFINED,
    "ready-for-development": REFINED,
    "refined": REFINED,
    "refined-tickets": REFINED,
    "in-progress": IN_PROGRESS,
    "in-development": IN_PROGRESS,
    "development": IN_PROGRESS,
    "code-review": CODE_REVIEW,
    "in-review": CODE_REVIEW,
    "review": CODE_REVIEW,
    "ready-for-test": READY_FOR_TEST,
    "ready-for-testing": READY_FOR_TEST,
    "in-test": IN_TEST,
    "in-testing": IN_TEST,
    "testing": IN_TEST,
    "test": IN_TEST,
    "ready-for-sign-off": READY_FOR_SIGN_OFF,
    "ready-for-signoff": READY_FOR_SIGN_OFF,
    "awaiting-sign-off": READY_FOR_SIGN_OFF,
    "acceptance": READY_FOR_SIGN_OFF,
    "closed": DONE,
    "done": DONE,
    "resolved": DONE,
    "complete": DONE,
    "completed": DONE,
    "finished": DONE,
    "withdrawn": DONE,
    "cancelled": DONE,
    "canceled": DONE,
    "rejected": DONE,
    "won't-do": DONE,
    "wont-do": DONE,
    "wontdo": DONE,
    "prod-release": DONE,
}


@dataclass
class ProjectBoardState:
    """Ids discovered on the board; populated once by ProjectBoard.setup."""

    project_number: int
    project_id: str
    status_field_id: str
    estimate_field_id: str | None = None
    status_options: dict[str, str] = field(default_factory=dict)
    """Column name -> option id, as named on the board."""
    status_to_option: dict[str, str] = field(default_factory=dict)
    """Normalised JIRA status -> option id."""

    def option_for_column(self, column: str) -> str | None:
        """Look up a column's option id by exact, lower-case, then hyphenated name."""
        lowered = {name.lower(): option_id for name, option_id in self.status_options.items()}
        return (
            self.status_options.get(column)
            or lowered.get(column.lower())
            or lowered.get(normalize_label(column))
        )

    def option_for_status(self, jira_status: str | None) -> str | None:
        """Resolve a JIRA status to an option id, falling back to the backlog column."""
        option_id = self.status_to_option.get(normalize_label(jira_status or "new"))
        if option_id:
            return option_id
        return self.status_to_option.get("new") or self.status_to_option.get("backlog")


def build_status_mapping(status_options: dict[str, str]) -> dict[str, str]:
    """Map every known JIRA status onto an option id of the board, where the column exists."""
    lookup = ProjectBoardState(project_number=0, project_id="", status_field_id="", status_options=status_options)
    mapping: dict[str, str] = {}
    for jira_status, column in STATUS_TO_COLUMN.items():
        option_id = lookup.option_for_column(column)
        if option_id:
            mapping[jira_status] = option_id
    return mapping


class ProjectBoard:
    """Adds issues to a Projects (v2) board and sets their Status and Estimate."""

    transport: TargetTransport
    dry_run: bool
    state: ProjectBoardState | None

    def __init__(self, transport: TargetTransport, *, dry_run: bool = False) -> None:
        self.transport = transport
        self.dry_run = dry_run
        self.state = None

    @property
    def ready(self) -> bool:
        return self.state is not None

    def setup(self, project_number: int) -> bool:
        """Discover the board's ids and status options.

        Discovery runs in dry-run mode too. Returns False (and leaves the board
        disabled) if the project, its Status field or its options are missing.
        """
        print(f"Setting up project board #{project_number}...")
        self.state = None

        try:
            fields = self.transport.get_project_fields(project_number)
            if not fields.project_id or not fields.status_field_id:
                logger.error(f"Project {project_number} has no id or Status field")
                return False
            options = {option.name: option.id for option in self.transport.get_status_options(project_number)}
        except UpstreamError as e:
            logger.error(f"Failed to set up project board {project_number}: {e}")
            return False

        if not options:
            logger.error(f"Status field of project {project_number} has no options")
            return False
        if not fields.estimate_field_id:
            logger.warning(f"Project {project_number} has no Estimate field; story points will not be set")

        self.state = ProjectBoardState(
            project_number=project_number,
            project_id=fields.project_id,
            status_field_id=fields.status_field_id,
            estimate_field_id=fields.estimate_field_id,
            status_options=options,
            status_to_option=build_status_mapping(options),
        )
        print(f"Project board ready: {len(options)} columns, {len(self.state.status_to_option)} mapped statuses")
        return True

    def _add_item(self, issue_url: str) -> str | None:
        assert self.state is not None
        try:
            return self.transport.add_project_item(self.state.project_number, issue_url)
        except UpstreamError as e:
            if "already exists" not in str(e).lower():
                raise
            logger.debug(f"{issue_url} is already on the board, looking up its item")
            return self.transport.find_project_item(
                self.state.project_number, issue_url, issue_number_from_url(issue_url)
            )

    def add_to_board(self, issue_url: str, jira_status: str | None) -> str | None:
        """Place the issue on the board in the column for its JIRA status.

        Returns:
            The project item id, or None if the issue could not be placed
        """
        if self.state is None:
            return None
        if self.dry_run:
            logger.info(f"[dry-run] Would add {issue_url} to project {self.state.project_number} ({jira_status})")
            return DRY_RUN_ITEM_ID

        try:
            item_id = self._add_item(issue_url)
        except UpstreamError as e:
            logger.warning(f"Failed to add {issue_url} to the project board: {e}")
            return None
        if not item_id:
            logger.warning(f"Could not find the project item for {issue_url}")
            return None

        option_id = self.state.option_for_status(jira_status)
        if not option_id:
            logger.warning(f"No board column for JIRA status '{jira_status}' and no backlog fallback")
            return item_id

        try:
            self.transport.set_item_option(self.state.project_id, item_id, self.state.status_field_id, option_id)
        except UpstreamError as e:
            logger.warning(f"Failed to set the board status of {issue_url}: {e}")
        return item_id

    def set_estimate(self, item_id: str, points: float) -> float | None:
        """Set the Estimate field; returns the value set, or None."""
        if self.state is None or not self.state.estimate_field_id:
            return None
        if self.dry_run:
            logger.info(f"[dry-run] Would set estimate {points:g} on {item_id}")
            return points

        try:
            self.transport.set_item_number(self.state.project_id, item_id, self.state.estimate_field_id, points)
        except UpstreamError as e:
            logger.warning(f"Failed to set estimate on {item_id}: {e}")
            return None
        return points
