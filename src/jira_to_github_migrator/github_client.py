"""
Idempotent issue operations against the destination repository.

Issues are found by their ``jira:KEY`` tag label, so running the migration
again updates what a previous run created instead of duplicating it.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Final

from .exceptions import RateLimitError, UpstreamError
from .issue_builder import build_issue_body, build_issue_title, format_comment
from .labels import build_issue_labels, build_managed_labels, diff_managed_labels, ensure_labels_exist, tag_label
from .models import TargetIssue
from .project_board import ProjectBoard

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import MigrationConfig
    from .models import SourceComment, SourceIssue
    from .protocols import TargetTransport

logger: logging.Logger = logging.getLogger(__name__)

DRY_RUN_ISSUE_NUMBER: Final[int] = 0


class GitHubTarget:
    """Target tracker client: issues, sub-issues, comments and board placement.

    In dry-run mode every write is logged and replaced by a placeholder,
    while lookups still hit GitHub.
    """

    transport: TargetTransport
    config: MigrationConfig
    board: ProjectBoard

    def __init__(self, transport: TargetTransport, config: MigrationConfig) -> None:
        self.transport = transport
        self.config = config
        self.board = ProjectBoard(transport, dry_run=config.dry_run)

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    def _placeholder(self) -> TargetIssue:
        return TargetIssue(number=DRY_RUN_ISSUE_NUMBER, url=f"{self.config.repo_url}/issues/{DRY_RUN_ISSUE_NUMBER}")

    def check_auth(self) -> bool:
        return self.transport.check_auth()

    def find_existing(self, jira_key: str) -> TargetIssue | None:
        """Find the issue a previous run created for this key.

        Raises:
            UpstreamError: If the lookup fails outside dry-run; creating the issue
                anyway could duplicate it
        """
        try:
            matches = self.transport.find_issues_by_label(tag_label(jira_key), limit=1)
        except UpstreamError as e:
            if not self.dry_run:
                raise
            logger.warning(f"[{jira_key}] Lookup of existing issue failed: {e}")
            return None
        return matches[0] if matches else None

    def create_issue(self, issue: SourceIssue) -> TargetIssue:
        title = build_issue_title(issue)
        labels = build_issue_labels(issue)

        if self.dry_run:
            logger.info(f"[dry-run] Would create issue '{title}' with labels {labels}")
            return self._placeholder()

        ensure_labels_exist(self.transport, labels)
        created = self.transport.create_issue(title, build_issue_body(issue, self.config.jira_base_url), labels)
        logger.info(f"[{issue.key}] Created issue #{created.number}")
        return created

    def update_issue(self, number: int, issue: SourceIssue) -> TargetIssue:
        """Replace title and body, and bring the managed labels in line with JIRA."""
        title = build_issue_title(issue)
        url = f"{self.config.repo_url}/issues/{number}"

        if self.dry_run:
            logger.info(f"[dry-run] Would update issue #{number} '{title}'")
            return TargetIssue(number=number, url=url)

        self.transport.edit_issue(number, title=title, body=build_issue_body(issue, self.config.jira_base_url))

        diff = diff_managed_labels(self.transport.get_issue_labels(number), build_managed_labels(issue))
        if diff.add or diff.remove:
            ensure_labels_exist(self.transport, diff.add)
            self.transport.edit_issue_labels(number, add=diff.add, remove=diff.remove)
            logger.debug(f"[{issue.key}] Labels on #{number}: +{diff.add} -{diff.remove}")

        logger.info(f"[{issue.key}] Updated issue #{number}")
        return TargetIssue(number=number, url=url)

    def setup_board(self, project_number: int) -> bool:
        return self.board.setup(project_number)

    def add_to_board(self, issue_url: str, jira_status: str | None) -> str | None:
        return self.board.add_to_board(issue_url, jira_status)

    def set_estimate(self, item_id: str, points: float) -> float | None:
        return self.board.set_estimate(item_id, points)

    def link_sub_issue(self, parent_number: int, child_number: int) -> bool:
        """Attach child as a sub-issue of parent; already linked counts as success."""
        if self.dry_run:
            logger.info(f"[dry-run] Would link #{child_number} as sub-issue of #{parent_number}")
            return True

        try:
            if child_number in self.transport.get_sub_issue_numbers(parent_number):
                logger.debug(f"#{child_number} is already a sub-issue of #{parent_number}")
                return True

            parent_id = self.transport.get_issue_node_id(parent_number)
            child_id = self.transport.get_issue_node_id(child_number)
            if not parent_id or not child_id:
                logger.warning(f"Could not resolve node ids for #{parent_number} / #{child_number}")
                return False

            self.transport.add_sub_issue(parent_id, child_id)
        except UpstreamError as e:
            logger.warning(f"Failed to link #{child_number} to #{parent_number}: {e}")
            return False

        logger.info(f"Linked #{child_number} as sub-issue of #{parent_number}")
        return True

    def add_comment(self, number: int, body: str) -> bool:
        """Post a comment, backing off exponentially while GitHub rate-limits us.

        Only RateLimitError is retried; any other failure gives up at once.
        """
        if self.dry_run:
            logger.info(f"[dry-run] Would add comment to #{number}")
            return True

        attempts = self.config.max_comment_attempts
        for attempt in range(1, attempts + 1):
            try:
                self.transport.add_comment(number, body)
            except RateLimitError as e:
                if attempt == attempts:
                    logger.error(f"Giving up on comment for #{number} after {attempts} attempts: {e}")
                    return False
                delay = self.config.retry_base_delay * 2 ** (attempt - 1)
                logger.warning(f"Rate limited commenting on #{number}, retrying in {delay:g}s")
                time.sleep(delay)
            except UpstreamError as e:
                logger.error(f"Failed to add comment to #{number}: {e}")
                return False
            else:
                return True
        return False

    def migrate_comments(self, number: int, comments: Sequence[SourceComment]) -> int:
        """Post the comments in order and return how many made it."""
        added = 0
        for index, comment in enumerate(comments):
            if index and not self.dry_run:
                time.sleep(self.config.comment_delay)
            if self.add_comment(number, format_comment(comment)):
                added += 1
        return added
