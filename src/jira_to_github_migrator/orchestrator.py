"""Migration orchestrator that coordinates the JIRA source and the GitHub target.

Migration Flow
--------------
Issues are fetched once, then migrated in two phases so that every epic
exists on GitHub before any of its children needs it:

Phase 1: Epics
    Epics are migrated in fixed-size parallel batches. As soon as an epic
    has been created (or found and updated) its JIRA key is recorded in the
    epic mapping, key -> GitHub issue number.

Phase 2: Everything else
    Non-epics are migrated in the same batch size. A child whose epic is in
    the mapping is linked to it as a sub-issue; a child whose epic is not
    part of the run is logged as an orphan and migrated unlinked.

For each issue:
    a. Look for an issue created by a previous run (tag label); update it or create it
    b. Place it on the project board and set its estimate (non-epics with story points)
    c. Link it to its epic
    d. Download attachments from JIRA and upload them through the browser session
    e. Copy the comments

The epic mapping is the only state shared between workers. It is written
only in Phase 1 and read only in Phase 2, and the phases never overlap.

Error Handling
--------------
A failure while finding, creating or updating an issue marks that issue as
failed; the rest of the run carries on. Failures after that point (board,
linking, attachments, comments) are logged and leave the issue successful
with lower counts.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from .exceptions import MigrationError, UpstreamError
from .models import MigrationReport, MigrationResult
from .utils import process_in_batches

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import MigrationConfig
    from .github_client import GitHubTarget
    from .models import SourceIssue, TargetIssue
    from .protocols import AuthSession, SourceTracker

logger: logging.Logger = logging.getLogger(__name__)


def _now() -> str:
    return dt.datetime.now(dt.UTC).isoformat(timespec="seconds")


def save_report(report: MigrationReport, path: Path) -> None:
    """Write the report as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info(f"Migration report written to {path}")


class Migrator:
    """Orchestrates migration from JIRA to a GitHub repository.

    Usage:
        source = JiraClient(settings)
        target = GitHubTarget(GhCliTransport(owner, repo), config)
        migrator = Migrator(source, target, config, session=BrowserSession())
        report = migrator.run()
    """

    _source: SourceTracker
    _target: GitHubTarget
    _config: MigrationConfig
    _session: AuthSession | None
    epic_mapping: dict[str, int]

    def __init__(
        self,
        source: SourceTracker,
        target: GitHubTarget,
        config: MigrationConfig,
        session: AuthSession | None = None,
    ) -> None:
        self._source = source
        self._target = target
        self._config = config
        self._session = session
        self.epic_mapping = {}

    def run(self) -> MigrationReport:
        """Fetch the issues and migrate them.

        Returns:
            The report; it is also written to disk unless this is a dry run

        Raises:
            UpstreamError: If the issues cannot be fetched from JIRA
        """
        report = MigrationReport(
            started_at=_now(),
            target_repo=self._config.repo_path,
            jql=self._config.jql,
            dry_run=self._config.dry_run,
        )

        print(f"Fetching issues from JIRA: {self._config.jql}")
        issues = self._source.fetch_all(self._config.jql)
        if self._config.limit is not None:
            issues = issues[: self._config.limit]
        report.total_issues = len(issues)

        epics = [issue for issue in issues if issue.is_epic]
        children = [issue for issue in issues if not issue.is_epic]
        print(f"Found {len(issues)} issues: {len(epics)} epics, {len(children)} other issues")

        print(f"\n=== Phase 1: Migrating {len(epics)} epics ===")
        for result in self._migrate_all(epics):
            report.record(result)

        print(f"\n=== Phase 2: Migrating {len(children)} issues ===")
        for result in self._migrate_all(children):
            report.record(result)

        report.completed_at = _now()
        if not self._config.dry_run:
            save_report(report, self._config.report_path)
        return report

    def _migrate_all(self, issues: Sequence[SourceIssue]) -> list[MigrationResult]:
        return process_in_batches(issues, self._config.batch_size, self._migrate_and_print)

    def _migrate_and_print(self, issue: SourceIssue) -> MigrationResult:
        result = self.migrate_issue(issue)
        if result.success and result.github_issue is not None:
            action = "updated" if result.updated else "created"
            print(f"  [OK] {issue.key} -> #{result.github_issue.number} ({action})")
        else:
            print(f"  [FAILED] {issue.key}: {result.error}")
        return result

    def migrate_issue(self, issue: SourceIssue) -> MigrationResult:
        """Migrate one issue. Never raises; failures end up in the result."""
        result = MigrationResult(
            jira_key=issue.key,
            jira_url=issue.browse_url(self._config.jira_base_url),
            is_epic=issue.is_epic,
        )

        try:
            existing = self._target.find_existing(issue.key)
            if existing is not None:
                github_issue = self._target.update_issue(existing.number, issue)
                result.updated = True
            else:
                github_issue = self._target.create_issue(issue)
            result.github_issue = github_issue
            result.success = True

            if issue.is_epic:
                self.epic_mapping[issue.key] = github_issue.number

            self._place_on_board(issue, github_issue, result)
            self._link_to_epic(issue, github_issue, result)
            result.attachments_uploaded = self._migrate_attachments(issue, github_issue)
            if not self._config.skip_comments:
                comments = self._source.get_comments(issue.key)
                result.comments_added = self._target.migrate_comments(github_issue.number, comments)
        except (MigrationError, OSError) as e:
            logger.error(f"[{issue.key}] Migration failed: {e}")
            result.error = str(e)
        except Exception as e:  # noqa: BLE001
            logger.exception(f"[{issue.key}] Unexpected error")
            result.error = f"{type(e).__name__}: {e}"

        return result

    def _place_on_board(self, issue: SourceIssue, github_issue: TargetIssue, result: MigrationResult) -> None:
        if not self._target.board.ready:
            return
        item_id = self._target.add_to_board(github_issue.url, issue.status or "new")
        if item_id and not issue.is_epic and issue.story_points is not None:
            result.estimate_set = self._target.set_estimate(item_id, issue.story_points)

    def _link_to_epic(self, issue: SourceIssue, github_issue: TargetIssue, result: MigrationResult) -> None:
        if issue.is_epic or not issue.epic_key:
            return
        parent_number = self.epic_mapping.get(issue.epic_key)
        if parent_number is None:
            logger.warning(f"[{issue.key}] Epic {issue.epic_key} is not part of this migration; left unlinked")
            return
        if self._target.link_sub_issue(parent_number, github_issue.number):
            result.linked_to_epic = issue.epic_key

    def _migrate_attachments(self, issue: SourceIssue, github_issue: TargetIssue) -> int:
        if self._config.skip_attachments or not issue.attachments:
            return 0
        if self._config.dry_run:
            logger.info(f"[dry-run] Would upload {len(issue.attachments)} attachment(s) for {issue.key}")
            return 0
        if self._session is None:
            logger.warning(f"[{issue.key}] No browser session; {len(issue.attachments)} attachment(s) skipped")
            return 0

        # Attachment failures never fail the issue; comments still follow
        try:
            with tempfile.TemporaryDirectory(prefix=f"jira-{issue.key}-") as tmp:
                paths = self._source.download_all_attachments(issue, Path(tmp))
                if not paths:
                    return 0
                return self._session.upload_attachments(github_issue.url, paths)
        except (UpstreamError, OSError) as e:
            logger.warning(f"[{issue.key}] Attachment upload failed: {e}")
        except Exception:  # noqa: BLE001
            logger.exception(f"[{issue.key}] Unexpected error uploading attachments")
        return 0
