"""
Command-line interface for the JIRA to GitHub migration tool.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from . import github_api
from .attachments import BrowserSession
from .config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ENV_FILE,
    DEFAULT_REPORT_PATH,
    MigrationConfig,
    build_jql,
    load_env_file,
    load_jira_settings,
    split_repo_path,
)
from .exceptions import ConfigError, MigrationError
from .gh_cli import GhCliTransport
from .github_client import GitHubTarget
from .jira_client import JiraClient
from .orchestrator import Migrator
from .utils import setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import MigrationReport
    from .protocols import TargetTransport

logger: logging.Logger = logging.getLogger(__name__)

EPILOG = """\
Examples:
  jira-to-github-migrator --repo hmcts/cath-service --dry-run
  jira-to-github-migrator --repo hmcts/cath-service --limit 5
  jira-to-github-migrator --repo hmcts/cath-service --project 42
  jira-to-github-migrator --repo hmcts/cath-service --skip-attachments --skip-comments
"""


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        msg = f"must be a positive integer, got {value}"
        raise argparse.ArgumentTypeError(msg)
    return number


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = _ArgumentParser(
        prog="jira-to-github-migrator",
        description="Migrate JIRA issues to GitHub issues, sub-issues and a project board",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    _ = parser.add_argument("--repo", required=True, help="Target GitHub repository (owner/repo)")
    _ = parser.add_argument("--dry-run", action="store_true", help="Show what would happen without writing to GitHub")
    _ = parser.add_argument("--skip-attachments", action="store_true", help="Do not migrate attachments")
    _ = parser.add_argument("--skip-comments", action="store_true", help="Do not migrate comments")
    _ = parser.add_argument("--limit", type=_positive_int, help="Migrate at most this many issues")
    _ = parser.add_argument("--project", type=_positive_int, help="GitHub project (v2) number to add issues to")

    _ = parser.add_argument(
        "--transport",
        choices=("cli", "api"),
        default="cli",
        help="How to reach GitHub: the authenticated gh CLI (default) or the API with GITHUB_TOKEN",
    )
    _ = parser.add_argument("--jql", help="JQL selecting the issues (overrides --jira-project/--jira-label)")
    _ = parser.add_argument("--jira-project", help="JIRA project key (default: JIRA_PROJECT)")
    _ = parser.add_argument("--jira-label", help="Only migrate issues with this JIRA label (default: JIRA_LABEL)")
    _ = parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Issues migrated in parallel (default: {DEFAULT_BATCH_SIZE})",
    )
    _ = parser.add_argument(
        "--report", type=Path, default=Path(DEFAULT_REPORT_PATH), help=f"Report path (default: {DEFAULT_REPORT_PATH})"
    )
    _ = parser.add_argument(
        "--env-file", default=DEFAULT_ENV_FILE, help=f"File with JIRA credentials (default: {DEFAULT_ENV_FILE})"
    )
    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console logging (-v INFO, -vv DEBUG)"
    )

    return parser.parse_args(argv)


def _build_transport(kind: str, owner: str, repo: str) -> TargetTransport:
    if kind == "api":
        return github_api.GitHubApiTransport(owner, repo, github_api.get_client(github_api.get_token()))
    return GhCliTransport(owner, repo)


def _build_config(args: argparse.Namespace, jira_base_url: str) -> MigrationConfig:
    owner, repo = split_repo_path(args.repo)
    jql = args.jql or build_jql(
        args.jira_project or os.environ.get("JIRA_PROJECT"),
        args.jira_label or os.environ.get("JIRA_LABEL"),
    )
    return MigrationConfig(
        owner=owner,
        repo=repo,
        jql=jql,
        jira_base_url=jira_base_url,
        project_number=args.project,
        dry_run=args.dry_run,
        skip_attachments=args.skip_attachments,
        skip_comments=args.skip_comments,
        limit=args.limit,
        batch_size=args.batch_size,
        report_path=args.report,
    )


def _print_summary(report: MigrationReport) -> None:
    rows = [
        ("Total issues", report.total_issues),
        ("Successful", report.successful_migrations),
        ("Failed", report.failed_migrations),
        ("Created", report.created_count),
        ("Updated", report.updated_count),
        ("Epics", report.epics_created),
        ("Children linked to epics", report.children_linked),
        ("Issues without epic", report.orphans_created),
        ("Comments added", report.total_comments_added),
        ("Attachments uploaded", report.total_attachments_uploaded),
    ]
    print("\n=== Migration summary ===")
    for name, value in rows:
        print(f"  {name:<26} {value}")

    failed = [r for r in report.results if not r.success]
    if failed:
        print("\nFailed issues:")
        for result in failed:
            print(f"  {result.jira_key}: {result.error}")
    if report.dry_run:
        print("\nDry run: nothing was written to GitHub and no report was saved.")


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    load_env_file(args.env_file)
    try:
        settings = load_jira_settings()
        config = _build_config(args, settings.base_url)
        transport = _build_transport(args.transport, config.owner, config.repo)
    except ConfigError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    target = GitHubTarget(transport, config)

    if config.dry_run:
        print("DRY RUN: no changes will be made to GitHub")
    elif not target.check_auth():
        print("Error: GitHub authentication failed. Run 'gh auth login' or set GITHUB_TOKEN.", file=sys.stderr)
        sys.exit(1)

    if config.project_number is not None and not target.setup_board(config.project_number):
        if not config.dry_run:
            print(f"Error: could not set up project board #{config.project_number}", file=sys.stderr)
            sys.exit(1)
        logger.warning("Project board unavailable; continuing the dry run without board placement")

    session: BrowserSession | None = None
    try:
        if not config.skip_attachments and not config.dry_run:
            session = BrowserSession()
            session.wait_for_interactive_login()

        migrator = Migrator(JiraClient(settings), target, config, session=session)
        report = migrator.run()
    except MigrationError as e:
        logger.error(f"Migration aborted: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if session is not None:
            session.close()

    _print_summary(report)
    sys.exit(1 if report.has_failures else 0)
