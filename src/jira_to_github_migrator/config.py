"""
Run configuration for the JIRA to GitHub migration tool.

Everything that used to be module-level state (target repository, board ids,
JIRA credentials) is resolved once at startup into immutable objects that are
handed to the clients.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

from .exceptions import ConfigError
from .models import JiraFieldIds

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE: Final[str] = ".claude/.mcp.env"
DEFAULT_JIRA_URL: Final[str] = "https://tools.hmcts.net/jira"
DEFAULT_BATCH_SIZE: Final[int] = 10
DEFAULT_REPORT_PATH: Final[str] = "migration-report.json"

_TOKEN_ENV_VAR: Final[str] = "JIRA_PERSONAL_TOKEN"  # noqa: S105
_URL_ENV_VAR: Final[str] = "JIRA_URL"


@dataclass(frozen=True)
class JiraSettings:
    """Connection settings for the source tracker."""

    base_url: str
    token: str
    field_ids: JiraFieldIds


@dataclass(frozen=True)
class MigrationConfig:
    """Options of a single migration run."""

    owner: str
    repo: str
    jql: str
    jira_base_url: str = DEFAULT_JIRA_URL
    project_number: int | None = None
    dry_run: bool = False
    skip_attachments: bool = False
    skip_comments: bool = False
    limit: int | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    comment_delay: float = 1.5
    retry_base_delay: float = 2.0
    max_comment_attempts: int = 3
    report_path: Path = Path(DEFAULT_REPORT_PATH)

    @property
    def repo_path(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def repo_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"


def split_repo_path(repo_path: str) -> tuple[str, str]:
    """Split "owner/repo" into its parts."""
    if not re.fullmatch(r"[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+", repo_path or ""):
        msg = f"Invalid repository format: '{repo_path}'. Expected format: 'owner/repo'"
        raise ConfigError(msg)
    owner, repo = repo_path.split("/")
    return owner, repo


def build_jql(project: str | None, label: str | None) -> str:
    """Build the default query; epics sort first so they are mapped before their children."""
    if not project:
        msg = "A JIRA project is required. Pass --jql or --jira-project, or set JIRA_PROJECT."
        raise ConfigError(msg)
    clauses = [f'project = "{project}"']
    if label:
        clauses.append(f'labels = "{label}"')
    return " AND ".join(clauses) + " ORDER BY issuetype ASC, key ASC"


def load_env_file(env_file: str | Path = DEFAULT_ENV_FILE) -> None:
    """Load variables from the env file without overriding the real environment."""
    path = Path(env_file)
    if not path.exists():
        logger.warning(f"Environment file {path} not found")
        return
    _ = load_dotenv(path, override=False)
    logger.debug(f"Loaded environment from {path}")


def load_jira_settings() -> JiraSettings:
    """Read JIRA credentials from the environment.

    Raises:
        ConfigError: If JIRA_PERSONAL_TOKEN is not set
    """
    token = os.environ.get(_TOKEN_ENV_VAR)
    if not token:
        msg = f"JIRA authentication not configured. Ensure {_TOKEN_ENV_VAR} is set in {DEFAULT_ENV_FILE}"
        raise ConfigError(msg)

    defaults = JiraFieldIds()
    return JiraSettings(
        base_url=os.environ.get(_URL_ENV_VAR) or DEFAULT_JIRA_URL,
        token=token,
        field_ids=JiraFieldIds(
            story_points=os.environ.get("JIRA_STORY_POINTS_FIELD") or defaults.story_points,
            epic_link=os.environ.get("JIRA_EPIC_LINK_FIELD") or defaults.epic_link,
        ),
    )
