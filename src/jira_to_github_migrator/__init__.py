"""
JIRA to GitHub Migration Tool

Migrates JIRA issues to GitHub issues with epics as parent issues, comments,
attachments and placement on a GitHub project board. Re-running the
migration updates the issues it created before instead of duplicating them.
"""

from __future__ import annotations

from .cli import main
from .exceptions import ConfigError, MigrationError, NotFoundError, RateLimitError, UpstreamError
from .markdown import convert_jira_to_markdown
from .orchestrator import Migrator
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "MigrationError",
    "Migrator",
    "NotFoundError",
    "RateLimitError",
    "UpstreamError",
    "convert_jira_to_markdown",
    "main",
    "setup_logging",
]
