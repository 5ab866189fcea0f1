"""
Custom exception classes for the JIRA to GitHub migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigError(MigrationError):
    """Raised when credentials or required options are missing."""


class UpstreamError(MigrationError):
    """Raised when JIRA or GitHub answers with a non-2xx response."""

    status: int | None

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitError(UpstreamError):
    """Raised when GitHub rejects a write because it came in too quickly."""


class NotFoundError(UpstreamError):
    """Raised when a lookup by key or number finds nothing."""
