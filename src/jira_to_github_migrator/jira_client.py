"""Read access to the JIRA REST API (v2)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, NamedTuple

import requests

from .exceptions import NotFoundError, UpstreamError
from .models import JiraFieldIds, SourceComment, SourceIssue

if TYPE_CHECKING:
    from .config import JiraSettings

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE: Final[int] = 100
_REQUEST_TIMEOUT: Final[int] = 60
_CHUNK_SIZE: Final[int] = 64 * 1024

BASE_FIELDS: Final[tuple[str, ...]] = (
    "summary",
    "status",
    "description",
    "assignee",
    "created",
    "updated",
    "labels",
    "issuetype",
    "priority",
    "attachment",
)


class SearchPage(NamedTuple):
    """One page of search results."""

    issues: list[SourceIssue]
    total: int


class JiraClient:
    """Fetches issues, comments and attachments from JIRA.

    Errors are never retried here; callers decide what a failure means.
    """

    base_url: str
    field_ids: JiraFieldIds
    _session: requests.Session

    def __init__(self, settings: JiraSettings, session: requests.Session | None = None) -> None:
        self.base_url = settings.base_url.rstrip("/")
        self.field_ids = settings.field_ids
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {settings.token}", "Accept": "application/json"})

    @property
    def default_fields(self) -> list[str]:
        return [*BASE_FIELDS, self.field_ids.story_points, self.field_ids.epic_link]

    def _get_json(self, path: str, params: dict[str, Any] | None = None, what: str = "request") -> Any:  # noqa: ANN401
        url = f"{self.base_url}/rest/api/2/{path}"
        try:
            response = self._session.get(url, params=params, timeout=_REQUEST_TIMEOUT)
        except requests.RequestException as e:
            msg = f"Failed to {what}: {e}"
            raise UpstreamError(msg) from e

        if response.status_code == 404:
            msg = f"Failed to {what}: {response.status_code} {response.reason}"
            raise NotFoundError(msg, status=response.status_code)
        if not response.ok:
            msg = f"Failed to {what}: {response.status_code} {response.reason}"
            raise UpstreamError(msg, status=response.status_code)
        return response.json()

    def search(
        self,
        jql: str,
        fields: list[str] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        start_at: int = 0,
    ) -> SearchPage:
        """Run one page of a JQL search."""
        params = {
            "jql": jql,
            "fields": ",".join(fields or self.default_fields),
            "maxResults": page_size,
            "startAt": start_at,
        }
        data = self._get_json("search", params=params, what="search JIRA issues")
        issues = [SourceIssue.from_api(raw, self.field_ids) for raw in data.get("issues") or []]
        return SearchPage(issues=issues, total=int(data.get("total") or 0))

    def fetch_all(self, jql: str, page_size: int = DEFAULT_PAGE_SIZE) -> list[SourceIssue]:
        """Fetch every issue matching the query, following pagination."""
        all_issues: list[SourceIssue] = []
        start_at = 0

        while True:
            page = self.search(jql, page_size=page_size, start_at=start_at)
            all_issues.extend(page.issues)
            logger.info(f"Fetched {len(all_issues)} of {page.total} issues from JIRA")

            if len(all_issues) >= page.total or not page.issues:
                break
            start_at += page_size

        return all_issues

    def get_issue(self, key: str) -> SourceIssue:
        """Fetch a single issue by key."""
        params = {"fields": ",".join(self.default_fields)}
        data = self._get_json(f"issue/{key}", params=params, what=f"fetch JIRA issue {key}")
        return SourceIssue.from_api(data, self.field_ids)

    def get_comments(self, key: str, page_size: int = DEFAULT_PAGE_SIZE) -> list[SourceComment]:
        """Fetch all comments of an issue, oldest first."""
        comments: list[SourceComment] = []
        start_at = 0

        while True:
            data = self._get_json(
                f"issue/{key}/comment",
                params={"startAt": start_at, "maxResults": page_size, "orderBy": "created"},
                what=f"fetch comments for {key}",
            )
            page = [SourceComment.from_api(raw) for raw in data.get("comments") or []]
            comments.extend(page)
            if len(comments) >= int(data.get("total") or 0) or not page:
                break
            start_at += page_size

        return comments

    def download_attachment(self, content_url: str, dest_path: Path) -> None:
        """Stream an attachment to disk.

        Raises:
            UpstreamError: If JIRA does not serve the file
            OSError: If the file cannot be written
        """
        try:
            response = self._session.get(content_url, stream=True, timeout=_REQUEST_TIMEOUT)
        except requests.RequestException as e:
            msg = f"Failed to download attachment: {e}"
            raise UpstreamError(msg) from e

        with response:
            if not response.ok:
                msg = f"Failed to download attachment: {response.status_code} {response.reason}"
                raise UpstreamError(msg, status=response.status_code)

            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with dest_path.open("wb") as f:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    _ = f.write(chunk)

    def download_all_attachments(self, issue: SourceIssue, dest_dir: Path) -> list[Path]:
        """Download every attachment of an issue, skipping the ones that fail.

        Each file lands in a directory named after its attachment id, so pasted
        screenshots sharing a name like "image.png" do not overwrite each other
        and keep their original name on upload.
        """
        downloaded: list[Path] = []

        for index, attachment in enumerate(issue.attachments):
            dest_path = dest_dir / (attachment.id or f"attachment-{index}") / Path(attachment.filename).name
            logger.info(f"[{issue.key}] Downloading attachment: {attachment.filename}")
            try:
                self.download_attachment(attachment.content_url, dest_path)
            except (UpstreamError, OSError) as e:
                logger.warning(f"[{issue.key}] Failed to download {attachment.filename}: {e}")
                continue
            downloaded.append(dest_path)

        return downloaded
