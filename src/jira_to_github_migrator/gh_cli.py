"""Transport driving the GitHub CLI (``gh``) in subprocesses.

Relies on an existing ``gh auth login`` session. Arguments are passed as
argv lists and bodies through stdin, so nothing is ever interpreted by a
shell.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import TYPE_CHECKING, Any, Final

from . import graphql_queries as gq
from .exceptions import RateLimitError, UpstreamError
from .models import TargetIssue
from .protocols import ProjectFields, StatusOption

if TYPE_CHECKING:
    from collections.abc import Sequence
    from subprocess import CompletedProcess

logger: logging.Logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS: Final[tuple[str, ...]] = ("submitted too quickly", "rate limit", "secondary rate")
_GH: Final[str] = "gh"


def is_rate_limit_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def issue_number_from_url(url: str) -> int:
    """Extract 123 from https://github.com/owner/repo/issues/123."""
    tail = url.strip().rstrip("/").rsplit("/", 1)[-1]
    try:
        return int(tail)
    except ValueError as e:
        msg = f"Could not parse issue number from '{url}'"
        raise UpstreamError(msg) from e


class GhCliTransport:
    """TargetTransport implementation on top of the ``gh`` CLI."""

    owner: str
    repo: str

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo

    @property
    def _repo_args(self) -> list[str]:
        return ["-R", f"{self.owner}/{self.repo}"]

    def _run(self, args: list[str], stdin: str | None = None) -> str:
        """Run gh and return stdout, mapping failures to UpstreamError/RateLimitError."""
        try:
            result: CompletedProcess[str] = subprocess.run(  # noqa: S603
                [_GH, *args], input=stdin, capture_output=True, text=True, check=False
            )
        except OSError as e:
            msg = f"Could not run gh: {e}"
            raise UpstreamError(msg) from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            msg = f"gh {' '.join(args[:2])} failed: {detail}"
            if is_rate_limit_message(detail):
                raise RateLimitError(msg)
            raise UpstreamError(msg)
        return result.stdout

    def _run_json(self, args: list[str]) -> Any:  # noqa: ANN401
        stdout = self._run(args)
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            msg = f"Unexpected output from gh {' '.join(args[:2])}: {stdout[:200]}"
            raise UpstreamError(msg) from e

    def _graphql(self, query: str, **variables: str | int) -> dict[str, Any]:
        args = ["api", "graphql", "-f", f"query={query}"]
        for name, value in variables.items():
            # -F converts numbers, -f keeps strings as strings
            flag = "-F" if isinstance(value, int) else "-f"
            args.extend([flag, f"{name}={value}"])

        result = self._run_json(args)
        if result.get("errors"):
            msg = f"GraphQL errors: {result['errors']}"
            raise UpstreamError(msg)
        return result.get("data") or {}

    def check_auth(self) -> bool:
        try:
            result = subprocess.run(  # noqa: S603
                [_GH, "auth", "status"], capture_output=True, text=True, check=False
            )
        except OSError:
            logger.exception("gh CLI is not installed")
            return False
        return result.returncode == 0 and "Logged in" in (result.stdout + result.stderr)

    def find_issues_by_label(self, label: str, limit: int = 1) -> list[TargetIssue]:
        issues = self._run_json(
            ["issue", "list", *self._repo_args, "--label", label, "--state", "all", "--json", "number,url",
             "--limit", str(limit)]
        )
        return [TargetIssue(number=i["number"], url=i["url"]) for i in issues]

    def label_exists(self, name: str) -> bool:
        labels = self._run_json(["label", "list", *self._repo_args, "--search", name, "--limit", "100", "--json", "name"])
        return any(label["name"] == name for label in labels)

    def create_label(self, name: str, color: str) -> None:
        _ = self._run(["label", "create", *self._repo_args, name, "--color", color, "--force"])

    def create_issue(self, title: str, body: str, labels: Sequence[str]) -> TargetIssue:
        args = ["issue", "create", *self._repo_args, "--title", title, "--body-file", "-"]
        for label in labels:
            args.extend(["--label", label])
        # gh prints the new issue URL as the last line
        url = self._run(args, stdin=body).strip().splitlines()[-1]
        return TargetIssue(number=issue_number_from_url(url), url=url)

    def edit_issue(self, number: int, *, title: str, body: str) -> None:
        _ = self._run(["issue", "edit", *self._repo_args, str(number), "--title", title, "--body-file", "-"], stdin=body)

    def get_issue_labels(self, number: int) -> list[str]:
        data = self._run_json(["issue", "view", *self._repo_args, str(number), "--json", "labels"])
        return [label["name"] for label in data.get("labels") or []]

    def edit_issue_labels(self, number: int, *, add: Sequence[str] = (), remove: Sequence[str] = ()) -> None:
        if not add and not remove:
            return
        args = ["issue", "edit", *self._repo_args, str(number)]
        for label in remove:
            args.extend(["--remove-label", label])
        for label in add:
            args.extend(["--add-label", label])
        _ = self._run(args)

    def add_comment(self, number: int, body: str) -> None:
        _ = self._run(["issue", "comment", *self._repo_args, str(number), "--body-file", "-"], stdin=body)

    def get_issue_node_id(self, number: int) -> str | None:
        data = self._run_json(["issue", "view", *self._repo_args, str(number), "--json", "id"])
        return data.get("id") or None

    def get_sub_issue_numbers(self, parent_number: int) -> list[int]:
        data = self._graphql(gq.SUB_ISSUES, owner=self.owner, repo=self.repo, number=parent_number)
        nodes = gq.dig(data, "repository", "issue", "subIssues", "nodes") or []
        return [node["number"] for node in nodes]

    def add_sub_issue(self, parent_node_id: str, child_node_id: str) -> None:
        _ = self._graphql(gq.ADD_SUB_ISSUE, parent=parent_node_id, child=child_node_id)

    def get_project_fields(self, project_number: int) -> ProjectFields:
        fields = self._run_json(
            ["project", "field-list", str(project_number), "--owner", self.owner, "--format", "json"]
        ).get("fields") or []
        project = self._run_json(["project", "view", str(project_number), "--owner", self.owner, "--format", "json"])

        by_name = {field.get("name"): field.get("id") for field in fields}
        return ProjectFields(
            project_id=project.get("id") or None,
            status_field_id=by_name.get("Status"),
            estimate_field_id=by_name.get("Estimate"),
        )

    def get_status_options(self, project_number: int) -> list[StatusOption]:
        data = self._graphql(gq.PROJECT_FIELDS, owner=self.owner, number=project_number)
        for node in gq.field_nodes(data):
            if node.get("name") == "Status":
                return [StatusOption(id=o["id"], name=o["name"]) for o in node.get("options") or []]
        return []

    def add_project_item(self, project_number: int, issue_url: str) -> str | None:
        result = self._run_json(
            ["project", "item-add", str(project_number), "--owner", self.owner, "--url", issue_url, "--format", "json"]
        )
        return result.get("id") or None

    def find_project_item(self, project_number: int, issue_url: str, issue_number: int) -> str | None:
        listing = self._run_json(
            ["project", "item-list", str(project_number), "--owner", self.owner, "--format", "json", "--limit", "1000"]
        )
        for item in listing.get("items") or []:
            content = item.get("content") or {}
            url = content.get("url") or ""
            if url == issue_url or url.endswith(f"/issues/{issue_number}") or content.get("number") == issue_number:
                return item.get("id")

        data = self._graphql(gq.ISSUE_PROJECT_ITEMS, owner=self.owner, repo=self.repo, number=issue_number)
        for node in gq.dig(data, "repository", "issue", "projectItems", "nodes") or []:
            if gq.dig(node, "project", "number") == project_number:
                return node.get("id")
        return None

    def set_item_option(self, project_id: str, item_id: str, field_id: str, option_id: str) -> None:
        _ = self._run(
            ["project", "item-edit", "--id", item_id, "--project-id", project_id, "--field-id", field_id,
             "--single-select-option-id", option_id]
        )

    def set_item_number(self, project_id: str, item_id: str, field_id: str, value: float) -> None:
        _ = self._run(
            ["project", "item-edit", "--id", item_id, "--project-id", project_id, "--field-id", field_id,
             "--number", f"{value:g}"]
        )
