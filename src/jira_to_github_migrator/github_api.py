"""Transport using the GitHub API through PyGithub.

Issues, labels and comments go through PyGithub's REST objects. Projects (v2)
and sub-issue mutations are GraphQL-only and are sent through PyGithub's
requester, which keeps authentication and retry handling in one place.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Final

from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException

from . import graphql_queries as gq
from .exceptions import ConfigError, NotFoundError, RateLimitError, UpstreamError
from .gh_cli import is_rate_limit_message
from .models import TargetIssue
from .protocols import ProjectFields, StatusOption

if TYPE_CHECKING:
    from collections.abc import Sequence

    from github.Repository import Repository

logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105


def get_token() -> str:
    """Get the GitHub token from the environment."""
    token = os.environ.get(_TOKEN_ENV_VAR)
    if not token:
        msg = f"{_TOKEN_ENV_VAR} must be set to use the API transport"
        raise ConfigError(msg)
    return token


def get_client(token: str) -> Github:
    """Get a GitHub client using the token."""
    return Github(auth=Auth.Token(token))


def _translate(e: GithubException, action: str) -> UpstreamError:
    """Map a PyGithub error onto the migration error taxonomy."""
    msg = f"Failed to {action}: {e.status} {e.data}"
    if isinstance(e, RateLimitExceededException) or is_rate_limit_message(str(e.data)):
        return RateLimitError(msg, status=e.status)
    if isinstance(e, UnknownObjectException):
        return NotFoundError(msg, status=e.status)
    return UpstreamError(msg, status=e.status)


def _is_already_exists_error(e: GithubException) -> bool:
    """Check if a GithubException is a 422 'already_exists' validation error."""
    if e.status != 422 or not isinstance(e.data, dict):
        return False
    errors = e.data.get("errors")
    if not isinstance(errors, list):
        return False
    return any(isinstance(err, dict) and err.get("code") == "already_exists" for err in errors)


class GitHubApiTransport:
    """TargetTransport implementation on top of PyGithub."""

    owner: str
    repo: str
    _client: Github
    _repository: Repository | None

    def __init__(self, owner: str, repo: str, client: Github) -> None:
        self.owner = owner
        self.repo = repo
        self._client = client
        self._repository = None

    @property
    def repository(self) -> Repository:
        if self._repository is None:
            try:
                self._repository = self._client.get_repo(f"{self.owner}/{self.repo}")
            except GithubException as e:
                raise _translate(e, f"load repository {self.owner}/{self.repo}") from e
        return self._repository

    def _graphql(self, query: str, **variables: Any) -> dict[str, Any]:  # noqa: ANN401
        try:
            _, data = self._client.requester.requestJsonAndCheck(
                "POST", "/graphql", input={"query": query, "variables": variables}
            )
        except GithubException as e:
            raise _translate(e, "run GraphQL query") from e

        if data.get("errors"):
            msg = f"GraphQL errors: {data['errors']}"
            raise UpstreamError(msg)
        return data.get("data") or {}

    def check_auth(self) -> bool:
        try:
            _ = self._client.get_user().login
        except GithubException:
            logger.exception("GitHub API access failed")
            return False
        return True

    def find_issues_by_label(self, label: str, limit: int = 1) -> list[TargetIssue]:
        try:
            issues = self.repository.get_issues(state="all", labels=[label])
            return [TargetIssue(number=i.number, url=i.html_url) for i in issues[:limit]]
        except GithubException as e:
            raise _translate(e, f"search issues labelled {label}") from e

    def label_exists(self, name: str) -> bool:
        try:
            _ = self.repository.get_label(name)
        except UnknownObjectException:
            return False
        except GithubException as e:
            raise _translate(e, f"look up label {name}") from e
        return True

    def create_label(self, name: str, color: str) -> None:
        try:
            _ = self.repository.create_label(name=name, color=color)
        except GithubException as e:
            if not _is_already_exists_error(e):
                raise _translate(e, f"create label {name}") from e
            # Behave like `gh label create --force`
            try:
                self.repository.get_label(name).edit(name=name, color=color)
            except GithubException as edit_error:
                raise _translate(edit_error, f"update label {name}") from edit_error

    def create_issue(self, title: str, body: str, labels: Sequence[str]) -> TargetIssue:
        try:
            issue = self.repository.create_issue(title=title, body=body, labels=list(labels))
        except GithubException as e:
            raise _translate(e, f"create issue '{title}'") from e
        return TargetIssue(number=issue.number, url=issue.html_url)

    def edit_issue(self, number: int, *, title: str, body: str) -> None:
        try:
            self.repository.get_issue(number).edit(title=title, body=body)
        except GithubException as e:
            raise _translate(e, f"edit issue #{number}") from e

    def get_issue_labels(self, number: int) -> list[str]:
        try:
            return [label.name for label in self.repository.get_issue(number).labels]
        except GithubException as e:
            raise _translate(e, f"read labels of issue #{number}") from e

    def edit_issue_labels(self, number: int, *, add: Sequence[str] = (), remove: Sequence[str] = ()) -> None:
        if not add and not remove:
            return
        try:
            issue = self.repository.get_issue(number)
            for label in remove:
                issue.remove_from_labels(label)
            if add:
                issue.add_to_labels(*add)
        except GithubException as e:
            raise _translate(e, f"edit labels of issue #{number}") from e

    def add_comment(self, number: int, body: str) -> None:
        try:
            _ = self.repository.get_issue(number).create_comment(body)
        except GithubException as e:
            raise _translate(e, f"comment on issue #{number}") from e

    def get_issue_node_id(self, number: int) -> str | None:
        try:
            return self.repository.get_issue(number).node_id or None
        except GithubException as e:
            raise _translate(e, f"load issue #{number}") from e

    def get_sub_issue_numbers(self, parent_number: int) -> list[int]:
        try:
            return [sub.number for sub in self.repository.get_issue(parent_number).get_sub_issues()]
        except GithubException as e:
            raise _translate(e, f"list sub-issues of #{parent_number}") from e

    def add_sub_issue(self, parent_node_id: str, child_node_id: str) -> None:
        _ = self._graphql(gq.ADD_SUB_ISSUE, parent=parent_node_id, child=child_node_id)

    def get_project_fields(self, project_number: int) -> ProjectFields:
        data = self._graphql(gq.PROJECT_FIELDS, owner=self.owner, number=project_number)
        project = gq.project_of(data) or {}
        by_name = {node.get("name"): node.get("id") for node in gq.field_nodes(data)}
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
        project_id = self.get_project_fields(project_number).project_id
        if not project_id:
            msg = f"Project {project_number} not found for {self.owner}"
            raise NotFoundError(msg)

        content_id = self.get_issue_node_id(int(issue_url.rstrip("/").rsplit("/", 1)[-1]))
        data = self._graphql(gq.ADD_PROJECT_ITEM, project=project_id, content=content_id)
        return gq.dig(data, "addProjectV2ItemById", "item", "id")

    def find_project_item(self, project_number: int, issue_url: str, issue_number: int) -> str | None:
        data = self._graphql(gq.ISSUE_PROJECT_ITEMS, owner=self.owner, repo=self.repo, number=issue_number)
        for node in gq.dig(data, "repository", "issue", "projectItems", "nodes") or []:
            if gq.dig(node, "project", "number") == project_number:
                return node.get("id")
        logger.debug(f"No item for {issue_url} on project {project_number}")
        return None

    def set_item_option(self, project_id: str, item_id: str, field_id: str, option_id: str) -> None:
        _ = self._graphql(
            gq.SET_ITEM_FIELD, project=project_id, item=item_id, field=field_id,
            value={"singleSelectOptionId": option_id},
        )

    def set_item_number(self, project_id: str, item_id: str, field_id: str, value: float) -> None:
        _ = self._graphql(
            gq.SET_ITEM_FIELD, project=project_id, item=item_id, field=field_id, value={"number": value}
        )
