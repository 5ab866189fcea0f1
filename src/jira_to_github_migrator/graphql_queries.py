"""GraphQL documents shared by both GitHub transports.

Projects (v2) and sub-issue mutations are only exposed through GraphQL.
Owners are resolved through ``repositoryOwner`` so boards owned by users and
by organizations both work.
"""

from __future__ import annotations

from typing import Any, Final

PROJECT_FIELDS: Final[str] = """
query ProjectFields($owner: String!, $number: Int!) {
  repositoryOwner(login: $owner) {
    ... on ProjectV2Owner {
      projectV2(number: $number) {
        id
        fields(first: 50) {
          nodes {
            ... on ProjectV2FieldCommon { id name }
            ... on ProjectV2SingleSelectField { options { id name } }
          }
        }
      }
    }
  }
}
"""

ISSUE_PROJECT_ITEMS: Final[str] = """
query IssueProjectItems($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      projectItems(first: 20) {
        nodes { id project { number } }
      }
    }
  }
}
"""

SUB_ISSUES: Final[str] = """
query SubIssues($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      subIssues(first: 100) { nodes { number } }
    }
  }
}
"""

ADD_SUB_ISSUE: Final[str] = """
mutation AddSubIssue($parent: ID!, $child: ID!) {
  addSubIssue(input: { issueId: $parent, subIssueId: $child }) {
    issue { number }
    subIssue { number }
  }
}
"""

ADD_PROJECT_ITEM: Final[str] = """
mutation AddProjectItem($project: ID!, $content: ID!) {
  addProjectV2ItemById(input: { projectId: $project, contentId: $content }) {
    item { id }
  }
}
"""

SET_ITEM_FIELD: Final[str] = """
mutation SetItemField($project: ID!, $item: ID!, $field: ID!, $value: ProjectV2FieldValue!) {
  updateProjectV2ItemFieldValue(input: { projectId: $project, itemId: $item, fieldId: $field, value: $value }) {
    projectV2Item { id }
  }
}
"""


def dig(data: Any, *path: str) -> Any:  # noqa: ANN401
    """Walk nested dicts, returning None as soon as a level is missing."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def project_of(data: dict[str, Any]) -> dict[str, Any] | None:
    return dig(data, "repositoryOwner", "projectV2")


def field_nodes(data: dict[str, Any]) -> list[dict[str, Any]]:
    project = project_of(data) or {}
    return [node for node in dig(project, "fields", "nodes") or [] if node]
