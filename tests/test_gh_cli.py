"""
Tests for the gh CLI transport. subprocess.run is mocked throughout.
"""

from __future__ import annotations

import json
import subprocess
from typing import Any
from unittest.mock import patch

import pytest

from jira_to_github_migrator.exceptions import RateLimitError, UpstreamError
from jira_to_github_migrator.gh_cli import GhCliTransport, is_rate_limit_message, issue_number_from_url


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["gh"], returncode=returncode, stdout=stdout, stderr=stderr)


def _json(data: Any) -> subprocess.CompletedProcess[str]:  # noqa: ANN401
    return _completed(stdout=json.dumps(data))


@pytest.mark.unit
class TestHelpers:
    def test_issue_number_from_url(self) -> None:
        assert issue_number_from_url("https://github.com/org/repo/issues/123\n") == 123

    def test_issue_number_from_bad_url(self) -> None:
        with pytest.raises(UpstreamError):
            _ = issue_number_from_url("not a url")

    @pytest.mark.parametrize(
        "message",
        [
            "was submitted too quickly",
            "API rate limit exceeded for user",
            "You have exceeded a secondary rate limit",
        ],
    )
    def test_rate_limit_detection(self, message: str) -> None:
        assert is_rate_limit_message(message)

    def test_other_errors_are_not_rate_limits(self) -> None:
        assert not is_rate_limit_message("HTTP 404: Not Found")


@pytest.mark.unit
class TestGhCliTransport:
    """Test gh command construction and error mapping."""

    def test_create_issue_passes_body_on_stdin(self) -> None:
        transport = GhCliTransport("org", "repo")
        with patch("subprocess.run", return_value=_completed("https://github.com/org/repo/issues/9\n")) as mock_run:
            issue = transport.create_issue("[DEMO-1] Title", "body text", ["jira:DEMO-1", "status:open"])

        assert issue.number == 9
        assert issue.url == "https://github.com/org/repo/issues/9"
        args = mock_run.call_args.args[0]
        assert args[:3] == ["gh", "issue", "create"]
        assert ["-R", "org/repo"] == args[3:5]
        assert "--body-file" in args
        assert args.count("--label") == 2
        assert mock_run.call_args.kwargs["input"] == "body text"

    def test_find_issues_searches_all_states(self) -> None:
        transport = GhCliTransport("org", "repo")
        payload = [{"number": 4, "url": "https://github.com/org/repo/issues/4"}]
        with patch("subprocess.run", return_value=_json(payload)) as mock_run:
            found = transport.find_issues_by_label("jira:DEMO-1")

        assert found[0].number == 4
        args = mock_run.call_args.args[0]
        assert args[args.index("--state") + 1] == "all"
        assert args[args.index("--label") + 1] == "jira:DEMO-1"

    def test_label_exists_requires_exact_match(self) -> None:
        transport = GhCliTransport("org", "repo")
        with patch("subprocess.run", return_value=_json([{"name": "status:open-later"}])):
            assert not transport.label_exists("status:open")

    def test_rate_limit_error(self) -> None:
        transport = GhCliTransport("org", "repo")
        failure = _completed(stderr="GraphQL: was submitted too quickly", returncode=1)
        with patch("subprocess.run", return_value=failure), pytest.raises(RateLimitError):
            transport.add_comment(3, "hello")

    def test_other_failure(self) -> None:
        transport = GhCliTransport("org", "repo")
        failure = _completed(stderr="HTTP 403: Forbidden", returncode=1)
        with patch("subprocess.run", return_value=failure), pytest.raises(UpstreamError, match="Forbidden"):
            transport.add_comment(3, "hello")

    def test_gh_not_installed(self) -> None:
        transport = GhCliTransport("org", "repo")
        with patch("subprocess.run", side_effect=FileNotFoundError("gh")), pytest.raises(UpstreamError):
            transport.add_comment(3, "hello")

    def test_check_auth(self) -> None:
        transport = GhCliTransport("org", "repo")
        with patch("subprocess.run", return_value=_completed(stderr="✓ Logged in to github.com account me")):
            assert transport.check_auth()
        with patch("subprocess.run", return_value=_completed(stderr="not logged in", returncode=1)):
            assert not transport.check_auth()

    def test_graphql_errors_raise(self) -> None:
        transport = GhCliTransport("org", "repo")
        with patch("subprocess.run", return_value=_json({"errors": [{"message": "bad"}]})), pytest.raises(UpstreamError):
            transport.add_sub_issue("I_1", "I_2")

    def test_graphql_int_variables_use_typed_flag(self) -> None:
        transport = GhCliTransport("org", "repo")
        data = {"data": {"repository": {"issue": {"subIssues": {"nodes": [{"number": 5}, {"number": 6}]}}}}}
        with patch("subprocess.run", return_value=_json(data)) as mock_run:
            assert transport.get_sub_issue_numbers(1) == [5, 6]

        args = mock_run.call_args.args[0]
        assert args[args.index("number=1") - 1] == "-F"
        assert args[args.index("owner=org") - 1] == "-f"

    def test_project_fields(self) -> None:
        transport = GhCliTransport("org", "repo")
        fields = {"fields": [{"id": "F1", "name": "Status"}, {"id": "F2", "name": "Estimate"}]}
        with patch("subprocess.run", side_effect=[_json(fields), _json({"id": "PVT_9"})]):
            result = transport.get_project_fields(3)

        assert result.project_id == "PVT_9"
        assert result.status_field_id == "F1"
        assert result.estimate_field_id == "F2"

    def test_find_project_item_from_item_list(self) -> None:
        transport = GhCliTransport("org", "repo")
        listing = {"items": [{"id": "PVTI_7", "content": {"url": "https://github.com/org/repo/issues/7", "number": 7}}]}
        with patch("subprocess.run", return_value=_json(listing)):
            assert transport.find_project_item(3, "https://github.com/org/repo/issues/7", 7) == "PVTI_7"

    def test_find_project_item_falls_back_to_graphql(self) -> None:
        transport = GhCliTransport("org", "repo")
        graphql = {"data": {"repository": {"issue": {"projectItems": {"nodes": [{"id": "PVTI_8", "project": {"number": 3}}]}}}}}
        with patch("subprocess.run", side_effect=[_json({"items": []}), _json(graphql)]):
            assert transport.find_project_item(3, "https://github.com/org/repo/issues/8", 8) == "PVTI_8"

    def test_set_item_number_formats_value(self) -> None:
        transport = GhCliTransport("org", "repo")
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            transport.set_item_number("PVT_1", "PVTI_1", "F2", 3.0)

        args = mock_run.call_args.args[0]
        assert args[args.index("--number") + 1] == "3"
