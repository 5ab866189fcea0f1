"""
Tests for run configuration and environment loading.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from jira_to_github_migrator.config import (
    DEFAULT_JIRA_URL,
    MigrationConfig,
    build_jql,
    load_env_file,
    load_jira_settings,
    split_repo_path,
)
from jira_to_github_migrator.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
class TestRepoPath:
    def test_split(self) -> None:
        assert split_repo_path("hmcts/my-repo.js") == ("hmcts", "my-repo.js")

    @pytest.mark.parametrize("value", ["", "norepo", "a/b/c", "own er/repo", "/repo"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ConfigError, match="owner/repo"):
            _ = split_repo_path(value)

    def test_urls(self) -> None:
        config = MigrationConfig(owner="org", repo="repo", jql="x")
        assert config.repo_path == "org/repo"
        assert config.repo_url == "https://github.com/org/repo"


@pytest.mark.unit
class TestBuildJql:
    def test_project_only(self) -> None:
        assert build_jql("DEMO", None) == 'project = "DEMO" ORDER BY issuetype ASC, key ASC'

    def test_project_and_label(self) -> None:
        assert build_jql("DEMO", "to-migrate").startswith('project = "DEMO" AND labels = "to-migrate"')

    def test_project_required(self) -> None:
        with pytest.raises(ConfigError):
            _ = build_jql(None, "x")


@pytest.mark.unit
class TestEnvironment:
    """Test env file and credential loading."""

    def test_env_file_does_not_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        env_file = tmp_path / "mcp.env"
        _ = env_file.write_text("JIRA_PERSONAL_TOKEN=from-file\nJIRA_TEST_ONLY_VAR=loaded\n")
        monkeypatch.setenv("JIRA_PERSONAL_TOKEN", "from-env")
        monkeypatch.delenv("JIRA_TEST_ONLY_VAR", raising=False)

        load_env_file(env_file)

        assert os.environ["JIRA_PERSONAL_TOKEN"] == "from-env"
        assert os.environ["JIRA_TEST_ONLY_VAR"] == "loaded"

    def test_missing_env_file_is_a_warning(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        load_env_file(tmp_path / "absent.env")
        assert "not found" in caplog.text

    def test_missing_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JIRA_PERSONAL_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="JIRA_PERSONAL_TOKEN"):
            _ = load_jira_settings()

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JIRA_PERSONAL_TOKEN", "secret")
        monkeypatch.delenv("JIRA_URL", raising=False)
        monkeypatch.setenv("JIRA_STORY_POINTS_FIELD", "customfield_20000")
        monkeypatch.delenv("JIRA_EPIC_LINK_FIELD", raising=False)

        settings = load_jira_settings()

        assert settings.token == "secret"
        assert settings.base_url == DEFAULT_JIRA_URL
        assert settings.field_ids.story_points == "customfield_20000"
        assert settings.field_ids.epic_link == "customfield_10008"
