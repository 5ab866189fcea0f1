"""Tests for browser-based attachment upload."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from playwright.sync_api import Error as PlaywrightError

from jira_to_github_migrator.attachments import COMMENT_PREAMBLE, BrowserSession, find_firefox_profile
from jira_to_github_migrator.exceptions import UpstreamError

if TYPE_CHECKING:
    from pathlib import Path

ISSUE_URL = "https://github.com/org/repo/issues/1"


def _fake_playwright(*, logged_in: bool = True) -> tuple[MagicMock, MagicMock, MagicMock]:
    """Return (sync_playwright factory, playwright, page) mocks."""
    page = MagicMock()
    page.locator.return_value.count.return_value = 1 if logged_in else 0
    context = MagicMock()
    context.pages = [page]
    playwright = MagicMock()
    playwright.firefox.launch_persistent_context.return_value = context
    factory = MagicMock()
    factory.return_value.start.return_value = playwright
    return factory, playwright, page


@pytest.mark.unit
class TestFindFirefoxProfile:
    def _profiles(self, home: Path, *names: str) -> None:
        for name in names:
            (home / ".mozilla" / "firefox" / name).mkdir(parents=True)

    def test_prefers_default_release(self, tmp_path: Path) -> None:
        self._profiles(tmp_path, "aaa.work", "xyz.default-release")
        assert find_firefox_profile(tmp_path, "linux") == tmp_path / ".mozilla" / "firefox" / "xyz.default-release"

    def test_falls_back_to_name_containing_default(self, tmp_path: Path) -> None:
        self._profiles(tmp_path, "aaa.work", "default-old")
        assert find_firefox_profile(tmp_path, "linux") == tmp_path / ".mozilla" / "firefox" / "default-old"

    def test_first_profile_otherwise(self, tmp_path: Path) -> None:
        self._profiles(tmp_path, "bbb.work", "aaa.home")
        assert find_firefox_profile(tmp_path, "linux") == tmp_path / ".mozilla" / "firefox" / "aaa.home"

    def test_no_profiles(self, tmp_path: Path) -> None:
        assert find_firefox_profile(tmp_path, "linux") is None

    def test_macos_location(self, tmp_path: Path) -> None:
        profile = tmp_path / "Library" / "Application Support" / "Firefox" / "Profiles" / "abc.default"
        profile.mkdir(parents=True)
        assert find_firefox_profile(tmp_path, "darwin") == profile

    def test_unsupported_platform(self, tmp_path: Path) -> None:
        assert find_firefox_profile(tmp_path, "sunos5") is None


@pytest.mark.unit
class TestBrowserSession:
    """Test the Playwright session with the browser mocked out."""

    def test_empty_upload_does_not_start_browser(self, tmp_path: Path) -> None:
        factory, _, _ = _fake_playwright()
        with patch("jira_to_github_migrator.attachments.sync_playwright", factory):
            session = BrowserSession(profile_dir=tmp_path)
            try:
                assert session.upload_attachments(ISSUE_URL, []) == 0
            finally:
                session.close()

        factory.assert_not_called()

    def test_login_prompt_only_once(self, tmp_path: Path) -> None:
        factory, playwright, page = _fake_playwright(logged_in=False)
        with (
            patch("jira_to_github_migrator.attachments.sync_playwright", factory),
            patch("builtins.input", return_value="") as mock_input,
        ):
            session = BrowserSession(profile_dir=tmp_path)
            try:
                session.wait_for_interactive_login()
                session.wait_for_interactive_login()
            finally:
                session.close()

        mock_input.assert_called_once()
        page.reload.assert_called_once()
        playwright.firefox.launch_persistent_context.assert_called_once()
        assert playwright.firefox.launch_persistent_context.call_args.args[0] == str(tmp_path)
        playwright.stop.assert_called_once()

    def test_already_logged_in_skips_prompt(self, tmp_path: Path) -> None:
        factory, _, _ = _fake_playwright(logged_in=True)
        with (
            patch("jira_to_github_migrator.attachments.sync_playwright", factory),
            patch("builtins.input") as mock_input,
        ):
            session = BrowserSession(profile_dir=tmp_path)
            try:
                session.wait_for_interactive_login()
            finally:
                session.close()

        mock_input.assert_not_called()

    def test_upload_counts_attached_files(self, tmp_path: Path) -> None:
        factory, _, page = _fake_playwright()
        files = [tmp_path / "a.png", tmp_path / "b.log"]
        with patch("jira_to_github_migrator.attachments.sync_playwright", factory):
            session = BrowserSession(profile_dir=tmp_path)
            try:
                uploaded = session.upload_attachments(ISSUE_URL, files)
            finally:
                session.close()

        assert uploaded == 2
        page.goto.assert_called_with(ISSUE_URL, wait_until="networkidle")
        page.locator.return_value.fill.assert_called_once_with(COMMENT_PREAMBLE)
        chooser = page.expect_file_chooser.return_value.__enter__.return_value
        assert chooser.value.set_files.call_count == 2

    def test_failed_file_is_skipped(self, tmp_path: Path) -> None:
        factory, _, page = _fake_playwright()
        page.expect_file_chooser.side_effect = PlaywrightError("no chooser")
        with patch("jira_to_github_migrator.attachments.sync_playwright", factory):
            session = BrowserSession(profile_dir=tmp_path)
            try:
                assert session.upload_attachments(ISSUE_URL, [tmp_path / "a.png"]) == 0
            finally:
                session.close()

    def test_page_failure_raises_upstream_error(self, tmp_path: Path) -> None:
        factory, _, page = _fake_playwright()
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")
        with patch("jira_to_github_migrator.attachments.sync_playwright", factory):
            session = BrowserSession(profile_dir=tmp_path)
            try:
                with pytest.raises(UpstreamError, match="ERR_CONNECTION_RESET"):
                    _ = session.upload_attachments(ISSUE_URL, [tmp_path / "a.png"])
            finally:
                session.close()
