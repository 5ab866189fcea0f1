"""Attachment upload to GitHub issues through a real browser.

GitHub's APIs cannot attach files to issue comments, so the files are
dropped into the comment box of a logged-in Firefox session driven by
Playwright. Playwright's sync API is bound to the thread that started it;
the browser therefore lives on its own single worker thread and every call
from the migration workers is handed to that thread and waited for, which
also serialises uploads.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Final, TypeVar

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .exceptions import UpstreamError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from playwright.sync_api import BrowserContext, Page, Playwright

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

GITHUB_URL: Final[str] = "https://github.com"
COMMENT_PREAMBLE: Final[str] = "Attachments from JIRA:"
LOGGED_IN_MARKER: Final[str] = '[data-target="react-app.embeddedData"]'
COMMENT_FIELD: Final[str] = "textarea#new_comment_field"
ATTACH_BUTTON: Final[str] = '[aria-label="Attach files by dragging & dropping, selecting or pasting them."]'
ATTACH_SHORTCUT: Final[str] = "Control+Shift+G"
_VIEWPORT: Final[dict[str, int]] = {"width": 1280, "height": 720}


def find_firefox_profile(home: Path | None = None, platform: str = sys.platform) -> Path | None:
    """Locate the operator's Firefox profile so existing GitHub cookies are reused.

    Prefers a profile whose name contains "default", otherwise the first one found.
    """
    home = home or Path.home()
    if platform.startswith("linux"):
        profiles_dir = home / ".mozilla" / "firefox"
    elif platform == "darwin":
        profiles_dir = home / "Library" / "Application Support" / "Firefox" / "Profiles"
    elif platform == "win32":
        profiles_dir = Path(os.environ.get("APPDATA", "")) / "Mozilla" / "Firefox" / "Profiles"
    else:
        return None

    if not profiles_dir.is_dir():
        return None

    profiles = sorted(p for p in profiles_dir.iterdir() if p.is_dir())
    for profile in profiles:
        if profile.name.endswith((".default", ".default-release")):
            return profile
    for profile in profiles:
        if "default" in profile.name:
            return profile
    return profiles[0] if profiles else None


class BrowserSession:
    """AuthSession backed by a headed Firefox controlled through Playwright."""

    _executor: ThreadPoolExecutor
    _login_lock: threading.Lock
    _logged_in: bool
    _playwright: Playwright | None
    _context: BrowserContext | None
    _page: Page | None

    def __init__(self, profile_dir: Path | None = None) -> None:
        self._profile_dir = profile_dir
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser")
        self._login_lock = threading.Lock()
        self._logged_in = False
        self._playwright = None
        self._context = None
        self._page = None

    def _call(self, fn: Callable[..., T], *args: object) -> T:
        """Run fn on the browser thread and wait for its result."""
        return self._executor.submit(fn, *args).result()

    # Everything below prefixed with _on_browser runs on the browser thread only

    def _on_browser_page(self) -> Page:
        if self._page is not None:
            return self._page

        print("Launching Firefox browser...")
        self._playwright = sync_playwright().start()
        firefox = self._playwright.firefox
        profile = self._profile_dir or find_firefox_profile()
        if profile:
            print(f"Using Firefox profile: {profile}")
            self._context = firefox.launch_persistent_context(str(profile), headless=False, viewport=_VIEWPORT)
        else:
            print("No Firefox profile found, launching with a fresh context")
            browser = firefox.launch(headless=False)
            self._context = browser.new_context(viewport=_VIEWPORT)

        self._page = self._context.pages[0] if self._context.pages else self._context.new_page()
        return self._page

    def _on_browser_check_login(self) -> bool:
        page = self._on_browser_page()
        _ = page.goto(GITHUB_URL, wait_until="networkidle")
        try:
            return page.locator(LOGGED_IN_MARKER).count() > 0
        except PlaywrightError:
            return False

    def _on_browser_reload(self) -> None:
        _ = self._on_browser_page().reload(wait_until="networkidle")

    def _on_browser_attach(self, page: Page, path: Path) -> None:
        with page.expect_file_chooser() as chooser_info:
            try:
                page.locator(ATTACH_BUTTON).click(timeout=2000)
            except PlaywrightTimeoutError:
                page.keyboard.press(ATTACH_SHORTCUT)
        chooser_info.value.set_files(str(path))

        uploading = page.locator("text=Uploading")
        try:
            uploading.wait_for(state="visible", timeout=5000)
            uploading.wait_for(state="detached", timeout=60000)
        except PlaywrightTimeoutError:
            # Small files finish before the indicator is ever seen
            page.wait_for_timeout(2000)

    def _on_browser_upload(self, issue_url: str, paths: Sequence[Path]) -> int:
        page = self._on_browser_page()
        _ = page.goto(issue_url, wait_until="networkidle")
        page.wait_for_timeout(1000)

        comment_field = page.locator(COMMENT_FIELD)
        comment_field.wait_for(state="visible", timeout=10000)
        comment_field.scroll_into_view_if_needed()
        comment_field.click()
        comment_field.fill(COMMENT_PREAMBLE)

        uploaded = 0
        for path in paths:
            print(f"    Uploading: {path.name}...")
            try:
                self._on_browser_attach(page, path)
            except PlaywrightError as e:
                logger.warning(f"Failed to attach {path.name} to {issue_url}: {e}")
                continue
            uploaded += 1

        if uploaded:
            page.locator('button:has-text("Comment")').first.click()
            page.wait_for_timeout(2000)
        return uploaded

    def _on_browser_close(self) -> None:
        if self._context is not None:
            self._context.close()
            self._context = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        self._page = None

    def wait_for_interactive_login(self) -> None:
        with self._login_lock:
            if self._logged_in:
                return

            print("Checking GitHub authentication...")
            if not self._call(self._on_browser_check_login):
                print("\n====================================")
                print("Please log in to GitHub in the browser window")
                print("Press ENTER after you have logged in...")
                print("====================================\n")
                _ = input()
                self._call(self._on_browser_reload)

            self._logged_in = True
            print("GitHub authentication confirmed.")

    def upload_attachments(self, issue_url: str, paths: Sequence[Path]) -> int:
        """Attach files to the issue in one comment.

        Raises:
            UpstreamError: If the issue page cannot be driven at all
        """
        if not paths:
            return 0

        print(f"  Uploading {len(paths)} attachment(s) to {issue_url}...")
        try:
            return self._call(self._on_browser_upload, issue_url, list(paths))
        except PlaywrightError as e:
            msg = f"Failed to upload attachments to {issue_url}: {e}"
            raise UpstreamError(msg) from e

    def close(self) -> None:
        try:
            self._call(self._on_browser_close)
        finally:
            self._executor.shutdown(wait=True)
