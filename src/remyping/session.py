"""Playwright session management for the reservation site.

SessionManager owns the one browser the monitor drives: it launches it,
lets a human log in by hand, verifies the logged-in marker, persists the
storage state so a login survives restarts, and hands the page to the core
only through the Observation capability.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.remyping.config import MonitorConfig, get_config
from src.remyping.errors import SessionUnavailableError, TransientError
from src.remyping.logging import get_logger
from src.remyping.observation import PageObservation

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

logger = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class SessionManager:
    """Manages the shared, manually authenticated browser session."""

    # Only rendered once the user is logged in
    LOGGED_IN_MARKER = '[data-testid="choose-my-date"]'

    def __init__(self, config: MonitorConfig | None = None) -> None:
        """Initialize SessionManager.

        Args:
            config: Monitor configuration (booking URL, state dir, timeouts).
        """
        self.config = config or get_config()
        self.state_dir = Path(self.config.state_dir)
        self.state_file = self.state_dir / "reservation_session.json"
        self.max_session_age_hours = self.config.max_session_age_hours

        self._playwright: "Playwright | None" = None
        self._browser: "Browser | None" = None
        self._context: "BrowserContext | None" = None
        self._page: "Page | None" = None

        self.state_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_active(self) -> bool:
        return self._page is not None and not self._page.is_closed()

    def is_session_valid(self) -> bool:
        """Check if a saved session exists and is still fresh."""
        if not self.state_file.exists():
            logger.debug("session_check", result="missing", reason="file_not_found")
            return False

        file_mtime = datetime.fromtimestamp(self.state_file.stat().st_mtime)
        age = datetime.now() - file_mtime
        if age > timedelta(hours=self.max_session_age_hours):
            logger.info(
                "session_check",
                result="expired",
                age_hours=age.total_seconds() / 3600,
                max_hours=self.max_session_age_hours,
            )
            return False

        logger.debug("session_check", result="valid", age_hours=age.total_seconds() / 3600)
        return True

    async def start(self) -> None:
        """Launch the browser and open the booking page for a manual login.

        Any browser already running is closed first.
        """
        if self._browser is not None:
            await self.close()

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=["--start-maximized"],
            timeout=self.config.page_load_timeout_ms,
            ignore_default_args=["--enable-automation"],
        )

        context_kwargs: dict = {"user_agent": USER_AGENT}
        if self.is_session_valid():
            context_kwargs["storage_state"] = str(self.state_file)
        self._context = await self._browser.new_context(**context_kwargs)
        logger.info(
            "context_created",
            type="restored" if "storage_state" in context_kwargs else "fresh",
        )

        page = await self._context.new_page()
        page.on("pageerror", lambda error: logger.warning("page_error", error=str(error)))
        page.on("console", lambda msg: logger.debug("browser_console", text=msg.text))
        self._page = page

        await self.open_booking_page()
        logger.info("session_started", url=self.config.booking_url)

    def observation(self) -> PageObservation:
        """The Observation capability over the live page.

        Raises:
            SessionUnavailableError: If no browser session is running.
        """
        if not self.is_active:
            raise SessionUnavailableError(
                "Login browser is not running. Start it and log in first."
            )
        return PageObservation(self._page)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(2),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
    )
    async def open_booking_page(self) -> None:
        """(Re)load the booking page so every check starts from the calendar.

        Raises:
            SessionUnavailableError: If no browser session is running.
            TransientError: If the page fails to load or does not settle in time.
        """
        if not self.is_active:
            raise SessionUnavailableError("Login browser is not running")
        try:
            await self._page.goto(
                self.config.booking_url,
                wait_until="networkidle",
                timeout=self.config.page_load_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            logger.warning("booking_page_timeout", error=str(e))
            raise TransientError(f"Booking page failed to load: {e}") from e
        except Exception as e:
            logger.error("booking_page_error", error=str(e), type=type(e).__name__)
            # net::ERR_* and other browser failures are retried like timeouts
            raise TransientError(f"Booking page failed to load: {e}") from e

    async def verify_login(self) -> bool:
        """Check that the page shows the logged-in marker; save state if so."""
        if not self.is_active:
            return False

        await self._page.wait_for_load_state("domcontentloaded")
        logged_in = await PageObservation(self._page).wait_for_visible(
            self.LOGGED_IN_MARKER, self.config.login_check_timeout_ms
        )
        logger.info("login_verified", logged_in=logged_in)
        if logged_in:
            await self.save_session()
        return logged_in

    async def save_session(self) -> None:
        """Save browser context storage state to disk."""
        if self._context is None:
            return
        await self._context.storage_state(path=str(self.state_file))
        logger.info("session_saved", path=str(self.state_file))

    async def capture_screenshot(self, path: str) -> None:
        if not self.is_active:
            return
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        await self._page.screenshot(path=path, full_page=True)
        logger.info("screenshot_saved", path=path)

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call repeatedly."""
        try:
            if self._browser is not None:
                await self._browser.close()
                logger.info("browser_closed")
        finally:
            try:
                if self._playwright is not None:
                    await self._playwright.stop()
            finally:
                self._playwright = None
                self._browser = None
                self._context = None
                self._page = None
