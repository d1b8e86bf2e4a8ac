"""One availability check: session -> navigator -> extractor.

AvailabilityChecker is the only path to the shared browser session. Its
lock serializes every check, whether a scheduler tick or an on-demand
request started it, because concurrent commands against one page race and
corrupt the widget state.
"""

import asyncio
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path

from src.remyping.config import MonitorConfig, get_config
from src.remyping.errors import ScrapingError, SessionUnavailableError, TransientError
from src.remyping.extractor import extract
from src.remyping.logging import get_logger
from src.remyping.models import AvailabilityResult, TimeWindow
from src.remyping.pages.reservation import ReservationNavigator
from src.remyping.session import SessionManager

log = get_logger(__name__)


class AvailabilityChecker:
    """Runs the full check pipeline against the shared session."""

    def __init__(
        self,
        session: SessionManager,
        config: MonitorConfig | None = None,
        *,
        navigator_factory: Callable[..., ReservationNavigator] = ReservationNavigator,
    ) -> None:
        self.session = session
        self.config = config or get_config()
        self.navigator_factory = navigator_factory
        self._lock = asyncio.Lock()

    async def check(
        self, target_date: date, time_window: TimeWindow | str, party_size: int
    ) -> AvailabilityResult:
        """Check one date / window / party size.

        Raises:
            SessionUnavailableError: No session, or the page is logged out.
            NavigationError: A navigation step failed.
            StepTimeoutError: A bounded wait expired.
            TransientError: The page failed to load, or the browser raised
                mid-navigation.
        """
        window = TimeWindow.from_label(time_window)
        async with self._lock:
            # Raises before any navigation when there is no browser
            observation = self.session.observation()
            try:
                await self.session.open_booking_page()
                if not await self.session.verify_login():
                    raise SessionUnavailableError("Not logged in. Log in first.")

                navigator = self.navigator_factory(observation, self.config)
                outcome = await navigator.navigate_to_slot_selection(
                    target_date, party_size
                )
            except ScrapingError as e:
                await self._record_failure(e, target_date, window)
                raise
            except Exception as e:
                await self._record_failure(e, target_date, window)
                # Browser errors mid-navigation are classified as transient
                raise TransientError(f"Check failed: {e}") from e

        result = extract(
            outcome.time_labels,
            window,
            target_date,
            party_size,
            base_url=self.config.booking_url,
        )
        log.info(
            "slots_found" if result.available else "no_slots",
            date=target_date.isoformat(),
            window=window.value,
            party_size=party_size,
            slots=[slot.time for slot in result.slots],
        )
        return result

    async def _record_failure(
        self, error: Exception, target_date: date, window: TimeWindow
    ) -> None:
        log.warning(
            "check_failed",
            date=target_date.isoformat(),
            window=window.value,
            step=getattr(error, "step", None),
            error=str(error),
            error_type=type(error).__name__,
        )
        await self._capture_failure()

    async def _capture_failure(self) -> None:
        """Best-effort full-page screenshot of the state a check failed in."""
        if not self.config.screenshot_dir:
            return
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        path = Path(self.config.screenshot_dir) / f"check_failed_{stamp}.png"
        try:
            await self.session.capture_screenshot(str(path))
        except Exception as e:
            log.warning("screenshot_failed", error=str(e))
