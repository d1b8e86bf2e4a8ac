"""ReservationNavigator - drives the booking widget to the time-slot step.

The widget exposes its state only through which elements are rendered and
what text they carry, so every step is wait, act, verify.

DOM structure (booking widget, two-month calendar):
  .rdp-months
    .rdp-month (x2)          -> left = current month, right = next month
      caption typography     -> "May 2025", "June 2025"
      .rdp-day[role=gridcell] -> one per day, `disabled` when not bookable
    .custom-calendar-caption:nth-of-type(2) .custom-calendar-caption__button
                             -> advances both views by one month
  .confirm-button            -> confirms the chosen day
  .radio-as-button-group__wrapper
    .radio-as-button         -> party sizes ("1".."10"), then time slots
                                ("11:30", "18:00"), `.disabled` when full
  button[data-fantasia-ds=Button] "Continue" -> leaves the party-size step

Steps:
  1. month       resolve the target month among the two captions, advancing
                 once only when it is the month after the current one
  2. day         click the enabled day cell for the target day, then confirm
  3. party_size  click the matching party-size option, then Continue
  4. time_slots  wait for the time-slot options and read enabled labels

The navigator never retries. A failed step raises a step-tagged error and
the scheduler tries again on the job's next eligible tick.
"""

import calendar
import re
from datetime import date

from src.remyping.config import MonitorConfig, get_config
from src.remyping.errors import (
    CalendarNavigationError,
    ContinueControlNotFoundError,
    DaySelectionError,
    PartySizeUnavailableError,
    StepTimeoutError,
)
from src.remyping.logging import get_logger
from src.remyping.models import NavigationOutcome
from src.remyping.observation import ElementHandle, Observation

log = get_logger(__name__)

_MONTHS: dict[str, int] = {
    name.lower(): number for number, name in enumerate(calendar.month_name) if name
}

_TIME_LABEL = re.compile(r"^\d{1,2}:\d{2}")


async def find_by_attribute(
    observation: Observation, selector: str, timeout_ms: int
) -> ElementHandle | None:
    """Primary lookup: wait for an element matching an explicit role/attribute selector."""
    if not await observation.wait_for_visible(selector, timeout_ms):
        return None
    matches = await observation.query_all(selector)
    return matches[0] if matches else None


async def find_by_visible_text(
    observation: Observation, selector: str, text: str
) -> ElementHandle | None:
    """Fallback lookup: scan every candidate control for one whose text contains `text`.

    The widget renders equivalent controls with varying attributes, so when
    the primary selector times out the same control is usually still there
    under a looser selector.
    """
    for candidate in await observation.query_all(selector):
        if text in await candidate.text():
            return candidate
    return None


def parse_caption(caption: str | None) -> tuple[int, int] | None:
    """Parse a calendar caption like "June 2025" into (month, year)."""
    parts = (caption or "").split()
    if len(parts) != 2:
        return None
    month = _MONTHS.get(parts[0].lower())
    if month is None or not parts[1].isdigit():
        return None
    return month, int(parts[1])


def _next_month(month: int, year: int) -> tuple[int, int]:
    return (1, year + 1) if month == 12 else (month + 1, year)


class ReservationNavigator:
    """Booking widget page object for one authenticated session."""

    # Selectors confirmed against the booking widget
    CALENDAR_CAPTION = ".style__TypographyBase-sc-9d50454a-0.kouJey"
    NEXT_MONTH_BUTTON = (
        ".custom-calendar-caption:nth-of-type(2) .custom-calendar-caption__button"
    )
    MONTH_VIEW = ".rdp-months > .rdp-month"
    DAY_CELL = '.rdp-day[role="gridcell"]'
    CONFIRM_BUTTON = ".confirm-button"
    OPTION_GROUP = ".radio-as-button-group__wrapper"
    OPTION = ".radio-as-button"
    TIME_SLOT_OPTION = '.radio-as-button:text-matches("^\\d{1,2}:\\d{2}")'
    CONTINUE_BUTTON = '[role="button"][data-fantasia-ds="Button"]:has-text("Continue")'
    CONTINUE_CANDIDATES = 'button[data-fantasia-ds="Button"]'
    CONTINUE_LABEL = "Continue"

    def __init__(
        self, observation: Observation, config: MonitorConfig | None = None
    ) -> None:
        self.observation = observation
        self.config = config or get_config()

    @classmethod
    def day_cell_selector(cls, view_index: int) -> str:
        """Day cells of the left (0) or right (1) month view."""
        return f"{cls.MONTH_VIEW}:nth-child({view_index + 1}) {cls.DAY_CELL}"

    async def navigate_to_slot_selection(
        self, target_date: date, party_size: int
    ) -> NavigationOutcome:
        """Drive the widget from the calendar to the rendered time-slot options.

        Args:
            target_date: Reservation date.
            party_size: Number of guests.

        Returns:
            NavigationOutcome with enabled time labels in UI order.

        Raises:
            CalendarNavigationError: Target month not reachable with one advance.
            DaySelectionError: No enabled cell for the target day.
            PartySizeUnavailableError: No option for the requested party size.
            ContinueControlNotFoundError: Neither continue lookup found a control.
            StepTimeoutError: A bounded wait expired.
        """
        view_index, advanced = await self._resolve_month(target_date)
        await self._select_day(target_date, view_index)
        await self._select_party_size(party_size)
        fallback_used = await self._continue()
        labels = await self._read_time_labels()

        return NavigationOutcome(
            time_labels=tuple(labels),
            month_advanced=advanced,
            continue_fallback_used=fallback_used,
        )

    async def _wait(self, step: str, selector: str, timeout_ms: int) -> None:
        if not await self.observation.wait_for_visible(selector, timeout_ms):
            raise StepTimeoutError(step, selector, timeout_ms)

    async def _read_captions(self) -> list[tuple[int, int] | None]:
        captions = [
            await element.text()
            for element in await self.observation.query_all(self.CALENDAR_CAPTION)
        ]
        log.debug("calendar_captions", captions=captions)
        return [parse_caption(caption) for caption in captions[:2]]

    async def _resolve_month(self, target_date: date) -> tuple[int, bool]:
        """Find the month view showing the target month.

        Returns:
            (view index, whether the calendar was advanced).
        """
        target = (target_date.month, target_date.year)
        await self._wait("month", self.CALENDAR_CAPTION, self.config.caption_timeout_ms)

        displayed = await self._read_captions()
        if target in displayed:
            return displayed.index(target), False

        current = displayed[0] if displayed else None
        if current is None:
            raise CalendarNavigationError("Current-month caption is missing or unreadable")
        # Only the month right after the current one is reachable
        if _next_month(*current) != target:
            raise CalendarNavigationError(
                f"Cannot navigate to {calendar.month_name[target[0]]} {target[1]}: "
                f"current month is {calendar.month_name[current[0]]} {current[1]}"
            )

        if not await self.observation.wait_for_visible(
            self.NEXT_MONTH_BUTTON, self.config.next_month_timeout_ms
        ):
            raise CalendarNavigationError("Next-month control not found")
        await self.observation.click(self.NEXT_MONTH_BUTTON)
        log.info("month_advanced", target_month=target[0], target_year=target[1])

        displayed = await self._read_captions()
        if target not in displayed:
            raise CalendarNavigationError(
                f"{calendar.month_name[target[0]]} {target[1]} not displayed after advancing"
            )
        return displayed.index(target), True

    async def _select_day(self, target_date: date, view_index: int) -> None:
        label = str(target_date.day)
        for cell in await self.observation.query_all(self.day_cell_selector(view_index)):
            if await cell.is_disabled():
                continue
            if await cell.text() == label:
                await cell.click()
                log.info("day_selected", date=target_date.isoformat())
                break
        else:
            raise DaySelectionError(
                f"Day {label} is not selectable for {target_date:%B %Y}"
            )

        await self._wait("confirm", self.CONFIRM_BUTTON, self.config.confirm_timeout_ms)
        await self.observation.click(self.CONFIRM_BUTTON)

    async def _select_party_size(self, party_size: int) -> None:
        await self._wait("party_size", self.OPTION_GROUP, self.config.party_size_timeout_ms)

        options = await self.observation.query_all(self.OPTION)
        labels = [await option.text() for option in options]
        log.debug("party_size_options", options=labels)

        for option, option_label in zip(options, labels):
            if option_label == str(party_size) and not await option.is_disabled():
                await option.click()
                log.info("party_size_selected", party_size=party_size)
                return
        raise PartySizeUnavailableError(f"No option for a party of {party_size}")

    async def _continue(self) -> bool:
        """Activate the continue control. Returns True if the fallback lookup was needed."""
        control = await find_by_attribute(
            self.observation, self.CONTINUE_BUTTON, self.config.continue_timeout_ms
        )
        fallback_used = False
        if control is None:
            log.info("continue_fallback_used", selector=self.CONTINUE_CANDIDATES)
            control = await find_by_visible_text(
                self.observation, self.CONTINUE_CANDIDATES, self.CONTINUE_LABEL
            )
            fallback_used = True
        if control is None:
            raise ContinueControlNotFoundError(
                "Continue control not found after party-size selection"
            )
        await control.click()
        return fallback_used

    async def _read_time_labels(self) -> list[str]:
        """Enabled time-slot labels in UI order.

        The disabled filter is applied here and only here; the extractor
        receives bookable labels only.
        """
        await self._wait(
            "time_slots", self.TIME_SLOT_OPTION, self.config.time_slot_timeout_ms
        )

        labels: list[str] = []
        for option in await self.observation.query_all(self.TIME_SLOT_OPTION):
            text = await option.text()
            if not _TIME_LABEL.match(text) or await option.is_disabled():
                continue
            labels.append(text)

        log.info("time_slots_read", slots=labels)
        return labels
