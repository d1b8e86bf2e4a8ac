"""Turn the navigator's time labels into an AvailabilityResult.

Pure functions only: no browser, no I/O. Labels arrive already stripped of
disabled options, in the order the widget rendered them.
"""

import re
from collections.abc import Iterable
from datetime import date
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from src.remyping.models import AvailabilityResult, Slot, TimeWindow

_HOUR = re.compile(r"^\s*(\d{1,2}):\d{2}")

LUNCH_HOURS = range(11, 15)
DINNER_START_HOUR = 15


def parse_hour(label: str) -> int | None:
    """Hour of an "HH:MM" label, or None if the label is not a time."""
    match = _HOUR.match(label)
    return int(match.group(1)) if match else None


def in_window(label: str, window: TimeWindow) -> bool:
    if window is TimeWindow.ANY:
        return True
    hour = parse_hour(label)
    if hour is None:
        return False
    if window is TimeWindow.LUNCH:
        return hour in LUNCH_HOURS
    return hour >= DINNER_START_HOUR


def build_booking_link(
    base_url: str, target_date: date, time_label: str, party_size: int
) -> str:
    """Deep link for one slot: the booking page with date, time and guests appended.

    The widget exposes no per-slot link, so the link is synthesized from the
    request parameters rather than read from the page.
    """
    parts = urlsplit(base_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query += [
        ("date", target_date.isoformat()),
        ("time", time_label),
        ("guests", str(party_size)),
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe=":")))


def extract(
    raw_labels: Iterable[str],
    time_window: TimeWindow | str,
    target_date: date,
    party_size: int,
    *,
    base_url: str,
) -> AvailabilityResult:
    """Build the availability result for one requested time window.

    lunch keeps hours in [11, 15), dinner keeps hours >= 15, anything else
    keeps every label. An empty selection is a normal "no slots" result,
    not an error.

    Args:
        raw_labels: Enabled time labels in UI order.
        time_window: Requested window.
        target_date: Reservation date (used in booking links).
        party_size: Number of guests (used in booking links).
        base_url: Booking page URL the links are built on.

    Returns:
        AvailabilityResult with slots in the original label order.
    """
    window = TimeWindow.from_label(time_window)
    selected = [
        label.strip() for label in raw_labels if in_window(label.strip(), window)
    ]
    if not selected:
        return AvailabilityResult(available=False, slots=())

    slots = tuple(
        Slot(
            time=label,
            booking_link=build_booking_link(base_url, target_date, label, party_size),
        )
        for label in selected
    )
    return AvailabilityResult(available=True, slots=slots)
