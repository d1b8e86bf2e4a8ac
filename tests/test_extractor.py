from datetime import date
from urllib.parse import parse_qs, urlsplit

import pytest

from src.remyping.extractor import build_booking_link, extract, parse_hour
from src.remyping.models import TimeWindow

BASE_URL = "https://booking.example.com/en-usd?id=P2TR02"
LABELS = ["11:30", "12:00", "18:00"]


def _times(result):
    return [slot.time for slot in result.slots]


@pytest.mark.parametrize(
    "window, expected",
    [
        ("lunch", ["11:30", "12:00"]),
        ("dinner", ["18:00"]),
        ("any", ["11:30", "12:00", "18:00"]),
    ],
)
def test_window_partitions(window, expected):
    result = extract(LABELS, window, date(2025, 6, 15), 2, base_url=BASE_URL)

    assert result.available is True
    assert _times(result) == expected
    assert result.error is None


def test_unrecognised_window_keeps_everything():
    result = extract(["18:00", "11:30"], "all", date(2025, 6, 15), 2, base_url=BASE_URL)
    assert _times(result) == ["18:00", "11:30"]


def test_window_boundaries():
    labels = ["10:59", "11:00", "14:59", "15:00", "23:30"]
    lunch = extract(labels, TimeWindow.LUNCH, date(2025, 6, 15), 2, base_url=BASE_URL)
    dinner = extract(labels, TimeWindow.DINNER, date(2025, 6, 15), 2, base_url=BASE_URL)

    assert _times(lunch) == ["11:00", "14:59"]
    assert _times(dinner) == ["15:00", "23:30"]


def test_empty_partition_is_not_an_error():
    result = extract(["11:30", "12:00"], "dinner", date(2025, 6, 15), 2, base_url=BASE_URL)

    assert result.available is False
    assert result.slots == ()
    assert result.error is None


def test_no_labels():
    result = extract([], "any", date(2025, 6, 15), 2, base_url=BASE_URL)
    assert result.available is False


def test_non_time_labels_never_match_lunch_or_dinner():
    result = extract(["Full", "18:15"], "dinner", date(2025, 6, 15), 2, base_url=BASE_URL)
    assert _times(result) == ["18:15"]


def test_extract_is_idempotent():
    first = extract(LABELS, "any", date(2025, 6, 15), 4, base_url=BASE_URL)
    second = extract(LABELS, "any", date(2025, 6, 15), 4, base_url=BASE_URL)

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_booking_links_carry_request_parameters():
    result = extract(["18:30"], "dinner", date(2025, 6, 15), 3, base_url=BASE_URL)
    link = result.slots[0].booking_link

    query = parse_qs(urlsplit(link).query)
    assert link.startswith("https://booking.example.com/en-usd?")
    assert query == {
        "id": ["P2TR02"],
        "date": ["2025-06-15"],
        "time": ["18:30"],
        "guests": ["3"],
    }


def test_build_booking_link_keeps_colon_readable():
    link = build_booking_link(BASE_URL, date(2025, 6, 15), "18:30", 2)
    assert link == (
        "https://booking.example.com/en-usd?id=P2TR02&date=2025-06-15&time=18:30&guests=2"
    )


def test_parse_hour():
    assert parse_hour("09:15") == 9
    assert parse_hour("18:30") == 18
    assert parse_hour("noon") is None
