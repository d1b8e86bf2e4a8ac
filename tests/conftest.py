import pytest

from src.remyping.config import MonitorConfig


@pytest.fixture
def config(tmp_path) -> MonitorConfig:
    return MonitorConfig(
        _env_file=None,
        booking_url="https://booking.example.com/en-usd?id=P2TR02",
        check_interval_min=5,
        min_poll_interval_min=1,
        default_party_size=2,
        discord_webhook_url="",
        state_dir=str(tmp_path / "state"),
        screenshot_dir=str(tmp_path / "screenshots"),
    )
