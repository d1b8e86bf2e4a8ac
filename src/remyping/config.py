"""Monitor configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class MonitorConfig(BaseSettings):
    """Monitor configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Target site
    booking_url: str = Field(
        default="https://bookrestaurants.disneylandparis.com/en-usd?id=P2TR02",
        description="Reservation page opened before every check",
    )

    # Scheduling
    check_interval_min: int = Field(
        default=5,
        description="Scheduler tick interval and default per-job poll interval (minutes)",
    )
    min_poll_interval_min: int = Field(
        default=1,
        ge=1,
        description="Lowest per-job poll interval accepted when adding a job (minutes)",
    )
    default_party_size: int = Field(
        default=2,
        ge=1,
        description="Party size used when a request omits it",
    )
    enable_scheduler: bool = Field(
        default=False,
        description="Start the periodic scheduler together with the HTTP app",
    )

    # Notifications
    discord_webhook_url: str = Field(
        default="",
        description="Discord webhook receiving availability alerts",
    )

    # Browser session
    headless: bool = Field(
        default=False,
        description="Launch the login browser headless (login is manual, so usually False)",
    )
    state_dir: str = Field(
        default="data/state",
        description="Directory for Playwright session state",
    )
    max_session_age_hours: int = Field(
        default=24,
        description="Maximum age of saved session state before it is ignored",
    )
    screenshot_dir: str = Field(
        default="screenshots",
        description="Where failure screenshots are written (empty disables)",
    )

    # Bounded waits (milliseconds)
    page_load_timeout_ms: int = 30000
    login_check_timeout_ms: int = 15000
    caption_timeout_ms: int = 10000
    next_month_timeout_ms: int = 5000
    confirm_timeout_ms: int = 10000
    party_size_timeout_ms: int = 10000
    continue_timeout_ms: int = 10000
    time_slot_timeout_ms: int = 15000

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def tick_interval_min(self) -> int:
        """Tick interval, never below one minute."""
        return max(1, self.check_interval_min)


# Singleton pattern
_config: MonitorConfig | None = None


def get_config() -> MonitorConfig:
    """Get the monitor configuration singleton.

    Returns:
        MonitorConfig: Monitor configuration instance
    """
    global _config
    if _config is None:
        _config = MonitorConfig()
    return _config
