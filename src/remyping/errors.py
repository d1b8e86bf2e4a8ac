"""Error hierarchy for availability checks and notification dispatch.

Errors split into transient failures (a later attempt may succeed) and
permanent failures (the same step will fail again against the same page).
tenacity decorators use that split to decide what to retry:

    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    async def open_booking_page(self) -> None:
        ...

The scheduler never retries in-process; the per-job poll interval is the
retry mechanism for everything raised here.
"""


class ScrapingError(Exception):
    """Base exception for all monitoring errors."""

    pass


class TransientError(ScrapingError):
    """Temporary failure that may succeed on a later attempt.

    Examples: page-load timeouts, webhook 5xx, slow calendar rendering.
    """

    pass


class PermanentError(ScrapingError):
    """Failure that won't succeed by repeating the same step right away."""

    pass


class AuthenticationError(PermanentError):
    """Session missing or logged out - needs a human to log in again."""

    pass


class SessionUnavailableError(AuthenticationError):
    """No active browsing session when a check was attempted."""

    pass


class NavigationError(PermanentError):
    """A navigation step could not reach its expected UI state.

    Attributes:
        step: Which step failed (month, day, confirm, party_size, continue, time_slots).
    """

    step = "navigation"

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        if step is not None:
            self.step = step


class CalendarNavigationError(NavigationError):
    """Target month is not displayed and is more than one month ahead."""

    step = "month"


class DaySelectionError(NavigationError):
    """No enabled day cell matches the target day-of-month."""

    step = "day"


class PartySizeUnavailableError(NavigationError):
    """No party-size option matches the requested number of guests."""

    step = "party_size"


class ContinueControlNotFoundError(NavigationError):
    """Neither the primary nor the fallback continue lookup found a control."""

    step = "continue"


class StepTimeoutError(TransientError):
    """A bounded wait expired before the expected element became visible."""

    def __init__(self, step: str, selector: str, timeout_ms: int) -> None:
        super().__init__(
            f"Timed out after {timeout_ms}ms waiting for {selector!r} ({step} step)"
        )
        self.step = step
        self.selector = selector
        self.timeout_ms = timeout_ms


class DispatchFailure(TransientError):
    """Notification could not be delivered (missing webhook, network, non-2xx)."""

    pass
