"""RemyPing - watches a restaurant booking widget for newly opened slots.

Drives one manually logged-in browser session through the booking steps,
extracts open time slots for a date / time window / party size, and sends a
single Discord alert per monitoring job when slots appear.
"""

from src.remyping.checker import AvailabilityChecker
from src.remyping.extractor import extract
from src.remyping.models import AvailabilityResult, MonitorJob, Slot, TimeWindow
from src.remyping.notifier import DiscordDispatcher, NotifierGate
from src.remyping.pages.reservation import ReservationNavigator
from src.remyping.scheduler import JobScheduler

__all__ = [
    "AvailabilityChecker",
    "AvailabilityResult",
    "DiscordDispatcher",
    "JobScheduler",
    "MonitorJob",
    "NotifierGate",
    "ReservationNavigator",
    "Slot",
    "TimeWindow",
    "extract",
]
