"""Availability alerts: the once-per-job gate and the Discord webhook dispatcher.

The gate never deduplicates on its own. At-most-once delivery comes from
the scheduler skipping notified jobs; the gate only decides whether a
result is worth sending and reports how the send went.
"""

import asyncio
from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Protocol

import requests

from src.remyping.errors import DispatchFailure
from src.remyping.logging import get_logger
from src.remyping.models import (
    AvailabilityResult,
    MonitorJob,
    NotificationOutcome,
    Slot,
    TimeWindow,
)

log = get_logger(__name__)

EMBED_COLOR = 0x00AAFF
RESTAURANT_NAME = "Bistrot Chez Rémy"


class Dispatcher(Protocol):
    async def send(
        self,
        target_date: date,
        time_window: TimeWindow,
        party_size: int,
        slots: Sequence[Slot],
    ) -> bool: ...


def _format_date(value: date) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


class DiscordDispatcher:
    """Posts an embed to a Discord webhook."""

    def __init__(self, webhook_url: str, *, timeout: float = 20) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout

    def build_payload(
        self,
        target_date: date,
        time_window: TimeWindow,
        party_size: int,
        slots: Sequence[Slot],
    ) -> dict:
        formatted_date = _format_date(target_date)
        window = time_window.value.capitalize()
        embed = {
            "title": (
                f"🍽️ [RemyPing] Available: {formatted_date} {window} "
                f"({party_size} guests)"
            ),
            "description": f"{RESTAURANT_NAME} has open reservation times!",
            "color": EMBED_COLOR,
            "fields": [
                {"name": "📅 Date", "value": formatted_date, "inline": True},
                {"name": "🕒 Time window", "value": window, "inline": True},
                {"name": "👥 Guests", "value": str(party_size), "inline": True},
                {
                    "name": "⏰ Available times",
                    "value": ", ".join(slot.time for slot in slots),
                },
            ],
            "footer": {"text": "RemyPing alerts"},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if slots and slots[0].booking_link:
            embed["url"] = slots[0].booking_link
        return {"embeds": [embed]}

    def _post(self, payload: dict) -> None:
        if not self.webhook_url:
            raise DispatchFailure("Discord webhook URL is not configured")
        try:
            resp = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise DispatchFailure(f"Discord webhook error: {e}") from e

    async def send(
        self,
        target_date: date,
        time_window: TimeWindow,
        party_size: int,
        slots: Sequence[Slot],
    ) -> bool:
        """Send the alert. Returns False instead of raising on any dispatch failure."""
        if not slots:
            log.info("notification_skipped", reason="no_slots")
            return False

        payload = self.build_payload(target_date, time_window, party_size, slots)
        try:
            await asyncio.to_thread(self._post, payload)
        except DispatchFailure as e:
            log.error("notification_failed", date=target_date.isoformat(), error=str(e))
            return False

        log.info(
            "notification_sent",
            date=target_date.isoformat(),
            window=time_window.value,
            slots=len(slots),
        )
        return True


class NotifierGate:
    """Decides whether a check result triggers an alert for a job."""

    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    async def maybe_notify(
        self, job: MonitorJob, result: AvailabilityResult
    ) -> NotificationOutcome:
        """Dispatch an alert when the result has slots.

        Returns:
            SKIPPED when nothing is available, SENT on delivery, FAILED when
            the dispatcher reports failure. The caller marks the job notified
            on SENT only, so FAILED is retried on the next eligible tick.
        """
        if not result.available or not result.slots:
            return NotificationOutcome.SKIPPED

        try:
            delivered = await self.dispatcher.send(
                job.target_date, job.time_window, job.party_size, result.slots
            )
        except DispatchFailure as e:
            log.error("notification_failed", job_id=job.id, error=str(e))
            delivered = False

        return NotificationOutcome.SENT if delivered else NotificationOutcome.FAILED
