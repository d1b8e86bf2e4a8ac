"""JobScheduler - owns the monitoring jobs and drives periodic checks.

Jobs live in memory only and are processed sequentially in insertion
order. A tick checks each eligible job (enabled, not notified, poll
interval elapsed), stamps last_checked before the check starts, hands the
result to the notifier gate, and marks the job notified when the alert was
delivered. A failing job is recorded and logged; the tick moves on.

Ticks never overlap: APScheduler runs the tick job with max_instances=1 and
run_tick() itself refuses to start while another tick holds the lock.
"""

import asyncio
import uuid
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.remyping.checker import AvailabilityChecker
from src.remyping.config import MonitorConfig, get_config
from src.remyping.logging import get_logger, job_context
from src.remyping.models import MonitorJob, NotificationOutcome, TimeWindow
from src.remyping.notifier import NotifierGate

log = get_logger(__name__)

TICK_JOB_ID = "availability_tick"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_job_id(now: datetime) -> str:
    return f"job_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:7]}"


class JobScheduler:
    """Single owner of the job set and of the tick cadence."""

    def __init__(
        self,
        checker: AvailabilityChecker,
        gate: NotifierGate,
        config: MonitorConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.checker = checker
        self.gate = gate
        self.config = config or get_config()
        self.clock = clock
        self._jobs: dict[str, MonitorJob] = {}
        self._tick_lock = asyncio.Lock()
        self._scheduler: AsyncIOScheduler | None = None

    # --- Job set ---

    def add_job(
        self,
        target_date: date | str,
        time_window: TimeWindow | str,
        party_size: int | None = None,
        *,
        poll_interval: timedelta | None = None,
    ) -> str:
        """Register a job; its first check runs on the next tick.

        Args:
            target_date: Reservation date (date or YYYY-MM-DD).
            time_window: lunch, dinner or any (unrecognised values mean any).
            party_size: Guests; defaults to the configured default party size.
            poll_interval: Minimum time between checks; defaults to the tick interval.

        Returns:
            The new job id.

        Raises:
            ValueError: Invalid date, party size, or a poll interval below the minimum.
        """
        if isinstance(target_date, str):
            target_date = date.fromisoformat(target_date)
        if party_size is None:
            party_size = self.config.default_party_size
        if party_size < 1:
            raise ValueError(f"Party size must be positive, got {party_size}")
        if poll_interval is None:
            poll_interval = timedelta(minutes=self.config.tick_interval_min)
        minimum = timedelta(minutes=self.config.min_poll_interval_min)
        if poll_interval < minimum:
            raise ValueError(f"Poll interval {poll_interval} is below the minimum {minimum}")

        job_id = _new_job_id(self.clock())
        while job_id in self._jobs:
            job_id = _new_job_id(self.clock())

        job = MonitorJob(
            id=job_id,
            target_date=target_date,
            time_window=time_window,
            party_size=party_size,
            poll_interval=poll_interval,
        )
        self._jobs[job_id] = job
        log.info(
            "job_added",
            job_id=job_id,
            date=job.target_date.isoformat(),
            window=job.time_window.value,
            party_size=party_size,
            interval_min=poll_interval.total_seconds() / 60,
        )
        return job_id

    def remove_job(self, job_id: str) -> bool:
        """Remove a job. Returns False when the id is unknown."""
        if self._jobs.pop(job_id, None) is None:
            return False
        log.info("job_removed", job_id=job_id)
        return True

    def get_job(self, job_id: str) -> MonitorJob | None:
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[MonitorJob]:
        return list(self._jobs.values())

    # --- Ticks ---

    async def run_tick(self) -> int:
        """Check every eligible job once, in insertion order.

        Returns:
            Number of jobs checked (0 if another tick was still running).
        """
        if self._tick_lock.locked():
            log.warning("tick_skipped", reason="tick_in_progress")
            return 0

        async with self._tick_lock:
            jobs = self.list_jobs()
            log.info("tick_started", jobs=len(jobs))
            checked = 0
            for job in jobs:
                # Removed while an earlier job was being checked
                if job.id not in self._jobs:
                    continue
                now = self.clock()
                if not job.is_eligible(now):
                    continue
                job.last_checked = now
                job.check_count += 1
                checked += 1
                await self._check_job(job)
            return checked

    async def _check_job(self, job: MonitorJob) -> None:
        with job_context(job.id, date=job.target_date.isoformat()):
            await self._run_check(job)

    async def _run_check(self, job: MonitorJob) -> None:
        log.info("job_check_started", window=job.time_window.value, party_size=job.party_size)
        try:
            result = await self.checker.check(
                job.target_date, job.time_window, job.party_size
            )
            outcome = await self.gate.maybe_notify(job, result)
        except Exception as e:
            job.last_error = f"{type(e).__name__}: {e}"
            log.error(
                "job_check_failed",
                step=getattr(e, "step", None),
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        job.last_error = None
        if outcome is NotificationOutcome.SENT:
            job.mark_notified()
            log.info("job_notified", slots=len(result.slots))
        elif outcome is NotificationOutcome.FAILED:
            log.warning("job_notification_pending")

    # --- Cadence ---

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Start periodic ticks, firing the first one immediately.

        Must be called from a running event loop. Calling it twice is a no-op.
        """
        if self._scheduler is not None:
            return

        interval = self.config.tick_interval_min
        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        scheduler.add_job(
            self.run_tick,
            "interval",
            minutes=interval,
            id=TICK_JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=_utcnow(),
        )
        scheduler.start()
        self._scheduler = scheduler
        log.info("scheduler_started", interval_min=interval)

    def stop(self) -> None:
        """Stop periodic ticks. Calling it when stopped is a no-op."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        log.info("scheduler_stopped")
