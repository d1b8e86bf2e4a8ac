import asyncio
import random
from datetime import date, timedelta

import pytest

from src.remyping.errors import DaySelectionError, SessionUnavailableError
from src.remyping.models import EPOCH, AvailabilityResult, Slot, TimeWindow
from src.remyping.notifier import NotifierGate
from src.remyping.scheduler import JobScheduler
from tests.fakes import FakeChecker, FakeClock, FakeDispatcher

AVAILABLE = AvailabilityResult(
    available=True,
    slots=(Slot(time="18:30", booking_link="https://booking.example.com/?time=18:30"),),
)
UNAVAILABLE = AvailabilityResult(available=False)


def make_scheduler(config, checker, dispatcher=None, clock=None):
    dispatcher = dispatcher or FakeDispatcher(True)
    clock = clock or FakeClock()
    return JobScheduler(checker, NotifierGate(dispatcher), config, clock=clock), dispatcher, clock


def test_add_job_defaults(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    job_id = scheduler.add_job("2025-06-15", "dinner")
    job = scheduler.get_job(job_id)

    assert job_id.startswith("job_")
    assert job.target_date == date(2025, 6, 15)
    assert job.time_window is TimeWindow.DINNER
    assert job.party_size == 2
    assert job.poll_interval == timedelta(minutes=5)
    assert job.last_checked == EPOCH
    assert job.enabled is True
    assert job.notified is False


def test_job_ids_are_unique(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    ids = {scheduler.add_job(date(2025, 6, 15), "lunch") for _ in range(50)}
    assert len(ids) == 50


def test_unknown_window_means_any(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    job_id = scheduler.add_job(date(2025, 6, 15), "brunch")
    assert scheduler.get_job(job_id).time_window is TimeWindow.ANY


@pytest.mark.parametrize("party_size", [0, -3])
def test_add_job_rejects_non_positive_party_size(config, party_size):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    with pytest.raises(ValueError):
        scheduler.add_job(date(2025, 6, 15), "dinner", party_size)
    assert scheduler.list_jobs() == []


def test_add_job_rejects_poll_interval_below_minimum(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    with pytest.raises(ValueError):
        scheduler.add_job(date(2025, 6, 15), "dinner", poll_interval=timedelta(seconds=30))


def test_add_job_rejects_bad_date(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    with pytest.raises(ValueError):
        scheduler.add_job("2025-13-40", "dinner")


def test_remove_job(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    keep = scheduler.add_job(date(2025, 6, 15), "dinner")
    drop = scheduler.add_job(date(2025, 6, 16), "lunch")

    assert scheduler.remove_job("job_missing") is False
    assert [job.id for job in scheduler.list_jobs()] == [keep, drop]

    assert scheduler.remove_job(drop) is True
    assert [job.id for job in scheduler.list_jobs()] == [keep]
    assert scheduler.remove_job(drop) is False


async def test_end_to_end_single_notification(config):
    checker = FakeChecker(AVAILABLE)
    scheduler, dispatcher, clock = make_scheduler(config, checker)
    job_id = scheduler.add_job("2025-06-15", "dinner", 2)

    assert await scheduler.run_tick() == 1
    job = scheduler.get_job(job_id)
    assert job.notified is True
    assert len(dispatcher.sent) == 1
    assert dispatcher.sent[0][3][0].time == "18:30"

    clock.advance(minutes=10)
    assert await scheduler.run_tick() == 0
    assert len(dispatcher.sent) == 1
    assert len(checker.calls) == 1


async def test_no_check_before_poll_interval(config):
    checker = FakeChecker(UNAVAILABLE)
    scheduler, _, clock = make_scheduler(config, checker)
    scheduler.add_job(date(2025, 6, 15), "dinner")

    await scheduler.run_tick()
    for _ in range(4):
        clock.advance(minutes=1)
        await scheduler.run_tick()
    assert len(checker.calls) == 1

    clock.advance(minutes=1)
    await scheduler.run_tick()
    assert len(checker.calls) == 2


async def test_disabled_jobs_are_not_checked(config):
    checker = FakeChecker(UNAVAILABLE)
    scheduler, _, _ = make_scheduler(config, checker)
    job_id = scheduler.add_job(date(2025, 6, 15), "dinner")
    scheduler.get_job(job_id).enabled = False

    assert await scheduler.run_tick() == 0
    assert checker.calls == []


async def test_failing_job_does_not_stop_the_tick(config):
    checker = FakeChecker(DaySelectionError("Day 15 is not selectable"), AVAILABLE)
    scheduler, dispatcher, clock = make_scheduler(config, checker)
    bad = scheduler.add_job(date(2025, 6, 15), "dinner")
    good = scheduler.add_job(date(2025, 6, 16), "dinner")

    assert await scheduler.run_tick() == 2

    bad_job = scheduler.get_job(bad)
    assert bad_job.notified is False
    assert bad_job.last_checked == clock.now
    assert "DaySelectionError" in bad_job.last_error
    assert scheduler.get_job(good).notified is True
    assert len(dispatcher.sent) == 1


async def test_session_unavailable_is_recorded_per_job(config):
    checker = FakeChecker(SessionUnavailableError("Login browser is not running"))
    scheduler, dispatcher, _ = make_scheduler(config, checker)
    first = scheduler.add_job(date(2025, 6, 15), "dinner")
    second = scheduler.add_job(date(2025, 6, 16), "dinner")

    assert await scheduler.run_tick() == 2
    for job_id in (first, second):
        assert "SessionUnavailableError" in scheduler.get_job(job_id).last_error
    assert dispatcher.sent == []


async def test_dispatch_failure_retries_on_next_eligible_tick(config):
    checker = FakeChecker(AVAILABLE)
    scheduler, dispatcher, clock = make_scheduler(
        config, checker, dispatcher=FakeDispatcher(False, True)
    )
    job_id = scheduler.add_job(date(2025, 6, 15), "dinner")

    await scheduler.run_tick()
    assert scheduler.get_job(job_id).notified is False
    assert len(dispatcher.sent) == 1

    # Not yet eligible again
    clock.advance(minutes=2)
    await scheduler.run_tick()
    assert len(dispatcher.sent) == 1

    clock.advance(minutes=3)
    await scheduler.run_tick()
    assert scheduler.get_job(job_id).notified is True
    assert len(dispatcher.sent) == 2


async def test_last_checked_is_stamped_before_the_check(config):
    clock = FakeClock()
    stamps = []

    class RecordingChecker(FakeChecker):
        async def check(self, target_date, time_window, party_size):
            stamps.append(scheduler.get_job(job_id).last_checked)
            return await super().check(target_date, time_window, party_size)

    scheduler, _, _ = make_scheduler(config, RecordingChecker(UNAVAILABLE), clock=clock)
    job_id = scheduler.add_job(date(2025, 6, 15), "dinner")
    await scheduler.run_tick()

    assert stamps == [clock.now]


async def test_overlapping_tick_is_skipped(config):
    release = asyncio.Event()

    class BlockingChecker(FakeChecker):
        async def check(self, target_date, time_window, party_size):
            await release.wait()
            return await super().check(target_date, time_window, party_size)

    checker = BlockingChecker(UNAVAILABLE)
    scheduler, _, _ = make_scheduler(config, checker)
    scheduler.add_job(date(2025, 6, 15), "dinner")

    first = asyncio.create_task(scheduler.run_tick())
    await asyncio.sleep(0)
    assert await scheduler.run_tick() == 0

    release.set()
    assert await first == 1
    assert len(checker.calls) == 1


async def test_job_removed_mid_tick_is_not_checked(config):
    class RemovingChecker(FakeChecker):
        async def check(self, target_date, time_window, party_size):
            scheduler.remove_job(second)
            return await super().check(target_date, time_window, party_size)

    checker = RemovingChecker(UNAVAILABLE)
    scheduler, _, _ = make_scheduler(config, checker)
    scheduler.add_job(date(2025, 6, 15), "dinner")
    second = scheduler.add_job(date(2025, 6, 16), "dinner")

    assert await scheduler.run_tick() == 1
    assert len(checker.calls) == 1


def test_notified_never_reverts(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))
    job = scheduler.get_job(scheduler.add_job(date(2025, 6, 15), "dinner"))
    job.mark_notified()

    with pytest.raises(ValueError):
        job.notified = False
    assert job.notified is True


@pytest.mark.parametrize("seed", range(20))
async def test_random_tick_sequences_keep_invariants(config, seed):
    rng = random.Random(seed)
    outcomes = [
        rng.choice([AVAILABLE, UNAVAILABLE, DaySelectionError("closed")]) for _ in range(200)
    ]
    checker = FakeChecker(*outcomes, UNAVAILABLE)
    dispatcher = FakeDispatcher(*[rng.random() < 0.7 for _ in range(200)], True)
    scheduler, _, clock = make_scheduler(config, checker, dispatcher=dispatcher)

    job_ids = [
        scheduler.add_job(
            date(2025, 6, 15) + timedelta(days=i),
            rng.choice(["lunch", "dinner", "any"]),
            poll_interval=timedelta(minutes=rng.randint(1, 10)),
        )
        for i in range(4)
    ]
    notified_seen: set[str] = set()

    for _ in range(60):
        clock.advance(seconds=rng.randint(0, 400))
        before = {job.id: job.last_checked for job in scheduler.list_jobs()}
        calls_before = len(checker.calls)

        await scheduler.run_tick()

        for job in scheduler.list_jobs():
            if job.last_checked != before[job.id]:
                # Only checked when the interval had elapsed
                assert clock.now - before[job.id] >= job.poll_interval
            if job.id in notified_seen:
                assert job.notified is True
            if job.notified:
                notified_seen.add(job.id)

        checked = sum(
            1 for job in scheduler.list_jobs() if job.last_checked != before[job.id]
        )
        assert len(checker.calls) - calls_before == checked

    # At most one successful alert per job
    for job_id in job_ids:
        job = scheduler.get_job(job_id)
        delivered = [
            ok
            for (sent_date, *_), ok in zip(dispatcher.sent, dispatcher.results)
            if sent_date == job.target_date and ok
        ]
        assert len(delivered) == (1 if job.notified else 0)


async def test_start_and_stop_are_idempotent(config):
    scheduler, _, _ = make_scheduler(config, FakeChecker(UNAVAILABLE))

    scheduler.start()
    scheduler.start()
    assert scheduler.is_running is True

    scheduler.stop()
    scheduler.stop()
    assert scheduler.is_running is False
