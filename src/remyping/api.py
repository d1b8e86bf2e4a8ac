"""HTTP job-control surface over the scheduler, checker and session.

Routes:
  GET  /api/scheduler/jobs     list jobs
  POST /api/scheduler/add      {date, timeSlot, numberOfGuests?}
  POST /api/scheduler/remove   {jobId}
  POST /api/check              {date, timeSlot?, guests?} one-off check, no alert
  POST /api/login/start        open the login browser
  GET  /api/login/check        is the browser logged in?
  POST /api/login/close        close the login browser

Failures come back as {"success": false, "error": "<reason>"}.
"""

import re
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.remyping.checker import AvailabilityChecker
from src.remyping.config import MonitorConfig, get_config
from src.remyping.errors import ScrapingError, SessionUnavailableError
from src.remyping.logging import get_logger, setup_logging
from src.remyping.models import MonitorJob
from src.remyping.notifier import Dispatcher, DiscordDispatcher, NotifierGate
from src.remyping.scheduler import JobScheduler
from src.remyping.session import SessionManager

logger = get_logger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class AddJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str | None = None
    time_slot: str | None = Field(None, alias="timeSlot")
    number_of_guests: int | None = Field(None, alias="numberOfGuests")


class RemoveJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str | None = Field(None, alias="jobId")


class CheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str | None = None
    time_slot: str | None = Field(None, alias="timeSlot")
    guests: int | None = None


def _error(message: str, status_code: int = 400, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code)


def _parse_date(value: str | None) -> date:
    """Validate a YYYY-MM-DD string. Raises ValueError with a readable reason."""
    if not value:
        raise ValueError("date is required")
    if not _DATE_RE.match(value):
        raise ValueError("date must be in YYYY-MM-DD format")
    return date.fromisoformat(value)


def job_view(job: MonitorJob) -> dict[str, Any]:
    return {
        "id": job.id,
        "date": job.target_date.isoformat(),
        "timeSlot": job.time_window.value,
        "numberOfGuests": job.party_size,
        "interval": job.poll_interval.total_seconds() / 60,
        "lastChecked": job.last_checked.isoformat(),
        "enabled": job.enabled,
        "notificationSent": job.notified,
        "checkCount": job.check_count,
        "lastError": job.last_error,
    }


def create_app(
    config: MonitorConfig | None = None,
    *,
    session: SessionManager | None = None,
    checker: AvailabilityChecker | None = None,
    dispatcher: Dispatcher | None = None,
) -> FastAPI:
    """Wire session, checker, gate and scheduler into a FastAPI app."""
    config = config or get_config()
    session = session or SessionManager(config)
    checker = checker or AvailabilityChecker(session, config)
    dispatcher = dispatcher or DiscordDispatcher(config.discord_webhook_url)
    scheduler = JobScheduler(checker, NotifierGate(dispatcher), config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(json_output=config.log_json, log_level=config.log_level)
        if config.enable_scheduler:
            scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()
            await session.close()

    app = FastAPI(title="RemyPing", lifespan=lifespan)
    app.state.config = config
    app.state.session = session
    app.state.checker = checker
    app.state.scheduler = scheduler

    # --- Scheduler ---

    @app.get("/api/scheduler/jobs")
    async def list_jobs(request: Request) -> dict[str, Any]:
        jobs = request.app.state.scheduler.list_jobs()
        return {"jobs": [job_view(job) for job in jobs]}

    @app.post("/api/scheduler/add")
    async def add_job(body: AddJobRequest, request: Request):
        if not body.date or not body.time_slot:
            return _error("date and timeSlot are required")
        try:
            target_date = _parse_date(body.date)
            job_id = request.app.state.scheduler.add_job(
                target_date, body.time_slot, body.number_of_guests
            )
        except ValueError as e:
            return _error(str(e))
        return {"success": True, "jobId": job_id}

    @app.post("/api/scheduler/remove")
    async def remove_job(body: RemoveJobRequest, request: Request):
        if not body.job_id:
            return _error("jobId is required")
        removed = request.app.state.scheduler.remove_job(body.job_id)
        if not removed:
            return {"success": False, "error": f"No job with id {body.job_id}"}
        return {"success": True}

    # --- One-off check ---

    @app.post("/api/check")
    async def check_now(body: CheckRequest, request: Request):
        try:
            target_date = _parse_date(body.date)
        except ValueError as e:
            return _error(str(e))

        time_slot = body.time_slot or "dinner"
        guests = body.guests
        if guests is None:
            guests = request.app.state.config.default_party_size
        elif guests < 1:
            return _error("guests must be at least 1")
        try:
            result = await request.app.state.checker.check(target_date, time_slot, guests)
        except SessionUnavailableError as e:
            return _error(str(e))
        except ScrapingError as e:
            return {"success": False, "available": False, "slots": [], "error": str(e)}
        except Exception as e:
            logger.error("check_now_failed", error=str(e), error_type=type(e).__name__)
            return _error(str(e), status_code=500, available=False, slots=[])
        return {"success": True, **result.model_dump(mode="json")}

    # --- Login browser ---

    @app.post("/api/login/start")
    async def login_start(request: Request):
        try:
            await request.app.state.session.start()
        except Exception as e:
            logger.error("login_browser_start_failed", error=str(e))
            return _error(str(e), status_code=500)
        return {"success": True, "message": "Login browser started. Log in, then check."}

    @app.get("/api/login/check")
    async def login_check(request: Request):
        session = request.app.state.session
        if not session.is_active:
            return {"loggedIn": False, "error": "Login browser is not running."}
        try:
            logged_in = await session.verify_login()
        except Exception as e:
            logger.error("login_check_failed", error=str(e))
            return JSONResponse({"loggedIn": False, "error": str(e)}, status_code=500)
        return {"loggedIn": logged_in}

    @app.post("/api/login/close")
    async def login_close(request: Request):
        try:
            await request.app.state.session.close()
        except Exception as e:
            logger.error("login_browser_close_failed", error=str(e))
            return _error(str(e), status_code=500)
        return {"success": True, "message": "Login browser closed."}

    return app
