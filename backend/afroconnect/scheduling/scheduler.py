"""Background job scheduler.

Wraps APScheduler's asyncio scheduler and registers the four recurring jobs.
Every run gets its own database session; a failing run is logged, rolled
back and recorded, and the next tick proceeds normally. Ticks never overlap:
each job allows a single running instance and coalesces missed runs.
"""

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime

from apscheduler.events import EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..consultations.jobs import send_consultation_reminders
from ..database.base import SessionLocal
from ..documents.jobs import send_document_expiry_reminders
from ..messaging.jobs import dispatch_scheduled_messages
from ..spotlight.jobs import rotate_spotlight
from ..timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class JobRun:
    started_at: datetime
    finished_at: datetime | None = None
    ok: bool = False
    result: int | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "ok": self.ok,
            "result": self.result,
            "error": self.error,
        }


@dataclass
class JobDefinition:
    job_id: str
    name: str
    cron: str
    func: object
    kwargs: dict = field(default_factory=dict)


class JobScheduler:
    """Owns the APScheduler instance and the registry of recurring jobs."""

    def __init__(self, relay=None, cache=None, session_factory=None, timezone: str | None = None) -> None:
        self._session_factory = session_factory or SessionLocal
        self._scheduler = AsyncIOScheduler(timezone=timezone or settings.scheduler_timezone)
        self._scheduler.add_listener(self._on_skipped, EVENT_JOB_MAX_INSTANCES | EVENT_JOB_MISSED)
        self.last_runs: dict[str, JobRun] = {}
        self.jobs: dict[str, JobDefinition] = {
            definition.job_id: definition
            for definition in (
                JobDefinition(
                    "document_expiry",
                    "Document expiry reminders",
                    settings.document_expiry_cron,
                    send_document_expiry_reminders,
                ),
                JobDefinition(
                    "scheduled_messages",
                    "Scheduled message dispatch",
                    settings.scheduled_message_cron,
                    dispatch_scheduled_messages,
                    {"relay": relay},
                ),
                JobDefinition(
                    "spotlight_rotation",
                    "Daily spotlight rotation",
                    settings.spotlight_rotation_cron,
                    rotate_spotlight,
                    {"cache": cache},
                ),
                JobDefinition(
                    "consultation_reminders",
                    "Consultation reminders",
                    settings.consultation_reminder_cron,
                    send_consultation_reminders,
                ),
            )
        }

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def _on_skipped(self, event) -> None:
        logger.warning("Job %s tick skipped (previous run still active or missed)", event.job_id)

    def start(self) -> None:
        for definition in self.jobs.values():
            self._scheduler.add_job(
                self.run_job,
                CronTrigger.from_crontab(definition.cron, timezone=self._scheduler.timezone),
                args=[definition.job_id],
                id=definition.job_id,
                name=definition.name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=60,
                replace_existing=True,
            )
        self._scheduler.start()
        logger.info("Scheduler started with %d jobs", len(self.jobs))

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    async def run_job(self, job_id: str) -> JobRun:
        """Run one job to completion with its own session.

        Errors are contained here so the scheduler keeps ticking.
        """
        definition = self.jobs.get(job_id)
        if definition is None:
            raise KeyError(job_id)

        run = JobRun(started_at=utcnow())
        db = self._session_factory()
        try:
            if inspect.iscoroutinefunction(definition.func):
                result = await definition.func(db, **definition.kwargs)
            else:
                result = await run_in_threadpool(definition.func, db, **definition.kwargs)
            db.commit()
            run.ok = True
            run.result = result
            logger.info("Job %s finished: %s", job_id, result)
        except Exception as exc:
            db.rollback()
            run.error = str(exc)
            logger.exception("Job %s failed", job_id)
        finally:
            db.close()
            run.finished_at = utcnow()
            self.last_runs[job_id] = run
        return run

    def get_status(self) -> list[dict]:
        status = []
        for definition in self.jobs.values():
            job = self._scheduler.get_job(definition.job_id) if self._scheduler.running else None
            next_run = getattr(job, "next_run_time", None)
            last = self.last_runs.get(definition.job_id)
            status.append(
                {
                    "id": definition.job_id,
                    "name": definition.name,
                    "cron": definition.cron,
                    "nextRunTime": next_run.isoformat() if next_run else None,
                    "lastRun": last.as_dict() if last else None,
                }
            )
        return status
