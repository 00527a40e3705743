"""APScheduler wrapper triggering unattended pipeline runs."""

from __future__ import annotations

from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig, ScheduleType

RUN_JOB_ID = "promo-crawler::run"


class APSchedulerAdapter:
    """Own a ``BackgroundScheduler`` holding the single periodic run job."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.logger = structlog.get_logger("promo_crawler").bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_run(self, schedule: ScheduleConfig, callback: Callable[[], object]) -> None:
        trigger = self.build_trigger(schedule)
        # one run at a time; a late tick is merged rather than stacked
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=RUN_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", schedule=schedule.model_dump(mode="json"))

    @staticmethod
    def build_trigger(schedule: ScheduleConfig):
        if schedule.type is ScheduleType.CRON:
            return CronTrigger.from_crontab(str(schedule.value), timezone="UTC")
        if schedule.type is ScheduleType.INTERVAL:
            if isinstance(schedule.value, (int, float)):
                return IntervalTrigger(seconds=float(schedule.value))
            if isinstance(schedule.value, dict):
                return IntervalTrigger(**schedule.value)
            raise ValueError("Interval schedule requires seconds or kwargs dict")
        raise ValueError(f"Unknown schedule type: {schedule.type}")

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "RUN_JOB_ID"]
