"""Scrape job bookkeeping: one running record per run, finalized exactly once."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Callable

import structlog

from ..errors import PersistenceError
from ..infra.base import JobStore
from ..models import JobError, JobStatus, utcnow


class JobTracker:
    """Wrap a ``JobStore`` for the lifetime of a single run.

    If the job row cannot be created the run still proceeds; ``job_id`` is
    then ``None`` and every store call becomes a no-op. Errors are collected
    in memory and written once, on finalization.
    """

    def __init__(
        self,
        store: JobStore,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.logger = logger or structlog.get_logger("promo_crawler.jobs")
        self.job_id: int | None = None
        self.status: JobStatus | None = None
        self.errors: list[JobError] = []
        self._lock = Lock()

    def start(self) -> int | None:
        if self.status is not None:
            raise RuntimeError("job already started")
        self.status = JobStatus.RUNNING
        try:
            self.job_id = self.store.create(self.clock())
        except PersistenceError as exc:
            self.logger.error("job_create_failed", error=str(exc))
            self.job_id = None
        self.logger.info("job_started", job_id=self.job_id)
        return self.job_id

    def record_error(self, url: str, error: str) -> None:
        with self._lock:
            self.errors.append(JobError(url=url, error=error))

    def extend_errors(self, errors: list[JobError]) -> None:
        with self._lock:
            self.errors.extend(errors)

    @property
    def errors_count(self) -> int:
        return len(self.errors)

    def complete(self, pages_scraped: int, promotions_found: int) -> None:
        self._finalize(JobStatus.COMPLETED, pages_scraped, promotions_found)

    def fail(self, reason: str, url: str = "", pages_scraped: int = 0) -> None:
        self.record_error(url, reason)
        self._finalize(JobStatus.FAILED, pages_scraped, 0)

    def _finalize(self, status: JobStatus, pages_scraped: int, promotions_found: int) -> None:
        if self.status is not JobStatus.RUNNING:
            raise RuntimeError(f"cannot finalize job in state {self.status}")
        self.status = status
        self.logger.info(
            "job_finished",
            job_id=self.job_id,
            status=status.value,
            pages_scraped=pages_scraped,
            promotions_found=promotions_found,
            errors=len(self.errors),
        )
        if self.job_id is None:
            return
        try:
            self.store.finalize(
                self.job_id,
                status,
                self.clock(),
                pages_scraped,
                promotions_found,
                list(self.errors),
            )
        except PersistenceError as exc:
            self.logger.error("job_finalize_failed", job_id=self.job_id, error=str(exc))


__all__ = ["JobTracker"]
