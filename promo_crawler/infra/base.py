"""Store contracts the pipeline depends on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Sequence

from ..models import JobError, JobStatus, Promotion, ScrapeJob


class PromotionStore(ABC):
    """Persistence boundary for promotions."""

    @abstractmethod
    def exists_by_hash(self, hashes: Iterable[str]) -> set[str]:
        """Return the subset of ``hashes`` already stored."""

    @abstractmethod
    def insert_many(self, promotions: Sequence[Promotion]) -> list[int]:
        """Insert promotions, silently ignoring hash conflicts; return new ids."""

    @abstractmethod
    def deactivate_before(self, cutoff: datetime) -> int:
        """Flip ``active`` off for active promotions collected before ``cutoff``."""

    @abstractmethod
    def delete_before(self, cutoff: datetime) -> int:
        """Remove every promotion collected before ``cutoff``."""

    @abstractmethod
    def delete_invalid_destinations(self, terms: Iterable[str]) -> int:
        """Remove promotions whose destination contains any of ``terms``."""

    @abstractmethod
    def list_promotions(self, active_only: bool = True, limit: int = 50) -> list[Promotion]:
        """Return the most recently collected promotions."""


class JobStore(ABC):
    """Persistence boundary for scrape job records."""

    @abstractmethod
    def create(self, started_at: datetime) -> int:
        """Insert a running job and return its id."""

    @abstractmethod
    def finalize(
        self,
        job_id: int,
        status: JobStatus,
        completed_at: datetime,
        pages_scraped: int,
        promotions_found: int,
        errors: Sequence[JobError],
    ) -> None:
        """Write the final state of a running job."""

    @abstractmethod
    def get(self, job_id: int) -> ScrapeJob | None:
        """Return a job by id."""

    @abstractmethod
    def list_recent(self, limit: int = 20) -> list[ScrapeJob]:
        """Return the most recent jobs, newest first."""


__all__ = ["JobStore", "PromotionStore"]
