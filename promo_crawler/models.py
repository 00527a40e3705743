"""Domain records flowing through the promotion pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuantityKind(str, Enum):
    """What the numeric ``quantity`` of a promotion actually measures."""

    MILES = "miles"
    BONUS_PERCENT_PROXY = "bonus_percent_proxy"


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class ArticleCandidate:
    """A (title, url) pair discovered on the listing page."""

    title: str
    url: str


@dataclass(slots=True)
class Promotion:
    """A parsed promotion, persisted once and then only aged by retention."""

    program: str
    origin: str | None
    destination: str
    quantity: int
    quantity_kind: QuantityKind
    title: str
    description: str | None
    link: str
    source: str
    collected_at: datetime
    external_hash: str
    active: bool = True
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["quantity_kind"] = self.quantity_kind.value
        payload["collected_at"] = self.collected_at.isoformat()
        return payload


@dataclass(slots=True, frozen=True)
class JobError:
    url: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "error": self.error}


@dataclass(slots=True)
class ScrapeJob:
    """One pipeline run as recorded by the job store."""

    id: int
    started_at: datetime
    status: JobStatus
    completed_at: datetime | None = None
    pages_scraped: int = 0
    promotions_found: int = 0
    errors: list[JobError] = field(default_factory=list)


@dataclass(slots=True)
class RunSummary:
    """Structured result handed back to whoever triggered the run."""

    success: bool
    job_id: int | None
    pages_scraped: int = 0
    articles_found: int = 0
    promotions_parsed: int = 0
    promotions_found: int = 0
    duplicates_skipped: int = 0
    errors_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if payload["error"] is None:
            payload.pop("error")
        return payload


__all__ = [
    "ArticleCandidate",
    "JobError",
    "JobStatus",
    "Promotion",
    "QuantityKind",
    "RunSummary",
    "ScrapeJob",
    "utcnow",
]
