"""Age out and delete stored promotions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

import structlog

from ..config import RetentionConfig
from ..infra.base import PromotionStore
from ..models import utcnow


@dataclass(slots=True)
class SweepResult:
    deactivated: int
    deleted: int


class RetentionManager:
    """Soft-expire after ``soft_expiry_days``; hard-delete after ``hard_delete_days``.

    Both rules key off ``collected_at`` and are idempotent. Hard deletion
    ignores the ``active`` flag.
    """

    def __init__(
        self,
        store: PromotionStore,
        config: RetentionConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.config = config or RetentionConfig()
        if self.config.hard_delete_days <= self.config.soft_expiry_days:
            raise ValueError("hard_delete_days must exceed soft_expiry_days")
        self.clock = clock
        self.logger = logger or structlog.get_logger("promo_crawler.retention")

    def sweep(self) -> SweepResult:
        now = self.clock()
        deactivated = self.store.deactivate_before(now - timedelta(days=self.config.soft_expiry_days))
        deleted = self.store.delete_before(now - timedelta(days=self.config.hard_delete_days))
        self.logger.info("retention_sweep", deactivated=deactivated, deleted=deleted)
        return SweepResult(deactivated=deactivated, deleted=deleted)

    def purge_invalid_destinations(self, terms: Iterable[str]) -> int:
        """Remove rows whose destination holds scraped junk such as relative dates."""

        deleted = self.store.delete_invalid_destinations(terms)
        self.logger.info("invalid_destinations_purged", deleted=deleted)
        return deleted


__all__ = ["RetentionManager", "SweepResult"]
