"""Idempotency keys and batch de-duplication against the promotion store."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from ..infra.base import PromotionStore
from ..models import Promotion


def external_hash(title: str, quantity: int, collected_on: date) -> str:
    """Stable idempotency key for (title, quantity, collection day)."""

    seed = f"{title}|{quantity}|{collected_on.isoformat()}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


@dataclass
class DedupResult:
    new: list[Promotion] = field(default_factory=list)
    existing: list[Promotion] = field(default_factory=list)
    batch_duplicates: list[Promotion] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.existing) + len(self.batch_duplicates)


class DedupEngine:
    """Partition a parsed batch into already-stored and new promotions.

    One bulk existence query per batch. This is an optimisation only: the
    store's ignore-on-conflict insert stays the real guard against
    concurrent runs.
    """

    def __init__(self, store: PromotionStore) -> None:
        self.store = store

    def partition(self, promotions: Sequence[Promotion]) -> DedupResult:
        result = DedupResult()
        if not promotions:
            return result
        stored = self.store.exists_by_hash(p.external_hash for p in promotions)
        seen: set[str] = set()
        for promotion in promotions:
            key = promotion.external_hash
            if key in stored:
                result.existing.append(promotion)
            elif key in seen:
                result.batch_duplicates.append(promotion)
            else:
                seen.add(key)
                result.new.append(promotion)
        return result


__all__ = ["DedupEngine", "DedupResult", "external_hash"]
