from __future__ import annotations

import pytest

from promo_crawler.config import RetentionConfig
from promo_crawler.engine import RetentionManager


def test_sweep_deactivates_then_deletes(promotion_store, make_promotion, days_ago, clock) -> None:
    fresh = make_promotion(title="Fresh promo 10.000 milhas", collected_at=days_ago(1))
    stale = make_promotion(title="Stale promo 10.000 milhas", collected_at=days_ago(8))
    inactive = make_promotion(title="Inactive promo 10.000 milhas", collected_at=days_ago(29), active=False)
    ancient = make_promotion(title="Ancient promo 10.000 milhas", collected_at=days_ago(31))
    promotion_store.insert_many([fresh, stale, inactive, ancient])

    manager = RetentionManager(promotion_store, RetentionConfig(), clock=clock)
    result = manager.sweep()

    assert (result.deactivated, result.deleted) == (2, 1)
    assert promotion_store.get_by_hash(fresh.external_hash).active is True
    assert promotion_store.get_by_hash(stale.external_hash).active is False
    assert promotion_store.get_by_hash(inactive.external_hash).active is False
    assert promotion_store.get_by_hash(ancient.external_hash) is None

    again = manager.sweep()
    assert (again.deactivated, again.deleted) == (0, 0)


def test_rejects_hard_not_after_soft(promotion_store) -> None:
    broken = RetentionConfig.model_construct(soft_expiry_days=30, hard_delete_days=7)
    with pytest.raises(ValueError):
        RetentionManager(promotion_store, broken)


def test_purge_invalid_destinations(promotion_store, make_promotion) -> None:
    promotion_store.insert_many(
        [
            make_promotion(title="Junk one 10.000 milhas", destination="Voo Amanhã"),
            make_promotion(title="Junk two 10.000 milhas", destination="hoje"),
            make_promotion(title="Keeper 10.000 milhas", destination="Lisboa"),
        ]
    )
    manager = RetentionManager(promotion_store)
    assert manager.purge_invalid_destinations(["voo", "amanhã", "hoje", "ontem"]) == 2
    assert [p.destination for p in promotion_store.list_promotions()] == ["Lisboa"]
