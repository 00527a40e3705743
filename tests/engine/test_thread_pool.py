from __future__ import annotations

import time

import pytest
import structlog

from promo_crawler.engine import ThreadPoolManager


def test_thread_pool_manager_isolates_executors() -> None:
    manager = ThreadPoolManager(default_workers=2)
    pool_articles = manager.get("articles", max_workers=1)
    assert manager.get("articles") is pool_articles
    assert manager.get("other") is not pool_articles
    assert manager.get("other")._max_workers == 2
    manager.shutdown()


def test_map_ordered_keeps_input_order() -> None:
    manager = ThreadPoolManager(default_workers=4)

    def slow_identity(value: int) -> int:
        time.sleep(0.01 * (5 - value))
        return value

    assert manager.map_ordered(slow_identity, range(5), name="articles") == [0, 1, 2, 3, 4]
    manager.shutdown()


def test_map_ordered_carries_log_context_into_workers() -> None:
    manager = ThreadPoolManager(default_workers=2)

    def bound_job(_: int) -> object:
        return structlog.contextvars.get_contextvars().get("job_id")

    with structlog.contextvars.bound_contextvars(job_id=42):
        assert manager.map_ordered(bound_job, range(3), name="articles") == [42, 42, 42]
    manager.shutdown()


def test_rejects_empty_pool() -> None:
    with pytest.raises(ValueError):
        ThreadPoolManager(default_workers=0)
