"""Thread pool abstraction for bounded concurrent article processing."""

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Callable, Dict, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class ThreadPoolManager:
    """Lazily created named pools, each capped at its own worker count."""

    def __init__(self, default_workers: int = 4) -> None:
        if default_workers < 1:
            raise ValueError("default_workers must be >= 1")
        self.default_workers = default_workers
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._lock = Lock()

    def get(self, name: str, max_workers: int | None = None) -> ThreadPoolExecutor:
        with self._lock:
            if name not in self._executors:
                workers = max_workers or self.default_workers
                self._executors[name] = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"promo-{name}")
            return self._executors[name]

    def map_ordered(
        self,
        func: Callable[[T], R],
        items: Iterable[T],
        name: str,
        max_workers: int | None = None,
    ) -> list[R]:
        """Run ``func`` over ``items`` concurrently; results keep input order.

        Each task runs in a copy of the caller's context, so log context bound
        for the current run (``job_id``) reaches the worker threads.
        """

        executor = self.get(name, max_workers)
        futures = [executor.submit(contextvars.copy_context().run, func, item) for item in items]
        return [future.result() for future in futures]

    def shutdown(self) -> None:
        with self._lock:
            for executor in self._executors.values():
                executor.shutdown(wait=False)
            self._executors.clear()


__all__ = ["ThreadPoolManager"]
