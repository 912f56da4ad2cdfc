"""
Reconcile work queue.

Deduplicating and serialized per key: a request is queued at most once, and
a request re-added while its pass is running is processed again once that
pass finishes, never concurrently with it. Passes for different keys run in
parallel on a fixed pool of workers, each pass in a thread (the kubernetes
client is synchronous).

Outcomes:
  Result(requeue=True)        re-add immediately
  Result(requeue_after=n)     re-add after n seconds
  exception                   re-add after an exponential backoff
"""
import asyncio
import logging
from collections import defaultdict
from typing import Callable, Hashable, Optional

from ingress_operator import metrics

logger = logging.getLogger("ingress-operator.queue")


class ReconcileQueue:
    def __init__(self, reconcile: Callable, workers: int = 3,
                 base_delay: float = 5.0, max_delay: float = 300.0):
        self._reconcile = reconcile
        self._workers = workers
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._queue: Optional[asyncio.Queue] = None
        self._dirty: set = set()
        self._processing: set = set()
        self._failures: dict = defaultdict(int)
        self._timers: dict = {}
        self._tasks: list = []

    # -- producer side -----------------------------------------------------

    def add(self, key: Hashable) -> None:
        """Queue key unless it is already waiting."""
        if key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.put_nowait(key)
        metrics.queue_depth.set(self._queue.qsize())

    def add_after(self, key: Hashable, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key)

    def _fire(self, key: Hashable) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def backoff(self, key: Hashable) -> float:
        failures = self._failures[key]
        return min(self._base_delay * (2 ** max(failures - 1, 0)), self._max_delay)

    # -- consumer side -----------------------------------------------------

    async def _process(self, key: Hashable) -> None:
        try:
            result = await asyncio.to_thread(self._reconcile, key)
        except Exception as e:
            self._failures[key] += 1
            delay = self.backoff(key)
            logger.error(f"reconcile {key} failed (attempt {self._failures[key]}), retrying in {delay:.0f}s: {e}")
            self.add_after(key, delay)
            return
        self._failures.pop(key, None)
        if result is None:
            return
        if result.requeue:
            self.add(key)
        elif result.requeue_after:
            self.add_after(key, result.requeue_after)

    async def _worker(self) -> None:
        while True:
            key = await self._queue.get()
            self._dirty.discard(key)
            self._processing.add(key)
            metrics.queue_depth.set(self._queue.qsize())
            try:
                await self._process(key)
            finally:
                self._processing.discard(key)
                if key in self._dirty:
                    self._queue.put_nowait(key)
                self._queue.task_done()

    def start(self) -> None:
        self._queue = asyncio.Queue()
        self._tasks = [asyncio.create_task(self._worker()) for _ in range(self._workers)]
        logger.info(f"Reconcile queue started with {self._workers} workers")

    async def stop(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Reconcile queue stopped")

    async def join(self) -> None:
        """Wait until every queued key has been processed (used by tests)."""
        await self._queue.join()
