"""
Duplicate suppression for cache fills.

Work submitted under a key that already has work in flight is not started
again; the caller gets the Future of the running attempt instead. All
attempts run on one bounded thread pool, which caps how many fetches (and
git transfers) run at once no matter how many distinct cold keys arrive.

Callers wait with a timeout. A caller that gives up does not cancel the
work: it keeps running and fills the cache for whoever asks next.
"""

import concurrent.futures
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Hashable, TypeVar

from modproxy.exceptions import FetchTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wait_for(future: "Future[T]", timeout: float, operation: str) -> T:
    """
    Wait for a future, turning a timeout into FetchTimeout.

    Exceptions raised by the work itself are re-raised unchanged.
    """
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        logger.warning(f"{operation} still running after {timeout:g}s")
        raise FetchTimeout(operation, timeout)


class SingleFlight:
    """Runs at most one call per key at a time on a bounded pool."""

    def __init__(self, max_workers: int, name: str = "fetch"):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=name
        )
        self._inflight: Dict[Hashable, Future] = {}
        # reentrant: a done-callback may run inline inside submit()
        self._lock = threading.RLock()

    def submit(self, key: Hashable, fn: Callable[[], T]) -> "Future[T]":
        """Start fn under key, or join the attempt already running for key."""
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                logger.debug(f"Joining in-flight work for {key}")
                return future

            future = self._executor.submit(fn)
            self._inflight[key] = future
            future.add_done_callback(lambda f: self._forget(key, f))
            return future

    def _forget(self, key: Hashable, future: Future) -> None:
        with self._lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._inflight

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
