"""Thread pool that spaces out task dispatches"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional


class PacedExecutor:
    """
    Bounded-concurrency executor with a minimum interval between dispatches.

    submit() blocks the caller until min_interval has passed since the previous
    dispatch, then hands the task to at most max_workers threads.

    Usage::

        with PacedExecutor(max_workers=4, min_interval=0.05) as executor:
            futures = [executor.submit(lookup, item) for item in items]
    """

    def __init__(self, max_workers: int, min_interval: float,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval cannot be negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='paced')
        self._lock = threading.Lock()
        self._last_dispatch: Optional[float] = None

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        with self._lock:
            now = self._clock()
            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - now
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last_dispatch = now
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'PacedExecutor':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
