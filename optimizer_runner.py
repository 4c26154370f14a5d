"""Run an expensive channel search on a background worker.

Searches are pure functions of their inputs: they accumulate into local
variables only, so abandoning one midway cannot corrupt anything.  The
caller owns a cancel event; setting it makes the search raise
SearchCancelled at its next checkpoint and the task's result is discarded.

Usage:
    task = OptimizerTask(find_channels, df, max_ratio=0.5)
    ...
    task.cancel()            # e.g. the user switched symbol
    channels = task.result() # None when cancelled
"""

import logging
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SearchCancelled(Exception):
    """Raised inside a search when its cancel event has been set."""


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SearchCancelled()


class OptimizerTask:
    """One search running on a single-worker thread pool.

    The callable must accept a ``cancel_event`` keyword argument.
    """

    def __init__(self, fn: Callable[..., Any], *args, **kwargs):
        self._cancel_event = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="channel-search")
        self._name = getattr(fn, "__name__", "search")
        kwargs["cancel_event"] = self._cancel_event
        self._future = self._executor.submit(fn, *args, **kwargs)
        self._executor.shutdown(wait=False)
        logger.debug("Started background %s", self._name)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Ask the search to stop; its result will be discarded."""
        self._cancel_event.set()
        self._future.cancel()
        logger.debug("Cancellation requested for %s", self._name)

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block for the search result.

        Returns None if the task was cancelled.  Errors raised by the search
        itself propagate to the caller.
        """
        if self._future.cancelled():
            return None
        try:
            value = self._future.result(timeout=timeout)
        except (SearchCancelled, CancelledError):
            logger.info("%s cancelled, result discarded", self._name)
            return None
        if self._cancel_event.is_set():
            return None
        return value
