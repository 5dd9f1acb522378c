# -*- coding: utf-8 -*-
"""Cooperative cancellation for the blocking calls of an extraction job."""
import concurrent.futures
import threading
import time
from typing import Callable, Optional, TypeVar

from scanvocab.errors import ExtractionCancelled

T = TypeVar('T')

POLL_INTERVAL = 0.05


class CancellationToken:
    """Set once; observed at every suspension point of a job."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled()


def run_cancellable(
    fn: Callable[..., T],
    *args,
    token: Optional[CancellationToken] = None,
    timeout: Optional[float] = None,
    executor: Optional[concurrent.futures.Executor] = None,
    on_cancel: Optional[Callable[[], None]] = None,
) -> T:
    """
    Run a blocking call on a worker thread, racing it against the token
    and an optional timeout.

    Raises:
        ExtractionCancelled: token was cancelled first (on_cancel runs before raising)
        TimeoutError: timeout elapsed first
    """
    if token is not None:
        token.raise_if_cancelled()

    own_executor = executor is None
    pool = executor or concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = pool.submit(fn, *args)
    deadline = None if timeout is None else time.monotonic() + timeout

    try:
        while True:
            wait_for = POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    future.cancel()
                    raise TimeoutError(f"Call did not finish within {timeout:g}s")
                wait_for = min(wait_for, remaining)

            done, _ = concurrent.futures.wait([future], timeout=wait_for)
            if done:
                return future.result()

            if token is not None and token.cancelled:
                future.cancel()
                if on_cancel is not None:
                    on_cancel()
                raise ExtractionCancelled()
    finally:
        if own_executor:
            pool.shutdown(wait=False)
