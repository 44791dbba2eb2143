"""Cancellation predicates combining an explicit flag with a timeout."""

from __future__ import annotations

import threading
import time
from typing import Callable

CancellationRequest = Callable[[], bool]


def make_cancellation_request_with_timeout(
    secs: float, cancel_event: threading.Event
) -> CancellationRequest:
    """Return a predicate that is true once *cancel_event* is set or *secs* have elapsed."""
    start = time.monotonic()

    def is_cancellation_requested() -> bool:
        if cancel_event.is_set():
            return True
        return (time.monotonic() - start) > secs

    return is_cancellation_requested