"""Bounded retry on rate limiting, decoupled from the HTTP client.

``send_with_retry`` takes a zero-argument callable that performs one request
and re-invokes it after each backoff delay while the response status is
retryable (429/503 by default).  The sleep function is injectable so tests
can run the schedule against a fake clock.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF: tuple[float, ...] = (0.5, 1.0)
RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 503})


def send_with_retry(
    send: Callable[[], httpx.Response],
    backoff: Sequence[float] = DEFAULT_BACKOFF,
    retry_statuses: frozenset[int] = RETRYABLE_STATUSES,
    sleep: Callable[[float], None] = time.sleep,
) -> httpx.Response:
    """Call *send* until it returns a non-retryable status or *backoff* runs out.

    With the default two-step schedule a request is attempted at most three
    times.  The last response is returned as-is (possibly still 429/503) so
    the caller can decide how to treat it.  Transport errors propagate.
    """
    response = send()
    for attempt, delay in enumerate(backoff, start=1):
        if response.status_code not in retry_statuses:
            return response
        logger.debug(
            "HTTP %d — retry %d/%d in %.1fs",
            response.status_code,
            attempt,
            len(backoff),
            delay,
        )
        response.close()
        sleep(delay)
        response = send()
    return response
