"""Bounded polling for asynchronous external effects."""

import time
from collections.abc import Callable

from labctl.errors import ReadinessTimeout


def wait_for(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float = 1.0,
    what: str = "condition",
    on_retry: Callable[[], None] | None = None,
) -> None:
    """Poll ``predicate`` until it returns True or ``timeout`` seconds pass.

    ``on_retry`` runs between failed checks (e.g. to re-trigger a device
    rescan). Raises ReadinessTimeout when the deadline is reached.
    """
    deadline = time.monotonic() + timeout
    while True:
        if predicate():
            return
        if time.monotonic() >= deadline:
            raise ReadinessTimeout(f"Timed out after {timeout:g}s waiting for {what}")
        if on_retry is not None:
            on_retry()
        time.sleep(interval)
