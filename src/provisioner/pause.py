"""Operator wait between provisioning and cleanup.

Gives an operator time to inspect the created resources before they are
deleted. Pause (wait for Enter) takes precedence over a fixed delay.
Either wait ends early when the run's cancellation token is raised.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from collections.abc import Callable
from enum import Enum

from .config import RunOptions
from .executor import Reporter
from .gateway import CancellationToken

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while waiting for acknowledgement
ACK_POLL_INTERVAL_SECONDS = 0.2

PAUSE_PROMPT = "Press Enter to continue..."


class WaitOutcome(str, Enum):
    """How the pre-cleanup wait ended."""

    SKIPPED = "skipped"
    ACKNOWLEDGED = "acknowledged"
    ELAPSED = "elapsed"
    CANCELLED = "cancelled"


def read_acknowledgement() -> None:
    """Block until a line (or EOF) arrives on stdin."""
    sys.stdin.readline()


async def wait_before_cleanup(
    options: RunOptions,
    reporter: Reporter,
    cancel: CancellationToken,
    *,
    acknowledge: Callable[[], None] = read_acknowledgement,
) -> WaitOutcome:
    """Block according to the pause/delay options.

    Args:
        options: Run options carrying ``pause`` and ``delay_seconds``.
        reporter: Narration target.
        cancel: Token that ends the wait early.
        acknowledge: Blocking callable that returns once the operator
            acknowledges. Runs on a daemon thread so an unanswered prompt
            never keeps the process alive.
    """
    if options.pause:
        reporter.prompt(PAUSE_PROMPT)
        return await _wait_for_acknowledgement(acknowledge, cancel)

    if options.delay_seconds > 0:
        reporter.status(f"Delaying {options.delay_seconds} seconds...", nl=False)
        loop = asyncio.get_running_loop()
        cancelled = await loop.run_in_executor(None, cancel.wait, options.delay_seconds)
        if cancelled:
            reporter.status("CANCELLED")
            return WaitOutcome.CANCELLED
        reporter.status("DONE")
        return WaitOutcome.ELAPSED

    return WaitOutcome.SKIPPED


async def _wait_for_acknowledgement(
    acknowledge: Callable[[], None],
    cancel: CancellationToken,
) -> WaitOutcome:
    loop = asyncio.get_running_loop()
    acknowledged = asyncio.Event()

    def reader() -> None:
        acknowledge()
        if not loop.is_closed():
            loop.call_soon_threadsafe(acknowledged.set)

    threading.Thread(target=reader, name="pause-acknowledgement", daemon=True).start()

    while not acknowledged.is_set():
        if cancel.cancelled:
            logger.info("Pause interrupted by cancellation")
            return WaitOutcome.CANCELLED
        try:
            await asyncio.wait_for(acknowledged.wait(), timeout=ACK_POLL_INTERVAL_SECONDS)
        except TimeoutError:
            continue

    return WaitOutcome.ACKNOWLEDGED
