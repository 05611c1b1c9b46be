"""Status-tracked execution of remote operations.

execute_with_status is the only place provisioning steps write their
SUCCESS/FAILED narration. It keeps no state between calls.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Awaitable, Callable
from typing import TextIO

import click

from .gateway import OperationResult

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_DETAIL = "An unknown error occurred.\n"


class Reporter:
    """Operator-facing narration.

    Status lines go to ``out`` unless quiet. Failure details and fatal
    errors always go to ``err``.

    With ``whole_lines`` set, the start marker and the outcome are written
    together once the operation settles, so concurrent siblings never
    interleave inside one line.
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        whole_lines: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.quiet = quiet
        self.whole_lines = whole_lines
        self._out = out
        self._err = err

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err or sys.stderr

    def status(self, message: str, *, nl: bool = True) -> None:
        if not self.quiet:
            click.echo(message, file=self.out, nl=nl)

    def begin(self, label: str) -> None:
        if not self.whole_lines:
            self.status(f"{label}...", nl=False)

    def finish(self, label: str, outcome: str) -> None:
        if self.whole_lines:
            self.status(f"{label}...{outcome}")
        else:
            self.status(outcome)

    def error(self, message: str, *, nl: bool = True) -> None:
        click.echo(message, file=self.err, nl=nl)

    def prompt(self, message: str) -> None:
        """Write a prompt to stdout even when quiet."""
        click.echo(message, file=self.out, nl=False)


def format_failure_detail(result: OperationResult) -> str:
    """Describe a failed operation by status and/or error."""
    detail = ""
    if result.status_code is not None:
        detail += f"\tStatus Code: {result.status_code}\n\tStatus: {result.status or ''}\n"
    if result.error is not None:
        detail += f"\tError: {result.error}\n"
    return detail or UNKNOWN_ERROR_DETAIL


async def execute_with_status(
    operation: Callable[[], Awaitable[OperationResult]],
    label: str,
    reporter: Reporter,
) -> OperationResult:
    """Run one remote operation exactly once and narrate its outcome.

    Args:
        operation: Zero-argument coroutine function performing the call.
        label: Human readable description, e.g. "Creating Subnet 'x'".
        reporter: Narration target.

    Returns:
        The operation's result, unchanged.
    """
    reporter.begin(label)
    start_time = time.monotonic()

    result = await operation()

    duration = time.monotonic() - start_time
    if result.succeeded:
        reporter.finish(label, "SUCCESS")
        logger.info(
            "Remote operation succeeded",
            extra={"operation": label, "status_code": result.status_code, "duration": duration},
        )
    else:
        reporter.finish(label, "FAILED")
        reporter.error(format_failure_detail(result), nl=False)
        logger.warning(
            "Remote operation failed",
            extra={
                "operation": label,
                "status_code": result.status_code,
                "error": str(result.error) if result.error is not None else None,
                "duration": duration,
            },
        )
    return result
