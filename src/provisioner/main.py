"""Run loop for the network security group sample.

Authenticates once, provisions the sample topology in a uniquely named
resource group, and removes that resource group before exiting.

Signals:
- First SIGINT/SIGTERM: cancel provisioning; cleanup still runs
- Second SIGINT/SIGTERM: cancel the cleanup as well
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from collections.abc import Callable
from datetime import UTC, datetime

from .config import Config
from .executor import Reporter
from .gateway import AzureNetworkGateway, CancellationToken
from .models import NetworkTopology
from .orchestrator import ExitStatus, ProvisioningOrchestrator
from .pause import read_acknowledgement
from .security import AuthenticationError, authenticate

_STANDARD_RECORD_FIELDS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_FIELDS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "WARNING") -> None:
    """Send JSON logs to stderr, keeping stdout for status narration."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def run_sample(
    config: Config,
    topology: NetworkTopology,
    *,
    reporter: Reporter | None = None,
    acknowledge: Callable[[], None] = read_acknowledgement,
    install_signal_handlers: bool = True,
) -> int:
    """Authenticate, provision, and clean up.

    Returns:
        Exit code (an ExitStatus value).
    """
    logger = logging.getLogger(__name__)
    options = config.options
    reporter = reporter or Reporter(quiet=options.quiet, whole_lines=options.parallel)

    try:
        credential = authenticate(config.credentials)
    except AuthenticationError as e:
        reporter.error(str(e))
        reporter.error("Fatal Error: Authentication Failed.")
        return ExitStatus.AUTHENTICATION_FAILURE

    logger.info(
        "Starting network security group sample",
        extra={
            "subscription_id": config.credentials.subscription_id,
            "location": config.location,
            "parallel": options.parallel,
        },
    )

    gateway = AzureNetworkGateway(credential, config.credentials.subscription_id)
    cancel = CancellationToken("provisioning")
    cleanup_cancel = CancellationToken("cleanup")
    orchestrator = ProvisioningOrchestrator(
        config,
        topology,
        gateway,
        reporter,
        cancel=cancel,
        cleanup_cancel=cleanup_cancel,
        acknowledge=acknowledge,
    )

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal", extra={"signal": sig.name})
        if not cancel.cancelled:
            cancel.cancel()
        else:
            cleanup_cancel.cancel()

    if install_signal_handlers:
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                continue
            installed.append(sig)

    try:
        outcome = await orchestrator.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    if not outcome.success:
        logger.warning(
            "Network security group sample failed",
            extra={
                "failed_stage": outcome.failed_stage.value if outcome.failed_stage else None,
                "exit_status": outcome.exit_status.name,
            },
        )

    if outcome.cleanup is not None and not outcome.cleanup.succeeded:
        reporter.error(
            f"Warning: resource group '{outcome.resource_group_name}' could not be deleted. "
            "Remove it manually."
        )

    return outcome.exit_status
