"""Network security group sample CLI (nsg-sample).

Creates a resource group, a virtual network, a frontend and a backend
network security group with subnets and rules, then deletes everything.

Usage:
    nsg-sample                 # Provision and clean up
    nsg-sample --pause         # Wait for Enter before cleanup
    nsg-sample --delay 60      # Wait 60 seconds before cleanup
    nsg-sample --quiet         # Only print errors
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from .config import Config, ConfigurationError, RunOptions
from .executor import Reporter
from .main import run_sample, setup_logging
from .orchestrator import ExitStatus
from .spec_loader import TopologyLoadError, load_topology

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@click.command(context_settings={"help_option_names": ["--help", "-h"]})
@click.version_option(version="0.1.0", prog_name="nsg-sample")
@click.option(
    "--quiet",
    is_flag=True,
    help="Prevents status messages from being printed to stdout.",
)
@click.option(
    "--pause",
    is_flag=True,
    help=(
        "After all sample assets are created, wait for user response before "
        "removing all assets created for this sample."
    ),
)
@click.option(
    "--delay",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    metavar="SECONDS",
    help=(
        "An alternative to --pause which waits the specified number of seconds "
        "before removing all assets created for this sample."
    ),
)
@click.option(
    "--parallel",
    is_flag=True,
    help="Create security groups, subnets and rules of one tier concurrently.",
)
@click.option(
    "--topology",
    "topology_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML file describing the network to create instead of the built-in sample.",
)
@click.option(
    "--location",
    default=None,
    help="Azure region for created resources (default: $AZURE_LOCATION or westus2).",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="LOG_LEVEL",
    show_default=True,
    help="Level for JSON logs written to stderr.",
)
def cli(
    quiet: bool,
    pause: bool,
    delay: int,
    parallel: bool,
    topology_path: Path | None,
    location: str | None,
    log_level: str,
) -> None:
    """Provision and tear down a sample network security group layout.

    \b
    Credentials are read from the environment:
        AZURE_SUBSCRIPTION_ID, AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET
    """
    setup_logging(log_level)
    reporter = Reporter(quiet=quiet, whole_lines=parallel)

    try:
        topology = load_topology(topology_path)
    except TopologyLoadError as e:
        raise click.ClickException(str(e)) from e

    try:
        options = RunOptions(
            quiet=quiet,
            pause=pause,
            delay_seconds=delay,
            parallel=parallel,
            topology_path=topology_path,
        )
        config = Config.from_env(options, location=location)
    except ConfigurationError as e:
        for error in e.errors:
            reporter.error(f"Invalid argument. Details: {error}")
        reporter.error("Fatal Error: Authentication Failed.")
        sys.exit(ExitStatus.AUTHENTICATION_FAILURE)

    sys.exit(asyncio.run(run_sample(config, topology, reporter=reporter)))


if __name__ == "__main__":
    cli()
