"""Topology file loading with validation.

SECURITY: File size is checked before reading, and YAML is parsed with
safe_load only.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_TOPOLOGY_FILE_SIZE_BYTES
from .models import NetworkTopology, default_topology

logger = logging.getLogger(__name__)


class TopologyLoadError(Exception):
    """Raised when topology loading or validation fails."""

    pass


def load_topology(path: Path | None) -> NetworkTopology:
    """Load and validate a network topology from YAML.

    Args:
        path: YAML file, or None for the built-in sample topology.

    Returns:
        Validated topology.

    Raises:
        TopologyLoadError: If the file cannot be read or fails validation.
    """
    if path is None:
        return default_topology()

    if not path.exists():
        raise TopologyLoadError(f"Topology file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise TopologyLoadError(f"Cannot stat topology file {path}: {e}") from e

    if file_size > MAX_TOPOLOGY_FILE_SIZE_BYTES:
        raise TopologyLoadError(
            f"Topology file {path} exceeds maximum size of "
            f"{MAX_TOPOLOGY_FILE_SIZE_BYTES} bytes ({file_size} bytes)"
        )

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except UnicodeDecodeError as e:
        raise TopologyLoadError(f"Topology file {path} is not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise TopologyLoadError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise TopologyLoadError(f"Cannot read topology file {path}: {e}") from e

    if not isinstance(data, dict):
        raise TopologyLoadError(f"Topology file {path} must contain a mapping")

    try:
        topology = NetworkTopology.model_validate(data)
    except ValidationError as e:
        raise TopologyLoadError(f"Topology validation failed for {path}:\n{e}") from e

    logger.info(
        "Loaded topology",
        extra={
            "path": str(path),
            "security_groups": len(topology.security_groups),
            "rules": topology.rule_count,
        },
    )
    return topology
