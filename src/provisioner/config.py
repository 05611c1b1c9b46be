"""Configuration management with validation.

Credentials and run options are loaded once at startup into frozen
dataclasses and passed explicitly to everything that needs them. All
validation problems are collected before raising, so an operator sees
every missing or malformed value in one pass.
"""

from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails.

    Attributes:
        errors: One message per invalid field, in check order.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Configuration validation failed:\n  - " + "\n  - ".join(self.errors))


# Authentication environment variable names
ENV_SUBSCRIPTION_ID = "AZURE_SUBSCRIPTION_ID"
ENV_TENANT_ID = "AZURE_TENANT_ID"
ENV_CLIENT_ID = "AZURE_CLIENT_ID"
ENV_CLIENT_SECRET = "AZURE_CLIENT_SECRET"
ENV_LOCATION = "AZURE_LOCATION"

DEFAULT_LOCATION = "westus2"

# Security constraints
MAX_TOPOLOGY_FILE_SIZE_BYTES = 256 * 1024
MAX_DELAY_SECONDS = 24 * 60 * 60

VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"


def normalize_guid(value: str) -> str:
    """Return the canonical lowercase, hyphenated form of a GUID.

    Accepts the forms ``uuid.UUID`` understands (braces, urn prefix,
    upper case, no hyphens).

    Raises:
        ValueError: If the value is not a GUID.
    """
    return str(uuid.UUID(value.strip()))


@dataclass(frozen=True)
class Credentials:
    """Service principal credentials for the target subscription."""

    subscription_id: str
    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class RunOptions:
    """Flow control options taken from the command line."""

    quiet: bool = False
    pause: bool = False
    delay_seconds: int = 0
    parallel: bool = False
    topology_path: Path | None = None

    def __post_init__(self) -> None:
        if self.delay_seconds < 0:
            raise ConfigurationError(["delay must be zero or a positive number of seconds"])
        if self.delay_seconds > MAX_DELAY_SECONDS:
            raise ConfigurationError([f"delay cannot exceed {MAX_DELAY_SECONDS} seconds"])


@dataclass(frozen=True)
class Config:
    """Immutable run context.

    Built once by ``from_env`` and handed to the orchestrator by
    reference. GUID fields are already normalized when this exists.
    """

    credentials: Credentials
    location: str = DEFAULT_LOCATION
    options: RunOptions = field(default_factory=RunOptions)

    def __post_init__(self) -> None:
        if not re.match(VALID_LOCATION_PATTERN, self.location):
            raise ConfigurationError(
                [f"{ENV_LOCATION} must be a valid Azure region: {self.location}"]
            )

    @classmethod
    def from_env(
        cls,
        options: RunOptions | None = None,
        location: str | None = None,
    ) -> Config:
        """Load credentials from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Target subscription (GUID)
            AZURE_TENANT_ID: Entra ID tenant (GUID)
            AZURE_CLIENT_ID: Service principal application ID (GUID)
            AZURE_CLIENT_SECRET: Service principal secret
            AZURE_LOCATION: Region for created resources (default: westus2)

        Args:
            options: Parsed command line options.
            location: Explicit region, takes precedence over AZURE_LOCATION.

        Raises:
            ConfigurationError: Listing every missing or malformed value.
        """
        errors: list[str] = []

        def get_guid(env_var: str, pretty: str) -> str:
            value = os.environ.get(env_var, "")
            if not value:
                errors.append(
                    f"No value was provided to act as the {pretty}. "
                    f'Set environment variable "{env_var}"'
                )
                return ""
            try:
                return normalize_guid(value)
            except ValueError:
                errors.append(f"argument '{env_var}' was not of type Uuid as expected")
                return ""

        tenant_id = get_guid(ENV_TENANT_ID, "Azure Tenant ID")
        subscription_id = get_guid(ENV_SUBSCRIPTION_ID, "Azure Subscription ID")
        client_id = get_guid(ENV_CLIENT_ID, "Azure Client ID")

        client_secret = os.environ.get(ENV_CLIENT_SECRET, "")
        if not client_secret:
            errors.append(
                "No value was provided to act as the Azure Client Secret. "
                f'Set environment variable "{ENV_CLIENT_SECRET}"'
            )

        region = (location or os.environ.get(ENV_LOCATION) or DEFAULT_LOCATION).lower()
        if not re.match(VALID_LOCATION_PATTERN, region):
            errors.append(f"{ENV_LOCATION} must be a valid Azure region: {region}")

        if errors:
            raise ConfigurationError(errors)

        return cls(
            credentials=Credentials(
                subscription_id=subscription_id,
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret,
            ),
            location=region,
            options=options or RunOptions(),
        )
