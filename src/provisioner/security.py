"""Service principal authentication.

A single Azure Resource Manager token is acquired at startup and shared
read-only by every SDK client for the rest of the run:

1. Credentials are validated before this module is reached (see config.py)
2. ClientSecretCredential exchanges them for one ARM access token
3. StaticTokenCredential hands that same token to every client

No token refresh happens. A run is expected to finish well inside the
token lifetime (about one hour).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from azure.core.credentials import AccessToken
from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import ClientSecretCredential

from .config import Credentials

logger = logging.getLogger(__name__)

ARM_SCOPE = "https://management.azure.com/.default"


class AuthenticationError(Exception):
    """Raised when no ARM token could be acquired.

    Fatal: the run stops before any resource management call.
    """

    pass


@dataclass(frozen=True)
class StaticTokenCredential:
    """TokenCredential that always returns the token it was built with."""

    token: AccessToken

    def get_token(
        self,
        *scopes: str,
        claims: str | None = None,
        tenant_id: str | None = None,
        **kwargs: Any,
    ) -> AccessToken:
        return self.token

    def close(self) -> None:
        pass


def authenticate(credentials: Credentials) -> StaticTokenCredential:
    """Acquire the ARM token for a service principal.

    Args:
        credentials: Validated service principal credentials.

    Returns:
        Credential wrapping the acquired token.

    Raises:
        AuthenticationError: If token acquisition fails.
    """
    credential = ClientSecretCredential(
        tenant_id=credentials.tenant_id,
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
    )

    try:
        token = credential.get_token(ARM_SCOPE)
    except ClientAuthenticationError as e:
        logger.error(
            "Service principal authentication rejected",
            extra={"tenant_id": credentials.tenant_id, "client_id": credentials.client_id},
        )
        raise AuthenticationError(f"Authentication rejected: {e.message}") from e
    except AzureError as e:
        logger.error(
            "Token acquisition failed",
            extra={"tenant_id": credentials.tenant_id, "error_type": type(e).__name__},
        )
        raise AuthenticationError(f"Token acquisition failed: {e}") from e
    finally:
        credential.close()

    logger.info(
        "Acquired ARM token",
        extra={"client_id": credentials.client_id, "expires_on": token.expires_on},
    )
    return StaticTokenCredential(token=token)
