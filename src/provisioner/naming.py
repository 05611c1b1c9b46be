"""Collision-free resource group naming.

Names are allocated first-fit over integer suffixes, so repeated runs in
one subscription produce ``prefix``, ``prefix0``, ``prefix1``, ... and a
deleted group's name is reused by the next run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from .gateway import AzureNetworkGateway, CancellationToken, is_success_status

logger = logging.getLogger(__name__)


class NameAllocationError(Exception):
    """Raised when existing resource group names cannot be listed.

    Attributes:
        status_code: HTTP status of the listing call, if one was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class BadResponseError(NameAllocationError):
    """The listing call returned no error but a non-success status."""

    def __init__(self, status_code: int | None) -> None:
        super().__init__(f"Bad response: {status_code}", status_code)


def allocate_name(existing_names: Iterable[str], prefix: str) -> str:
    """Return a name starting with ``prefix`` that is not in ``existing_names``.

    If the bare prefix is free it is returned unchanged. Otherwise the
    smallest non-negative integer suffix not already taken is used.
    Resource group names are case-insensitive in ARM, so existing names
    are compared casefolded while the result keeps the case of ``prefix``.

    Args:
        existing_names: Names already present in the subscription.
        prefix: Base name.

    Returns:
        The allocated name.
    """
    folded_prefix = prefix.casefold()
    seen = sorted(
        folded
        for folded in (name.casefold() for name in existing_names)
        if folded.startswith(folded_prefix)
    )
    if not seen or seen[0] != folded_prefix:
        return prefix

    taken: set[int] = set()
    for name in seen[1:]:
        suffix = name[len(folded_prefix) :]
        # Only canonical decimal suffixes collide with a candidate
        if suffix.isascii() and suffix.isdigit() and str(int(suffix)) == suffix:
            taken.add(int(suffix))

    candidate = 0
    while candidate in taken:
        candidate += 1
    return f"{prefix}{candidate}"


async def unique_resource_group_name(
    gateway: AzureNetworkGateway,
    prefix: str,
    cancel: CancellationToken,
) -> str:
    """Allocate a resource group name against the live subscription.

    Raises:
        NameAllocationError: The listing call failed (original error chained).
        BadResponseError: The listing call returned a non-success status.
    """
    loop = asyncio.get_running_loop()
    listing = await loop.run_in_executor(None, gateway.list_resource_group_names, cancel)

    if listing.error is not None:
        raise NameAllocationError(str(listing.error), listing.status_code) from listing.error
    if not is_success_status(listing.status_code):
        raise BadResponseError(listing.status_code)

    name = allocate_name(listing.names, prefix)
    logger.info(
        "Allocated resource group name",
        extra={"resource_group": name, "existing_groups": len(listing.names)},
    )
    return name
