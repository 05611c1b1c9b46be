"""Guaranteed resource group release.

Once a resource group exists, everything else in the run happens inside a
ResourceGroupCleanup scope. Leaving the scope (normally, on an early
return, or while an exception or task cancellation propagates) deletes
the group exactly once.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from types import TracebackType

from .gateway import OperationResult

logger = logging.getLogger(__name__)


class ResourceGroupCleanup:
    """Async context manager owning the deletion of one resource group.

    Deletion failures are returned, never raised: the caller records them
    without changing the run's exit status.
    """

    def __init__(
        self,
        resource_group: str,
        release: Callable[[], Awaitable[OperationResult]],
    ) -> None:
        self.resource_group = resource_group
        self._release = release
        self._released = False
        self._result: OperationResult | None = None

    @property
    def released(self) -> bool:
        return self._released

    @property
    def result(self) -> OperationResult | None:
        """Deletion result, None until released."""
        return self._result

    async def release(self) -> OperationResult | None:
        """Delete the resource group. Later calls return the first result."""
        if self._released:
            return self._result
        self._released = True

        logger.info("Releasing resource group", extra={"resource_group": self.resource_group})
        self._result = await self._release()
        if not self._result.succeeded:
            logger.error(
                "Resource group deletion failed",
                extra={
                    "resource_group": self.resource_group,
                    "status_code": self._result.status_code,
                },
            )
        return self._result

    async def __aenter__(self) -> ResourceGroupCleanup:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            logger.warning(
                "Provisioning scope exited with an exception, cleaning up",
                extra={"resource_group": self.resource_group, "error_type": exc_type.__name__},
            )
        await self.release()
