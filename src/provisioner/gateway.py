"""Azure Resource Manager gateway.

Every remote call the sample makes goes through AzureNetworkGateway, which
adapts the differently shaped SDK operations to one result type:

    OperationResult(status_code, status, error, resource)

SDK exceptions never escape a gateway method. A failed call is a result
with ``error`` set, so callers decide what a failure means.

All methods block. Long-running operations are polled in short slices and
the caller's CancellationToken is checked between slices.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import (
    AddressSpace,
    NetworkSecurityGroup,
    Subnet,
    VirtualNetwork,
)
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import ResourceGroup

from .models import SecurityRuleSpec, SubnetSpec, VirtualNetworkSpec

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while a poller is running
POLL_SLICE_SECONDS = 1.0

MANAGED_BY_TAG = "azure-nsg-sample"


class OperationCancelledError(Exception):
    """Raised when a remote call observes a raised cancellation token."""

    pass


class CancellationToken:
    """Cooperative cancellation flag shared by every call of a run.

    Thread-safe: raised from a signal handler on the event loop thread,
    observed by SDK calls running in executor threads.
    """

    def __init__(self, name: str = "provisioning") -> None:
        self.name = name
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.warning("Cancellation requested", extra={"token": self.name})
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"Operation cancelled ({self.name})")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout. Returns True if cancelled."""
        return self._event.wait(timeout)


@dataclass
class OperationResult:
    """Outcome of one remote operation.

    ``status_code``/``status`` come from the final HTTP response when one
    was received. ``resource`` is the deserialized SDK model, if any.
    """

    status_code: int | None = None
    status: str | None = None
    error: BaseException | None = None
    resource: Any = None

    @property
    def succeeded(self) -> bool:
        # A call can finish without a transport error and still report
        # failure through its status code.
        return self.error is None and is_success_status(self.status_code)


@dataclass
class ListResult:
    """Outcome of a listing call."""

    names: list[str] = field(default_factory=list)
    status_code: int | None = None
    status: str | None = None
    error: BaseException | None = None


def is_success_status(status_code: int | None) -> bool:
    return status_code is not None and 200 <= status_code < 300


@dataclass(frozen=True)
class _Captured:
    status_code: int
    status: str | None
    resource: Any


def _capture(pipeline_response: Any, deserialized: Any, headers: Any) -> _Captured:
    """SDK ``cls`` hook: keep the final HTTP status alongside the model."""
    http_response = pipeline_response.http_response
    return _Captured(
        status_code=http_response.status_code,
        status=getattr(http_response, "reason", None),
        resource=deserialized,
    )


def _from_error(error: BaseException) -> OperationResult:
    if isinstance(error, HttpResponseError):
        return OperationResult(status_code=error.status_code, status=error.reason, error=error)
    return OperationResult(error=error)


class AzureNetworkGateway:
    """Resource group and network operations for one subscription."""

    def __init__(
        self,
        credential: TokenCredential,
        subscription_id: str,
        *,
        poll_slice_seconds: float = POLL_SLICE_SECONDS,
    ) -> None:
        self._subscription_id = subscription_id
        self._poll_slice_seconds = poll_slice_seconds
        self._resource_client = ResourceManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )
        self._network_client = NetworkManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )

    # -------------------------------------------------------------------------
    # Resource groups
    # -------------------------------------------------------------------------

    def list_resource_group_names(self, cancel: CancellationToken) -> ListResult:
        """List the names of every resource group in the subscription."""
        responses: list[Any] = []

        def record(response: Any) -> None:
            responses.append(response.http_response)

        try:
            cancel.raise_if_cancelled()
            names = []
            for group in self._resource_client.resource_groups.list(raw_response_hook=record):
                cancel.raise_if_cancelled()
                names.append(group.name)
        except HttpResponseError as e:
            return ListResult(status_code=e.status_code, status=e.reason, error=e)
        except (AzureError, OperationCancelledError) as e:
            return ListResult(error=e)

        last = responses[-1] if responses else None
        return ListResult(
            names=names,
            status_code=last.status_code if last is not None else None,
            status=getattr(last, "reason", None),
        )

    def create_resource_group(
        self, name: str, location: str, cancel: CancellationToken
    ) -> OperationResult:
        def call() -> _Captured:
            return self._resource_client.resource_groups.create_or_update(
                resource_group_name=name,
                parameters=ResourceGroup(location=location, tags={"managedBy": MANAGED_BY_TAG}),
                cls=_capture,
            )

        return self._invoke(call, cancel)

    def delete_resource_group(self, name: str, cancel: CancellationToken) -> OperationResult:
        def call() -> _Captured:
            poller = self._resource_client.resource_groups.begin_delete(
                resource_group_name=name,
                cls=_capture,
            )
            return self._wait(poller, cancel)

        return self._invoke(call, cancel)

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    def create_virtual_network(
        self,
        resource_group: str,
        network: VirtualNetworkSpec,
        location: str,
        cancel: CancellationToken,
    ) -> OperationResult:
        parameters = VirtualNetwork(
            location=location,
            address_space=AddressSpace(address_prefixes=list(network.address_prefixes)),
        )

        def call() -> _Captured:
            poller = self._network_client.virtual_networks.begin_create_or_update(
                resource_group_name=resource_group,
                virtual_network_name=network.name,
                parameters=parameters,
                cls=_capture,
            )
            return self._wait(poller, cancel)

        return self._invoke(call, cancel)

    def create_security_group(
        self,
        resource_group: str,
        name: str,
        location: str,
        cancel: CancellationToken,
    ) -> OperationResult:
        """Create an empty network security group.

        The created group is returned in ``resource`` so subnets can
        reference it by ID.
        """

        def call() -> _Captured:
            poller = self._network_client.network_security_groups.begin_create_or_update(
                resource_group_name=resource_group,
                network_security_group_name=name,
                parameters=NetworkSecurityGroup(location=location),
                cls=_capture,
            )
            return self._wait(poller, cancel)

        return self._invoke(call, cancel)

    def create_subnet(
        self,
        resource_group: str,
        virtual_network_name: str,
        subnet: SubnetSpec,
        security_group_id: str | None,
        cancel: CancellationToken,
    ) -> OperationResult:
        parameters = Subnet(
            name=subnet.name,
            address_prefix=subnet.address_prefix,
            network_security_group=(
                NetworkSecurityGroup(id=security_group_id) if security_group_id else None
            ),
        )

        def call() -> _Captured:
            poller = self._network_client.subnets.begin_create_or_update(
                resource_group_name=resource_group,
                virtual_network_name=virtual_network_name,
                subnet_name=subnet.name,
                subnet_parameters=parameters,
                cls=_capture,
            )
            return self._wait(poller, cancel)

        return self._invoke(call, cancel)

    def create_security_rule(
        self,
        resource_group: str,
        security_group_name: str,
        rule: SecurityRuleSpec,
        cancel: CancellationToken,
    ) -> OperationResult:
        def call() -> _Captured:
            poller = self._network_client.security_rules.begin_create_or_update(
                resource_group_name=resource_group,
                network_security_group_name=security_group_name,
                security_rule_name=rule.name,
                security_rule_parameters=rule.to_security_rule(),
                cls=_capture,
            )
            return self._wait(poller, cancel)

        return self._invoke(call, cancel)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _wait(self, poller: Any, cancel: CancellationToken) -> Any:
        """Wait for a poller, checking the token between slices."""
        while not poller.done():
            cancel.raise_if_cancelled()
            poller.wait(timeout=self._poll_slice_seconds)
        return poller.result()

    def _invoke(
        self, call: Callable[[], _Captured | None], cancel: CancellationToken
    ) -> OperationResult:
        try:
            cancel.raise_if_cancelled()
            captured = call()
        except (AzureError, OperationCancelledError) as e:
            logger.debug(
                "Remote operation failed",
                extra={"error_type": type(e).__name__, "subscription_id": self._subscription_id},
            )
            return _from_error(e)

        if captured is None:
            return OperationResult()
        return OperationResult(
            status_code=captured.status_code,
            status=captured.status,
            resource=captured.resource,
        )
