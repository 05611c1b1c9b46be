"""Provisioning orchestrator.

Creates the sample resources in a fixed dependency order:

    resource group -> virtual network -> security groups -> subnets -> rules

and stops creating at the first failed stage. Everything after the
resource group runs inside a ResourceGroupCleanup scope, so the group is
deleted on every exit path once it exists.

Same-tier siblings (the security groups, the subnets, the rules) have no
dependency on each other. With ``parallel`` enabled they run concurrently;
every sibling settles and every failure is recorded before the
short-circuit applies.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any

from .cleanup import ResourceGroupCleanup
from .config import Config
from .executor import Reporter, execute_with_status
from .gateway import AzureNetworkGateway, CancellationToken, OperationResult
from .models import NetworkTopology
from .naming import NameAllocationError, unique_resource_group_name
from .pause import WaitOutcome, read_acknowledgement, wait_before_cleanup

logger = logging.getLogger(__name__)


class ExitStatus(IntEnum):
    """Process exit codes, one per stage that can fail first."""

    SUCCESS = 0
    AUTHENTICATION_FAILURE = 1
    RESOURCE_GROUP_CREATION_FAILURE = 2
    VIRTUAL_NETWORK_CREATION_FAILURE = 3
    SECURITY_GROUP_CREATION_FAILURE = 4
    SECURITY_RULE_CREATION_FAILURE = 5
    SUBNET_CREATION_FAILURE = 6


class Stage(str, Enum):
    RESOURCE_GROUP = "resource_group"
    VIRTUAL_NETWORK = "virtual_network"
    SECURITY_GROUP = "security_group"
    SUBNET = "subnet"
    SECURITY_RULE = "security_rule"
    CLEANUP = "cleanup"


LIST_RESOURCE_GROUPS_LABEL = "Listing Resource Groups"

STAGE_EXIT_STATUS: dict[Stage, ExitStatus] = {
    Stage.RESOURCE_GROUP: ExitStatus.RESOURCE_GROUP_CREATION_FAILURE,
    Stage.VIRTUAL_NETWORK: ExitStatus.VIRTUAL_NETWORK_CREATION_FAILURE,
    Stage.SECURITY_GROUP: ExitStatus.SECURITY_GROUP_CREATION_FAILURE,
    Stage.SUBNET: ExitStatus.SUBNET_CREATION_FAILURE,
    Stage.SECURITY_RULE: ExitStatus.SECURITY_RULE_CREATION_FAILURE,
}


@dataclass
class StepRecord:
    """One attempted remote step."""

    stage: Stage
    label: str
    succeeded: bool
    status_code: int | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, stage: Stage, label: str, result: OperationResult) -> StepRecord:
        return cls(
            stage=stage,
            label=label,
            succeeded=result.succeeded,
            status_code=result.status_code,
            error=str(result.error) if result.error is not None else None,
        )


@dataclass
class RunOutcome:
    """Ordered record of a provisioning run."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    resource_group_name: str | None = None
    steps: list[StepRecord] = field(default_factory=list)
    cleanup: StepRecord | None = None
    failed_stage: Stage | None = None
    wait_outcome: WaitOutcome = WaitOutcome.SKIPPED

    @property
    def exit_status(self) -> ExitStatus:
        if self.failed_stage is None:
            return ExitStatus.SUCCESS
        return STAGE_EXIT_STATUS[self.failed_stage]

    @property
    def success(self) -> bool:
        return self.failed_stage is None

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def record(self, step: StepRecord) -> None:
        self.steps.append(step)
        if not step.succeeded and self.failed_stage is None:
            self.failed_stage = step.stage


@dataclass(frozen=True)
class _Step:
    stage: Stage
    label: str
    call: Callable[[], OperationResult]


class ProvisioningOrchestrator:
    """Runs one provisioning and cleanup cycle against a gateway."""

    def __init__(
        self,
        config: Config,
        topology: NetworkTopology,
        gateway: AzureNetworkGateway,
        reporter: Reporter,
        *,
        cancel: CancellationToken | None = None,
        cleanup_cancel: CancellationToken | None = None,
        acknowledge: Callable[[], None] = read_acknowledgement,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Immutable run context.
            topology: Resources to create inside the resource group.
            gateway: Remote collaborator.
            reporter: Narration target.
            cancel: Token observed by every creation call.
            cleanup_cancel: Separate token for the deletion, so cancelling
                provisioning never skips cleanup.
            acknowledge: Blocking callable used by ``--pause``.
        """
        self._config = config
        self._topology = topology
        self._gateway = gateway
        self._reporter = reporter
        self._cancel = cancel or CancellationToken("provisioning")
        self._cleanup_cancel = cleanup_cancel or CancellationToken("cleanup")
        self._acknowledge = acknowledge

    async def run(self) -> RunOutcome:
        """Provision, optionally wait, then clean up.

        Returns:
            RunOutcome whose ``exit_status`` reflects the first failed stage.
        """
        outcome = RunOutcome()
        try:
            await self._run(outcome)
        finally:
            outcome.end_time = datetime.now(UTC)
            logger.info(
                "Provisioning run complete",
                extra={
                    "resource_group": outcome.resource_group_name,
                    "exit_status": outcome.exit_status.name,
                    "steps": len(outcome.steps),
                    "cleanup_succeeded": outcome.cleanup.succeeded if outcome.cleanup else None,
                    "duration_seconds": outcome.duration_seconds,
                },
            )
        return outcome

    async def _run(self, outcome: RunOutcome) -> None:
        location = self._config.location

        try:
            name = await unique_resource_group_name(
                self._gateway, self._topology.resource_group_prefix, self._cancel
            )
        except NameAllocationError as e:
            self._reporter.error(str(e))
            logger.error("Resource group name allocation failed", extra={"error": str(e)})
            outcome.record(
                StepRecord(
                    stage=Stage.RESOURCE_GROUP,
                    label=LIST_RESOURCE_GROUPS_LABEL,
                    succeeded=False,
                    status_code=e.status_code,
                    error=str(e),
                )
            )
            return

        created = await self._execute(
            outcome,
            _Step(
                Stage.RESOURCE_GROUP,
                f"Creating Resource Group '{name}'",
                lambda: self._gateway.create_resource_group(name, location, self._cancel),
            ),
        )
        if not created.succeeded:
            return
        outcome.resource_group_name = name

        cleanup = ResourceGroupCleanup(name, lambda: self._delete_resource_group(name))
        try:
            async with cleanup:
                try:
                    if await self._provision_contents(outcome, name):
                        outcome.wait_outcome = await wait_before_cleanup(
                            self._config.options,
                            self._reporter,
                            self._cancel,
                            acknowledge=self._acknowledge,
                        )
                except asyncio.CancelledError:
                    # Unblock calls still running in executor threads
                    self._cancel.cancel()
                    raise
        finally:
            if cleanup.result is not None:
                outcome.cleanup = StepRecord.from_result(
                    Stage.CLEANUP, f"Deleting Resource Group '{name}'", cleanup.result
                )

    async def _provision_contents(self, outcome: RunOutcome, resource_group: str) -> bool:
        """Create everything inside the resource group. False on first failed tier."""
        topology = self._topology
        location = self._config.location
        vnet = topology.virtual_network

        created = await self._execute(
            outcome,
            _Step(
                Stage.VIRTUAL_NETWORK,
                f"Creating Virtual Network '{vnet.name}'",
                lambda: self._gateway.create_virtual_network(
                    resource_group, vnet, location, self._cancel
                ),
            ),
        )
        if not created.succeeded:
            return False

        group_steps = [
            _Step(
                Stage.SECURITY_GROUP,
                f"Creating Network Security Group '{group.name}'",
                lambda group=group: self._gateway.create_security_group(
                    resource_group, group.name, location, self._cancel
                ),
            )
            for group in topology.security_groups
        ]
        group_results = await self._execute_tier(outcome, group_steps)
        if group_results is None:
            return False

        group_ids: dict[str, str | None] = {
            group.name: _resource_id(result.resource)
            for group, result in zip(topology.security_groups, group_results, strict=True)
        }

        subnet_steps = [
            _Step(
                Stage.SUBNET,
                f"Creating Subnet '{group.subnet.name}'",
                lambda group=group: self._gateway.create_subnet(
                    resource_group, vnet.name, group.subnet, group_ids[group.name], self._cancel
                ),
            )
            for group in topology.security_groups
        ]
        if await self._execute_tier(outcome, subnet_steps) is None:
            return False

        rule_steps = [
            _Step(
                Stage.SECURITY_RULE,
                f"Creating Security Rule '{rule.name}'",
                lambda group=group, rule=rule: self._gateway.create_security_rule(
                    resource_group, group.name, rule, self._cancel
                ),
            )
            for group in topology.security_groups
            for rule in group.rules
        ]
        return await self._execute_tier(outcome, rule_steps) is not None

    async def _execute_tier(
        self, outcome: RunOutcome, steps: list[_Step]
    ) -> list[OperationResult] | None:
        """Run sibling steps. Returns their results, or None if any failed."""
        if self._config.options.parallel:
            settled = await asyncio.gather(
                *(self._execute(outcome, s) for s in steps), return_exceptions=True
            )
            # Every sibling has settled here; only now surface unexpected errors
            for item in settled:
                if isinstance(item, BaseException):
                    raise item
            results = [item for item in settled if isinstance(item, OperationResult)]
            if all(r.succeeded for r in results):
                return results
            return None

        results = []
        for step in steps:
            result = await self._execute(outcome, step)
            if not result.succeeded:
                return None
            results.append(result)
        return results

    async def _execute(self, outcome: RunOutcome, step: _Step) -> OperationResult:
        loop = asyncio.get_running_loop()

        def operation() -> Awaitable[OperationResult]:
            return loop.run_in_executor(None, step.call)

        result = await execute_with_status(operation, step.label, self._reporter)
        outcome.record(StepRecord.from_result(step.stage, step.label, result))
        return result

    async def _delete_resource_group(self, name: str) -> OperationResult:
        loop = asyncio.get_running_loop()

        def operation() -> Awaitable[OperationResult]:
            return loop.run_in_executor(
                None, self._gateway.delete_resource_group, name, self._cleanup_cancel
            )

        return await execute_with_status(
            operation, f"Deleting Resource Group '{name}'", self._reporter
        )


def _resource_id(resource: Any) -> str | None:
    return getattr(resource, "id", None)
