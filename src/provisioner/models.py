"""Pydantic models for the network topology with validation.

These models provide:
1. Type-safe YAML parsing for custom topologies
2. Validation at the boundary (fail fast, fail loudly)
3. Clean transformation to Azure SDK payloads
"""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import Any

from azure.mgmt.network.models import SecurityRule
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_RESOURCE_GROUP_PREFIX = "networkSecurityGroupSample"
DEFAULT_VIRTUAL_NETWORK_NAME = "sampleVirtualNetwork"

# ARM limits for NSG rule priorities
MIN_RULE_PRIORITY = 100
MAX_RULE_PRIORITY = 4096


class RuleDirection(str, Enum):
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"


class RuleAccess(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


class RuleProtocol(str, Enum):
    TCP = "Tcp"
    UDP = "Udp"
    ICMP = "Icmp"
    ANY = "*"


def _validate_cidr(value: str) -> str:
    try:
        ipaddress.ip_network(value, strict=True)
    except ValueError as e:
        raise ValueError(f"'{value}' is not a valid CIDR address prefix") from e
    return value


# =============================================================================
# Security Rules
# =============================================================================


class SecurityRuleSpec(BaseModel):
    """A single allow/deny directive attached to a security group."""

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    name: str = Field(..., min_length=1, max_length=80)
    description: str | None = None
    direction: RuleDirection = RuleDirection.INBOUND
    access: RuleAccess = RuleAccess.ALLOW
    protocol: RuleProtocol = RuleProtocol.TCP
    source_address_prefix: str = Field("*", alias="sourceAddressPrefix")
    source_port_range: str = Field("*", alias="sourcePortRange")
    destination_address_prefix: str = Field("*", alias="destinationAddressPrefix")
    destination_port_range: str = Field("*", alias="destinationPortRange")
    priority: int = Field(..., ge=MIN_RULE_PRIORITY, le=MAX_RULE_PRIORITY)

    def to_security_rule(self) -> SecurityRule:
        """Convert to the Azure SDK payload."""
        return SecurityRule(
            name=self.name,
            description=self.description,
            direction=self.direction.value,
            access=self.access.value,
            protocol=self.protocol.value,
            source_address_prefix=self.source_address_prefix,
            source_port_range=self.source_port_range,
            destination_address_prefix=self.destination_address_prefix,
            destination_port_range=self.destination_port_range,
            priority=self.priority,
        )


# =============================================================================
# Subnets and Security Groups
# =============================================================================


class SubnetSpec(BaseModel):
    """Subnet bound to the security group that declares it."""

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    name: str = Field(..., min_length=1, max_length=80)
    address_prefix: str = Field(..., alias="addressPrefix")

    @field_validator("address_prefix")
    @classmethod
    def validate_address_prefix(cls, v: str) -> str:
        return _validate_cidr(v)


class SecurityGroupSpec(BaseModel):
    """Network security group, its subnet, and its ordered rules."""

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    name: str = Field(..., min_length=1, max_length=80)
    subnet: SubnetSpec
    rules: list[SecurityRuleSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_rules(self) -> SecurityGroupSpec:
        """Rule names are keys within a group; priorities decide evaluation order.

        ARM evaluates inbound and outbound rules separately, so a priority
        only needs to be unique per direction.
        """
        seen_names: set[str] = set()
        seen_priorities: set[tuple[RuleDirection, int]] = set()
        for rule in self.rules:
            if rule.name in seen_names:
                raise ValueError(f"Duplicate rule name '{rule.name}' in group '{self.name}'")
            seen_names.add(rule.name)

            key = (rule.direction, rule.priority)
            if key in seen_priorities:
                raise ValueError(
                    f"Duplicate {rule.direction.value} priority {rule.priority} "
                    f"in group '{self.name}'"
                )
            seen_priorities.add(key)
        return self


# =============================================================================
# Virtual Network and Topology
# =============================================================================


class VirtualNetworkSpec(BaseModel):
    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    name: str = Field(DEFAULT_VIRTUAL_NETWORK_NAME, min_length=2, max_length=64)
    address_prefixes: list[str] = Field(..., alias="addressPrefixes", min_length=1)

    @field_validator("address_prefixes")
    @classmethod
    def validate_address_prefixes(cls, v: list[str]) -> list[str]:
        return [_validate_cidr(prefix) for prefix in v]


class NetworkTopology(BaseModel):
    """Everything created inside the sample resource group.

    Creation order is fixed: virtual network, then security groups, then
    subnets, then rules. Within a tier the list order is kept.
    """

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    resource_group_prefix: str = Field(
        DEFAULT_RESOURCE_GROUP_PREFIX,
        alias="resourceGroupPrefix",
        min_length=1,
        max_length=80,
        pattern=r"^[-\w._()]+$",
    )
    virtual_network: VirtualNetworkSpec = Field(..., alias="virtualNetwork")
    security_groups: list[SecurityGroupSpec] = Field(..., alias="securityGroups", min_length=1)

    @model_validator(mode="after")
    def validate_layout(self) -> NetworkTopology:
        names = [group.name for group in self.security_groups]
        if len(names) != len(set(names)):
            raise ValueError(f"Security group names must be unique: {names}")

        subnet_names = [group.subnet.name for group in self.security_groups]
        if len(subnet_names) != len(set(subnet_names)):
            raise ValueError(f"Subnet names must be unique: {subnet_names}")

        spaces = [ipaddress.ip_network(p) for p in self.virtual_network.address_prefixes]
        placed: list[tuple[str, Any]] = []
        for group in self.security_groups:
            subnet = ipaddress.ip_network(group.subnet.address_prefix)
            if not any(
                subnet.version == space.version and subnet.subnet_of(space) for space in spaces
            ):
                raise ValueError(
                    f"Subnet '{group.subnet.name}' ({subnet}) is outside the "
                    f"virtual network address space {self.virtual_network.address_prefixes}"
                )
            for other_name, other in placed:
                if subnet.version == other.version and subnet.overlaps(other):
                    raise ValueError(
                        f"Subnet '{group.subnet.name}' ({subnet}) overlaps '{other_name}' ({other})"
                    )
            placed.append((group.subnet.name, subnet))
        return self

    @property
    def rule_count(self) -> int:
        return sum(len(group.rules) for group in self.security_groups)


def default_topology() -> NetworkTopology:
    """Build the sample topology: a frontend and a backend tier."""
    frontend_prefix = "192.168.1.0/24"
    return NetworkTopology(
        virtual_network=VirtualNetworkSpec(address_prefixes=["192.168.0.0/16"]),
        security_groups=[
            SecurityGroupSpec(
                name="frontend",
                subnet=SubnetSpec(name="frontendSubnet", address_prefix=frontend_prefix),
                rules=[
                    SecurityRuleSpec(
                        name="ALLOW-SSH",
                        description="Allow SSH",
                        destination_port_range="22",
                        priority=100,
                    ),
                    SecurityRuleSpec(
                        name="ALLOW-HTTP",
                        description="Allow HTTP",
                        destination_port_range="80",
                        priority=101,
                    ),
                    SecurityRuleSpec(
                        name="ALLOW-HTTPS",
                        description="Allow HTTPS",
                        destination_port_range="443",
                        priority=102,
                    ),
                ],
            ),
            SecurityGroupSpec(
                name="backend",
                subnet=SubnetSpec(name="backendSubnet", address_prefix="192.168.2.0/24"),
                rules=[
                    SecurityRuleSpec(
                        name="ALLOW-SQL",
                        description="Allow SQL",
                        source_address_prefix=frontend_prefix,
                        destination_port_range="1433",
                        priority=100,
                    ),
                    SecurityRuleSpec(
                        name="DENY-OUT",
                        description="Deny Outbound traffic",
                        direction=RuleDirection.OUTBOUND,
                        access=RuleAccess.DENY,
                        protocol=RuleProtocol.ANY,
                        priority=100,
                    ),
                ],
            ),
        ],
    )
