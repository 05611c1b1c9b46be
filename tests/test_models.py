"""Tests for topology models and loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from provisioner.config import MAX_TOPOLOGY_FILE_SIZE_BYTES
from provisioner.models import (
    DEFAULT_RESOURCE_GROUP_PREFIX,
    NetworkTopology,
    RuleAccess,
    RuleDirection,
    RuleProtocol,
    SecurityGroupSpec,
    SecurityRuleSpec,
    SubnetSpec,
    default_topology,
)
from provisioner.spec_loader import TopologyLoadError, load_topology


def _topology_data(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "virtualNetwork": {"name": "vnet", "addressPrefixes": ["10.0.0.0/16"]},
        "securityGroups": [
            {
                "name": "web",
                "subnet": {"name": "webSubnet", "addressPrefix": "10.0.1.0/24"},
                "rules": [
                    {"name": "ALLOW-HTTPS", "destinationPortRange": "443", "priority": 100},
                ],
            },
            {
                "name": "db",
                "subnet": {"name": "dbSubnet", "addressPrefix": "10.0.2.0/24"},
            },
        ],
    }
    data.update(overrides)
    return data


class TestDefaultTopology:
    """The built-in sample layout."""

    def test_shape(self) -> None:
        topology = default_topology()

        assert topology.resource_group_prefix == DEFAULT_RESOURCE_GROUP_PREFIX
        assert topology.virtual_network.name == "sampleVirtualNetwork"
        assert topology.virtual_network.address_prefixes == ["192.168.0.0/16"]
        assert [g.name for g in topology.security_groups] == ["frontend", "backend"]
        assert [g.subnet.name for g in topology.security_groups] == [
            "frontendSubnet",
            "backendSubnet",
        ]
        assert topology.rule_count == 5

    def test_backend_rules(self) -> None:
        backend = default_topology().security_groups[1]
        sql, deny_out = backend.rules

        assert sql.source_address_prefix == "192.168.1.0/24"
        assert sql.destination_port_range == "1433"
        assert deny_out.direction == RuleDirection.OUTBOUND
        assert deny_out.access == RuleAccess.DENY
        assert deny_out.protocol == RuleProtocol.ANY
        # Same priority is legal across directions
        assert sql.priority == deny_out.priority == 100

    def test_rule_converts_to_sdk_model(self) -> None:
        rule = default_topology().security_groups[0].rules[0]

        sdk_rule = rule.to_security_rule()

        assert sdk_rule.name == "ALLOW-SSH"
        assert sdk_rule.destination_port_range == "22"
        assert sdk_rule.priority == 100
        assert sdk_rule.direction == "Inbound"
        assert sdk_rule.access == "Allow"
        assert sdk_rule.protocol == "Tcp"


class TestSecurityRuleSpec:
    @pytest.mark.parametrize("priority", [99, 4097])
    def test_priority_bounds(self, priority: int) -> None:
        with pytest.raises(ValidationError):
            SecurityRuleSpec(name="R", priority=priority)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SecurityRuleSpec.model_validate({"name": "R", "priority": 100, "port": 22})


class TestSecurityGroupSpec:
    def _group(self, *rules: SecurityRuleSpec) -> SecurityGroupSpec:
        return SecurityGroupSpec(
            name="g",
            subnet=SubnetSpec(name="s", address_prefix="10.0.0.0/24"),
            rules=list(rules),
        )

    def test_duplicate_priority_same_direction_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            self._group(
                SecurityRuleSpec(name="A", priority=100),
                SecurityRuleSpec(name="B", priority=100),
            )

        assert "priority 100" in str(exc_info.value)

    def test_duplicate_rule_name_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            self._group(
                SecurityRuleSpec(name="A", priority=100),
                SecurityRuleSpec(name="A", priority=101),
            )

        assert "Duplicate rule name" in str(exc_info.value)

    def test_invalid_subnet_prefix(self) -> None:
        with pytest.raises(ValidationError):
            SubnetSpec(name="s", address_prefix="10.0.0.1/24")


class TestNetworkTopology:
    def test_valid_yaml_shape(self) -> None:
        topology = NetworkTopology.model_validate(_topology_data())

        assert topology.virtual_network.name == "vnet"
        assert topology.rule_count == 1
        assert topology.security_groups[1].rules == []

    def test_subnet_outside_address_space(self) -> None:
        data = _topology_data()
        data["securityGroups"][1]["subnet"]["addressPrefix"] = "172.16.0.0/24"  # type: ignore[index]

        with pytest.raises(ValidationError) as exc_info:
            NetworkTopology.model_validate(data)

        assert "outside" in str(exc_info.value)

    def test_overlapping_subnets(self) -> None:
        data = _topology_data()
        data["securityGroups"][1]["subnet"]["addressPrefix"] = "10.0.1.128/25"  # type: ignore[index]

        with pytest.raises(ValidationError) as exc_info:
            NetworkTopology.model_validate(data)

        assert "overlaps" in str(exc_info.value)

    def test_duplicate_group_names(self) -> None:
        data = _topology_data()
        data["securityGroups"][1]["name"] = "web"  # type: ignore[index]

        with pytest.raises(ValidationError):
            NetworkTopology.model_validate(data)

    def test_requires_a_security_group(self) -> None:
        with pytest.raises(ValidationError):
            NetworkTopology.model_validate(_topology_data(securityGroups=[]))


class TestLoadTopology:
    def test_none_returns_default(self) -> None:
        assert load_topology(None) == default_topology()

    def test_loads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "topology.yaml"
        path.write_text(yaml.safe_dump(_topology_data(resourceGroupPrefix="rg-nsg-demo")))

        topology = load_topology(path)

        assert topology.resource_group_prefix == "rg-nsg-demo"
        assert topology.security_groups[0].rules[0].name == "ALLOW-HTTPS"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(TopologyLoadError) as exc_info:
            load_topology(tmp_path / "missing.yaml")

        assert "not found" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("virtualNetwork: [unclosed")

        with pytest.raises(TopologyLoadError) as exc_info:
            load_topology(path)

        assert "Invalid YAML" in str(exc_info.value)

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "binary.yaml"
        path.write_bytes(b"virtualNetwork: \xff\xfe\n")

        with pytest.raises(TopologyLoadError) as exc_info:
            load_topology(path)

        assert "not valid UTF-8" in str(exc_info.value)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(TopologyLoadError):
            load_topology(path)

    def test_validation_error_wrapped(self, tmp_path: Path) -> None:
        path = tmp_path / "invalid.yaml"
        path.write_text(yaml.safe_dump(_topology_data(securityGroups=[])))

        with pytest.raises(TopologyLoadError) as exc_info:
            load_topology(path)

        assert "validation failed" in str(exc_info.value)

    def test_oversized_file(self, tmp_path: Path) -> None:
        path = tmp_path / "huge.yaml"
        path.write_text("#" * (MAX_TOPOLOGY_FILE_SIZE_BYTES + 1))

        with pytest.raises(TopologyLoadError) as exc_info:
            load_topology(path)

        assert "exceeds maximum size" in str(exc_info.value)
