"""Azure API Mock for Integration Testing.

This module provides mock implementations of the Azure SDK clients used by
the provisioner, so the full provisioning and cleanup flow can be tested
without Azure connectivity.

Key Features:
- In-memory resource group state
- Ordered record of every SDK call
- Long-running operation pollers with configurable pending polls
- Error injection per operation and resource name
- Service principal credential simulation

Usage:
    from azure_mock import MockAzureContext, CREATE_SUBNET

    with MockAzureContext() as ctx:
        ctx.state.inject_failure(CREATE_SUBNET, "backendSubnet")
        exit_code = await run_sample(config, topology)
        assert ctx.state.count(CREATE_SUBNET) == 2
"""

from .context import MockAzureContext
from .credential import MockClientSecretCredential
from .resources import (
    CREATE_RESOURCE_GROUP,
    CREATE_SECURITY_GROUP,
    CREATE_SECURITY_RULE,
    CREATE_SUBNET,
    CREATE_VIRTUAL_NETWORK,
    DELETE_RESOURCE_GROUP,
    LIST_RESOURCE_GROUPS,
    MockCloudState,
    MockLROPoller,
    MockNetworkManagementClient,
    MockResourceManagementClient,
    make_http_error,
)

__all__ = [
    "CREATE_RESOURCE_GROUP",
    "CREATE_SECURITY_GROUP",
    "CREATE_SECURITY_RULE",
    "CREATE_SUBNET",
    "CREATE_VIRTUAL_NETWORK",
    "DELETE_RESOURCE_GROUP",
    "LIST_RESOURCE_GROUPS",
    "MockAzureContext",
    "MockClientSecretCredential",
    "MockCloudState",
    "MockLROPoller",
    "MockNetworkManagementClient",
    "MockResourceManagementClient",
    "make_http_error",
]
