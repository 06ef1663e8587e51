"""Azure API Mock for Integration Testing.

This module provides mock implementations of the Key Vault and Network
management APIs and the Key Vault secrets data plane, enabling workflow
tests without actual Azure connectivity.

Key Features:
- In-memory state for vaults, virtual networks and subnets
- Network ACL evaluation on data-plane calls (Deny blocks unlisted clients)
- Propagation lag simulation via pending Forbidden responses
- Error injection per operation
- Token credential simulation

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext() as ctx:
        result = await VNetAccessRuleWorkflow(ClientContext(config)).run()

        # Assert on mock state
        assert ctx.state.vault_count == 1
"""

from .context import MockAzureContext
from .credential import MockTokenCredential, create_mock_credential
from .resources import (
    DEFAULT_CLIENT_IP,
    MockAzureState,
    MockKeyVaultManagementClient,
    MockNetworkManagementClient,
    MockSecretClient,
    make_http_error,
)

__all__ = [
    "DEFAULT_CLIENT_IP",
    "MockAzureContext",
    "MockAzureState",
    "MockKeyVaultManagementClient",
    "MockNetworkManagementClient",
    "MockSecretClient",
    "MockTokenCredential",
    "create_mock_credential",
    "make_http_error",
]
