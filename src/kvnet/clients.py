"""Adapters over the Azure SDK clients used by the sample.

Each adapter exposes only the calls the workflow needs and turns the one
expected status of each call into a tagged result:

- existence checks return None when the resource is not found
- the data-plane probe returns AccessOutcome.FORBIDDEN when access is denied

Every other failure is raised unchanged. All methods are blocking; the
workflow runs them on an executor.
"""

from __future__ import annotations

import logging
from enum import Enum

from azure.core.credentials import TokenCredential
from azure.core.exceptions import HttpResponseError
from azure.keyvault.secrets import SecretClient
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.keyvault.models import Vault, VaultCreateOrUpdateParameters
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import Subnet, VirtualNetwork

from .errors import RemoteErrorKind, classify_remote_error

logger = logging.getLogger(__name__)


class AccessOutcome(str, Enum):
    """Result of a data-plane access probe."""

    GRANTED = "granted"
    FORBIDDEN = "forbidden"


class VaultManagement:
    """Management-plane operations on key vaults."""

    def __init__(self, credential: TokenCredential, subscription_id: str) -> None:
        self._client = KeyVaultManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )

    def get_vault(self, resource_group: str, name: str) -> Vault | None:
        """Get a vault, or None if it does not exist."""
        try:
            return self._client.vaults.get(resource_group, name)
        except HttpResponseError as e:
            if classify_remote_error(e) is RemoteErrorKind.NOT_FOUND:
                logger.debug(
                    f"Vault '{name}' not found",
                    extra={"resource_group": resource_group},
                )
                return None
            raise

    def create_or_update_vault(
        self,
        resource_group: str,
        name: str,
        parameters: VaultCreateOrUpdateParameters,
    ) -> Vault:
        """Create or update a vault and wait for the operation to finish."""
        poller = self._client.vaults.begin_create_or_update(resource_group, name, parameters)
        return poller.result()

    def update_network_acl(self, vault: Vault, resource_group: str, name: str) -> Vault:
        """Write the vault's current properties, including its network ACL, back."""
        parameters = VaultCreateOrUpdateParameters(
            location=vault.location,
            tags=vault.tags,
            properties=vault.properties,
        )
        return self.create_or_update_vault(resource_group, name, parameters)

    def close(self) -> None:
        self._client.close()


class NetworkManagement:
    """Management-plane operations on virtual networks and subnets."""

    def __init__(self, credential: TokenCredential, subscription_id: str) -> None:
        self._client = NetworkManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )

    def get_virtual_network(self, resource_group: str, name: str) -> VirtualNetwork | None:
        """Get a virtual network, or None if it does not exist."""
        try:
            return self._client.virtual_networks.get(resource_group, name)
        except HttpResponseError as e:
            if classify_remote_error(e) is RemoteErrorKind.NOT_FOUND:
                logger.debug(
                    f"Virtual network '{name}' not found",
                    extra={"resource_group": resource_group},
                )
                return None
            raise

    def create_or_update_virtual_network(
        self, resource_group: str, name: str, parameters: VirtualNetwork
    ) -> VirtualNetwork:
        poller = self._client.virtual_networks.begin_create_or_update(
            resource_group, name, parameters
        )
        return poller.result()

    def create_or_update_subnet(
        self, resource_group: str, vnet_name: str, subnet_name: str, parameters: Subnet
    ) -> Subnet:
        poller = self._client.subnets.begin_create_or_update(
            resource_group, vnet_name, subnet_name, parameters
        )
        return poller.result()

    def close(self) -> None:
        self._client.close()


class VaultData:
    """Data-plane access to vault contents."""

    def __init__(self, credential: TokenCredential) -> None:
        self._credential = credential
        self._clients: dict[str, SecretClient] = {}

    def _client_for(self, vault_uri: str) -> SecretClient:
        client = self._clients.get(vault_uri)
        if client is None:
            client = SecretClient(vault_url=vault_uri, credential=self._credential)
            self._clients[vault_uri] = client
        return client

    def close(self) -> None:
        """Close every SecretClient opened so far."""
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def list_secrets(self, vault_uri: str) -> list[str]:
        """List secret names; raises on any failure."""
        return [item.name for item in self._client_for(vault_uri).list_properties_of_secrets()]

    def probe_secrets(self, vault_uri: str) -> AccessOutcome:
        """Attempt to read the vault's secret listing.

        Returns:
            GRANTED if the first page was readable, FORBIDDEN on HTTP 403.

        Raises:
            HttpResponseError: For any other failure.
        """
        pages = self._client_for(vault_uri).list_properties_of_secrets()
        try:
            # Fetching the first item forces the first page request
            next(iter(pages), None)
        except HttpResponseError as e:
            if classify_remote_error(e) is RemoteErrorKind.FORBIDDEN:
                return AccessOutcome.FORBIDDEN
            raise
        return AccessOutcome.GRANTED
