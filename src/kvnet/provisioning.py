"""Get-or-create provisioning of the virtual network, subnet and vault.

Each "ensure" step attempts a retrieval first; only a "not found" result
leads to creation, followed by a re-read to confirm. Any other failure from
a retrieval or creation call propagates and aborts the run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.keyvault.models import (
    AccessPolicyEntry,
    CreateMode,
    Permissions,
    SecretPermissions,
    Sku,
    SkuFamily,
    SkuName,
    Vault,
    VaultCreateOrUpdateParameters,
    VaultProperties,
)
from azure.mgmt.network.models import (
    AddressSpace,
    ServiceEndpointPropertiesFormat,
    Subnet,
    VirtualNetwork,
)

from .clients import NetworkManagement, VaultManagement
from .errors import ProvisioningError
from .retry import RetryPolicy, retry_http_request

logger = logging.getLogger(__name__)

KEY_VAULT_SERVICE_ENDPOINT = "Microsoft.KeyVault"

ACCESSOR_SECRET_PERMISSIONS: tuple[SecretPermissions, ...] = (
    SecretPermissions.GET,
    SecretPermissions.SET,
    SecretPermissions.LIST,
    SecretPermissions.DELETE,
    SecretPermissions.RECOVER,
    SecretPermissions.BACKUP,
    SecretPermissions.RESTORE,
    SecretPermissions.PURGE,
)


@dataclass
class NetworkProvisionResult:
    """Outcome of ensuring the virtual network and subnet."""

    virtual_network: VirtualNetwork
    vnet_created: bool = False
    subnet_created: bool = False


@dataclass
class VaultProvisionResult:
    """Outcome of ensuring the vault."""

    vault: Vault
    created: bool = False


def build_subnet(subnet_name: str, address_prefix: str) -> Subnet:
    """Subnet with Key Vault enabled as a service endpoint."""
    return Subnet(
        name=subnet_name,
        address_prefix=address_prefix,
        service_endpoints=[ServiceEndpointPropertiesFormat(service=KEY_VAULT_SERVICE_ENDPOINT)],
    )


def build_virtual_network(
    location: str,
    address_space: str,
    subnet_name: str,
    subnet_address_prefix: str,
) -> VirtualNetwork:
    return VirtualNetwork(
        location=location,
        address_space=AddressSpace(address_prefixes=[address_space]),
        subnets=[build_subnet(subnet_name, subnet_address_prefix)],
    )


def build_vault_parameters(
    location: str,
    tenant_id: str,
    accessor_object_id: str | None,
    enable_soft_delete: bool = False,
) -> VaultCreateOrUpdateParameters:
    """Parameters for a new standard-SKU vault.

    Args:
        location: Azure region.
        tenant_id: Tenant the vault authenticates against.
        accessor_object_id: Principal granted secret permissions, if any.
        enable_soft_delete: Request soft delete; left unset otherwise.
    """
    access_policies: list[AccessPolicyEntry] = []
    if accessor_object_id:
        access_policies.append(
            AccessPolicyEntry(
                tenant_id=tenant_id,
                object_id=accessor_object_id,
                permissions=Permissions(secrets=list(ACCESSOR_SECRET_PERMISSIONS)),
            )
        )

    properties = VaultProperties(
        tenant_id=tenant_id,
        sku=Sku(family=SkuFamily.A, name=SkuName.STANDARD),
        access_policies=access_policies,
        enabled_for_deployment=False,
        enabled_for_disk_encryption=False,
        enabled_for_template_deployment=False,
        enable_soft_delete=True if enable_soft_delete else None,
        create_mode=CreateMode.DEFAULT,
    )
    return VaultCreateOrUpdateParameters(location=location, properties=properties)


def has_subnet(vnet: VirtualNetwork, subnet_name: str) -> bool:
    """Match subnets by name only; other properties are not known in advance."""
    target = subnet_name.lower()
    return any(
        subnet.name is not None and subnet.name.lower() == target for subnet in vnet.subnets or []
    )


def ensure_virtual_network(
    network: NetworkManagement,
    resource_group: str,
    vnet_name: str,
    subnet_name: str,
    location: str,
    address_space: str,
    subnet_address_prefix: str,
) -> NetworkProvisionResult:
    """Get or create the virtual network, then make sure the subnet exists.

    Raises:
        HttpResponseError: For any failure other than "not found" on retrieval.
    """
    logger.info(
        f"Checking the existence of vnet '{vnet_name}'",
        extra={"resource_group": resource_group},
    )
    vnet = network.get_virtual_network(resource_group, vnet_name)
    result: NetworkProvisionResult

    if vnet is None:
        logger.info(
            f"Creating vnet '{vnet_name}'",
            extra={"resource_group": resource_group, "address_space": address_space},
        )
        vnet = network.create_or_update_virtual_network(
            resource_group,
            vnet_name,
            build_virtual_network(location, address_space, subnet_name, subnet_address_prefix),
        )
        result = NetworkProvisionResult(virtual_network=vnet, vnet_created=True)
    else:
        result = NetworkProvisionResult(virtual_network=vnet)

    if not has_subnet(vnet, subnet_name):
        logger.info(
            f"Creating subnet '{subnet_name}' in vnet '{vnet_name}'",
            extra={"resource_group": resource_group, "address_prefix": subnet_address_prefix},
        )
        network.create_or_update_subnet(
            resource_group,
            vnet_name,
            subnet_name,
            build_subnet(subnet_name, subnet_address_prefix),
        )
        refreshed = network.get_virtual_network(resource_group, vnet_name)
        if refreshed is None:
            raise ProvisioningError(
                f"Virtual network '{vnet_name}' disappeared after subnet creation"
            )
        result.virtual_network = refreshed
        result.subnet_created = True

    return result


def ensure_vault(
    vaults: VaultManagement,
    resource_group: str,
    vault_name: str,
    parameters_factory: Callable[[], VaultCreateOrUpdateParameters],
    *,
    settle_seconds: float = 0,
    lookup_policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> VaultProvisionResult:
    """Get or create the vault.

    After creation the vault is re-read once DNS has had time to settle;
    lookup_policy absorbs a transient "not found" during that re-read.

    Raises:
        HttpResponseError: For any failure other than "not found" on retrieval.
    """
    logger.info(
        f"Checking the existence of vault '{vault_name}'",
        extra={"resource_group": resource_group},
    )
    vault = vaults.get_vault(resource_group, vault_name)
    if vault is not None:
        return VaultProvisionResult(vault=vault)

    logger.info(
        f"Vault '{vault_name}' does not exist; creating",
        extra={"resource_group": resource_group},
    )
    vaults.create_or_update_vault(resource_group, vault_name, parameters_factory())

    if settle_seconds > 0:
        logger.info(f"Waiting {settle_seconds}s for DNS propagation")
        sleep(settle_seconds)

    def lookup() -> Vault:
        found = vaults.get_vault(resource_group, vault_name)
        if found is None:
            error = ResourceNotFoundError(message=f"Vault '{vault_name}' not found after creation")
            error.status_code = 404
            raise error
        return found

    created = retry_http_request(lookup, "retrieve new vault", lookup_policy, sleep=sleep)
    if created is None:
        raise ProvisioningError(f"Vault '{vault_name}' could not be retrieved after creation")
    return VaultProvisionResult(vault=created, created=True)
