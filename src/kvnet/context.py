"""Run context: configuration plus the credential and clients it owns.

The credential and clients are created lazily on first use and live as long
as the context. Nothing is cached at module level, so two contexts never
share authentication state.
"""

from __future__ import annotations

from functools import cached_property

from azure.core.credentials import TokenCredential

from .clients import NetworkManagement, VaultData, VaultManagement
from .config import Config
from .resource_id import ResourceIdentifier
from .security import build_credential


class ClientContext:
    """Azure context of one sample run: tenant, subscription, identity, clients."""

    def __init__(self, config: Config) -> None:
        self._config = config
        # Parsed once; Config validation already rejected malformed ids
        self._subnet = config.subnet

    @property
    def config(self) -> Config:
        return self._config

    @property
    def subnet(self) -> ResourceIdentifier:
        return self._subnet

    @property
    def vnet_resource_group(self) -> str:
        return self._subnet.resource_group

    @property
    def vnet_name(self) -> str:
        return self._subnet.resource_name

    @property
    def subnet_name(self) -> str:
        # parse_subnet_id guarantees a child resource
        assert self._subnet.child_name is not None
        return self._subnet.child_name

    @cached_property
    def credential(self) -> TokenCredential:
        return build_credential(self._config)

    @cached_property
    def vault_management(self) -> VaultManagement:
        return VaultManagement(self.credential, self._config.subscription_id)

    @cached_property
    def network_management(self) -> NetworkManagement:
        # The subnet may live in another subscription than the vault
        return NetworkManagement(self.credential, self._subnet.subscription)

    @cached_property
    def vault_data(self) -> VaultData:
        return VaultData(self.credential)

    def close(self) -> None:
        """Release the clients and the credential that were created."""
        for name in ("vault_data", "network_management", "vault_management"):
            client = self.__dict__.get(name)
            if client is not None:
                client.close()
        credential = self.__dict__.get("credential")
        close = getattr(credential, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> ClientContext:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
