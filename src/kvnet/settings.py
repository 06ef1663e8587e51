"""Settings file loading with validation.

A settings file is an alternative to environment variables. It is YAML,
validated by a pydantic model, and converted into a Config:

    tenantId: 00000000-0000-0000-0000-000000000000
    subscriptionId: 00000000-0000-0000-0000-000000000000
    vault:
      resourceGroup: kv-samples
      name: keyvaultsample
      location: southcentralus
      accessorObjectId: 00000000-0000-0000-0000-000000000000
    network:
      subnetResourceId: /subscriptions/.../virtualNetworks/kvsample/subnets/subnet-0
      ipAddress: 203.0.113.10

The application secret is never read from the file; it only comes from
AZURE_CLIENT_SECRET.

SECURITY: File size is checked before reading.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .config import (
    DEFAULT_DNS_SETTLE_SECONDS,
    DEFAULT_IP_ADDRESS,
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    DEFAULT_PROBE_INITIAL_BACKOFF_SECONDS,
    DEFAULT_PROBE_MAX_ATTEMPTS,
    DEFAULT_SUBNET_ADDRESS_SPACE,
    DEFAULT_VAULT_LOCATION,
    DEFAULT_VAULT_NAME,
    DEFAULT_VNET_ADDRESS_SPACE,
    Config,
    ConfigurationError,
)
from .resource_id import parse_subnet_id

logger = logging.getLogger(__name__)

MAX_SETTINGS_FILE_SIZE_BYTES = 64 * 1024


class SettingsLoadError(Exception):
    """Raised when a settings file cannot be loaded or fails validation."""

    pass


class VaultSettings(BaseModel):
    """Vault coordinates."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    resource_group: str = Field(alias="resourceGroup", min_length=1, max_length=90)
    name: str = DEFAULT_VAULT_NAME
    location: str = DEFAULT_VAULT_LOCATION
    accessor_object_id: str | None = Field(None, alias="accessorObjectId")
    enable_soft_delete: bool = Field(False, alias="enableSoftDelete")


class NetworkSettings(BaseModel):
    """Network coordinates; everything derives from the subnet resource id."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    subnet_resource_id: str = Field(alias="subnetResourceId")
    ip_address: str = Field(DEFAULT_IP_ADDRESS, alias="ipAddress")
    vnet_address_space: str = Field(DEFAULT_VNET_ADDRESS_SPACE, alias="vnetAddressSpace")
    subnet_address_space: str = Field(DEFAULT_SUBNET_ADDRESS_SPACE, alias="subnetAddressSpace")


class TimingSettings(BaseModel):
    """Waits, timeouts and probe retries."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    dns_settle_seconds: int = Field(DEFAULT_DNS_SETTLE_SECONDS, alias="dnsSettleSeconds", ge=0)
    operation_timeout_seconds: int = Field(
        DEFAULT_OPERATION_TIMEOUT_SECONDS, alias="operationTimeoutSeconds"
    )
    probe_max_attempts: int = Field(DEFAULT_PROBE_MAX_ATTEMPTS, alias="probeMaxAttempts", ge=1)
    probe_initial_backoff_seconds: int = Field(
        DEFAULT_PROBE_INITIAL_BACKOFF_SECONDS, alias="probeInitialBackoffSeconds", ge=0
    )


class SampleSettings(BaseModel):
    """Top-level settings file model."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    tenant_id: str = Field(alias="tenantId")
    subscription_id: str = Field(alias="subscriptionId")
    client_id: str | None = Field(None, alias="clientId")
    vault: VaultSettings
    network: NetworkSettings
    timing: TimingSettings = Field(default_factory=TimingSettings)

    def to_config(self, client_secret: str | None = None) -> Config:
        """Build a validated Config.

        Raises:
            ConfigurationError: If cross-field validation fails.
        """
        return Config(
            tenant_id=self.tenant_id,
            subscription_id=self.subscription_id,
            vault_resource_group=self.vault.resource_group,
            subnet_resource_id=self.network.subnet_resource_id,
            vault_name=self.vault.name,
            vault_location=self.vault.location,
            vault_accessor_object_id=self.vault.accessor_object_id,
            enable_soft_delete=self.vault.enable_soft_delete,
            client_id=self.client_id,
            client_secret=client_secret,
            ip_address=self.network.ip_address,
            vnet_address_space=self.network.vnet_address_space,
            subnet_address_space=self.network.subnet_address_space,
            dns_settle_seconds=self.timing.dns_settle_seconds,
            operation_timeout_seconds=self.timing.operation_timeout_seconds,
            probe_max_attempts=self.timing.probe_max_attempts,
            probe_initial_backoff_seconds=self.timing.probe_initial_backoff_seconds,
        )


def load_settings(path: Path) -> Config:
    """Load a settings file and convert it into a Config.

    Args:
        path: Path to the YAML settings file.

    Returns:
        Validated configuration. The client secret is taken from
        AZURE_CLIENT_SECRET if set.

    Raises:
        SettingsLoadError: If the file cannot be read, parsed or validated.
        InvalidResourceIdentifier: If network.subnetResourceId is not a subnet id.
    """
    if not path.exists():
        raise SettingsLoadError(f"Settings file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SettingsLoadError(f"Failed to stat settings file {path}: {e}") from e

    if file_size > MAX_SETTINGS_FILE_SIZE_BYTES:
        raise SettingsLoadError(
            f"Settings file exceeds maximum size of {MAX_SETTINGS_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SettingsLoadError(f"Failed to read settings file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SettingsLoadError(f"Settings file must contain a YAML mapping: {path}")

    try:
        settings = SampleSettings.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        error_list = "\n".join(errors)
        raise SettingsLoadError(f"Validation failed for {path}:\n{error_list}") from e

    parse_subnet_id(settings.network.subnet_resource_id)

    try:
        config = settings.to_config(client_secret=os.environ.get("AZURE_CLIENT_SECRET") or None)
    except ConfigurationError as e:
        raise SettingsLoadError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return config
