"""Configuration management with validation.

All inputs are validated at load time so a bad value fails before any
Azure API call is made. Network coordinates (vnet resource group, vnet name,
subnet name) are not configured separately: they are derived from the single
subnet resource identifier.
"""

from __future__ import annotations

import ipaddress
import os
import re
from dataclasses import dataclass, field

from .errors import InvalidResourceIdentifier
from .resource_id import ResourceIdentifier, parse_subnet_id
from .retry import RetryPolicy


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Defaults
DEFAULT_VAULT_LOCATION = "southcentralus"
DEFAULT_VAULT_NAME = "keyvaultsample"
DEFAULT_IP_ADDRESS = "203.0.113.10"
DEFAULT_VNET_ADDRESS_SPACE = "10.1.0.0/16"
DEFAULT_SUBNET_ADDRESS_SPACE = "10.1.0.0/24"

# Timing
DEFAULT_DNS_SETTLE_SECONDS = 10
DEFAULT_OPERATION_TIMEOUT_SECONDS = 300
MIN_OPERATION_TIMEOUT_SECONDS = 10
MAX_OPERATION_TIMEOUT_SECONDS = 1800

# Data-plane probe retries (ACL changes take a while to propagate)
DEFAULT_PROBE_MAX_ATTEMPTS = 5
DEFAULT_PROBE_INITIAL_BACKOFF_SECONDS = 5
MAX_PROBE_ATTEMPTS = 10

# Input validation patterns
VALID_GUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"
VALID_VAULT_NAME_PATTERN = r"^[a-zA-Z][a-zA-Z0-9-]{1,22}[a-zA-Z0-9]$"
MAX_RESOURCE_GROUP_NAME_LENGTH = 90


@dataclass(frozen=True)
class Config:
    """Sample configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError listing every problem found.
    """

    # Required fields
    tenant_id: str
    subscription_id: str
    vault_resource_group: str
    subnet_resource_id: str

    # Vault coordinates
    vault_name: str = DEFAULT_VAULT_NAME
    vault_location: str = DEFAULT_VAULT_LOCATION
    vault_accessor_object_id: str | None = None
    enable_soft_delete: bool = False

    # Application credentials; without a secret a managed identity is used
    client_id: str | None = None
    client_secret: str | None = field(default=None, repr=False)

    # Network
    ip_address: str = DEFAULT_IP_ADDRESS
    vnet_address_space: str = DEFAULT_VNET_ADDRESS_SPACE
    subnet_address_space: str = DEFAULT_SUBNET_ADDRESS_SPACE

    # Timing
    dns_settle_seconds: int = DEFAULT_DNS_SETTLE_SECONDS
    operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS
    probe_max_attempts: int = DEFAULT_PROBE_MAX_ATTEMPTS
    probe_initial_backoff_seconds: int = DEFAULT_PROBE_INITIAL_BACKOFF_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.tenant_id:
            errors.append("AZURE_TENANT_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.tenant_id.lower()):
            errors.append(f"AZURE_TENANT_ID must be a valid GUID: {self.tenant_id}")

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not self.vault_resource_group:
            errors.append("VAULT_RESOURCE_GROUP is required")
        elif len(self.vault_resource_group) > MAX_RESOURCE_GROUP_NAME_LENGTH:
            errors.append(
                f"VAULT_RESOURCE_GROUP exceeds maximum length of {MAX_RESOURCE_GROUP_NAME_LENGTH}"
            )

        if not re.match(VALID_VAULT_NAME_PATTERN, self.vault_name):
            errors.append(f"VAULT_NAME must be 3-24 alphanumerics or hyphens: {self.vault_name}")

        if not re.match(VALID_LOCATION_PATTERN, self.vault_location.lower()):
            errors.append(f"VAULT_LOCATION must be a valid Azure region: {self.vault_location}")

        if not self.subnet_resource_id:
            errors.append("VNET_SUBNET_RESOURCE_ID is required")
        else:
            try:
                parse_subnet_id(self.subnet_resource_id)
            except InvalidResourceIdentifier as e:
                errors.append(f"VNET_SUBNET_RESOURCE_ID is invalid: {e}")

        if self.client_secret and not self.client_id:
            errors.append("AZURE_CLIENT_ID is required when AZURE_CLIENT_SECRET is set")

        if self.vault_accessor_object_id and not re.match(
            VALID_GUID_PATTERN, self.vault_accessor_object_id.lower()
        ):
            errors.append(
                f"VAULT_ACCESSOR_OBJECT_ID must be a valid GUID: {self.vault_accessor_object_id}"
            )

        try:
            ipaddress.ip_network(self.ip_address, strict=False)
        except ValueError:
            errors.append(f"ACL_IP_ADDRESS must be an IP address or CIDR range: {self.ip_address}")

        for name, value in (
            ("VNET_ADDRESS_SPACE", self.vnet_address_space),
            ("SUBNET_ADDRESS_SPACE", self.subnet_address_space),
        ):
            try:
                ipaddress.ip_network(value)
            except ValueError:
                errors.append(f"{name} must be a CIDR range: {value}")

        if self.dns_settle_seconds < 0:
            errors.append("DNS_SETTLE_SECONDS cannot be negative")

        if not (
            MIN_OPERATION_TIMEOUT_SECONDS
            <= self.operation_timeout_seconds
            <= MAX_OPERATION_TIMEOUT_SECONDS
        ):
            errors.append(
                f"OPERATION_TIMEOUT must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
            )

        if not (1 <= self.probe_max_attempts <= MAX_PROBE_ATTEMPTS):
            errors.append(f"PROBE_MAX_ATTEMPTS must be between 1 and {MAX_PROBE_ATTEMPTS}")

        if self.probe_initial_backoff_seconds < 0:
            errors.append("PROBE_INITIAL_BACKOFF cannot be negative")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def subnet(self) -> ResourceIdentifier:
        """Parsed subnet coordinates (vnet resource group, vnet name, subnet name)."""
        return parse_subnet_id(self.subnet_resource_id)

    @property
    def uses_client_secret(self) -> bool:
        return bool(self.client_secret)

    def probe_retry_policy(self) -> RetryPolicy:
        """Retry policy for the access probe after enforcement is lifted."""
        return RetryPolicy(
            initial_backoff_seconds=self.probe_initial_backoff_seconds,
            max_attempts=self.probe_max_attempts,
            retry_on=frozenset({403}),
            abort_on=frozenset({401}),
        )

    def vault_lookup_retry_policy(self) -> RetryPolicy:
        """Retry policy for re-reading a vault right after creation."""
        return RetryPolicy(
            initial_backoff_seconds=max(1, self.dns_settle_seconds // 2),
            max_attempts=3,
            retry_on=frozenset({404}),
            abort_on=frozenset({400, 401, 403}),
        )

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_TENANT_ID: Entra ID tenant
            AZURE_SUBSCRIPTION_ID: Subscription holding the vault
            AZURE_CLIENT_ID: Application (or user-assigned identity) client id
            AZURE_CLIENT_SECRET: Application secret; omit to use managed identity
            VAULT_RESOURCE_GROUP: Resource group of the vault
            VAULT_NAME: Vault name (default: keyvaultsample)
            VAULT_LOCATION: Vault location (default: southcentralus)
            VAULT_ACCESSOR_OBJECT_ID: Object id granted secret permissions on create
            VNET_SUBNET_RESOURCE_ID: Subnet resource id; all network coordinates derive from it
            ACL_IP_ADDRESS: IPv4 address or CIDR range for the IP rule
            ENABLE_SOFT_DELETE: Create the vault with soft delete (default: false)
            DNS_SETTLE_SECONDS: Wait after vault creation (default: 10)
            OPERATION_TIMEOUT: Timeout per Azure call in seconds (default: 300)
            PROBE_MAX_ATTEMPTS: Attempts for the access-restored probe (default: 5)
            PROBE_INITIAL_BACKOFF: Initial probe backoff in seconds (default: 5)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            tenant_id=os.environ.get("AZURE_TENANT_ID", ""),
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            vault_resource_group=os.environ.get("VAULT_RESOURCE_GROUP", ""),
            subnet_resource_id=os.environ.get("VNET_SUBNET_RESOURCE_ID", ""),
            vault_name=os.environ.get("VAULT_NAME") or DEFAULT_VAULT_NAME,
            vault_location=os.environ.get("VAULT_LOCATION") or DEFAULT_VAULT_LOCATION,
            vault_accessor_object_id=os.environ.get("VAULT_ACCESSOR_OBJECT_ID") or None,
            enable_soft_delete=get_bool("ENABLE_SOFT_DELETE", False),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            client_secret=os.environ.get("AZURE_CLIENT_SECRET") or None,
            ip_address=os.environ.get("ACL_IP_ADDRESS") or DEFAULT_IP_ADDRESS,
            dns_settle_seconds=get_int("DNS_SETTLE_SECONDS", DEFAULT_DNS_SETTLE_SECONDS),
            operation_timeout_seconds=get_int(
                "OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS
            ),
            probe_max_attempts=get_int("PROBE_MAX_ATTEMPTS", DEFAULT_PROBE_MAX_ATTEMPTS),
            probe_initial_backoff_seconds=get_int(
                "PROBE_INITIAL_BACKOFF", DEFAULT_PROBE_INITIAL_BACKOFF_SECONDS
            ),
        )
