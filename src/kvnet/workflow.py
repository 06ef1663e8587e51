"""Vault network access rule workflow.

Drives one sample run through a fixed sequence of steps:

1. Resolve network coordinates from the subnet resource identifier
2. Ensure the virtual network and subnet exist
3. Ensure the vault exists
4. Compute the ACL diff (vnet rule, IP rule); update only if non-empty
5. Enable default-deny enforcement if the default action is Allow
6. Probe data access, expecting Forbidden
7. Disable enforcement and clear both rule sets
8. Probe data access, expecting success

Steps run one at a time; each Azure call runs on the default executor with a
timeout. Only the expected status of each call ("not found" for lookups,
"forbidden" for the probes) is handled; any other failure ends the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeVar

from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.keyvault.models import NetworkRuleAction, Vault

from .clients import AccessOutcome
from .context import ClientContext
from .errors import (
    ProvisioningError,
    RemoteErrorKind,
    RetryAbortedError,
    classify_remote_error,
)
from .network_acl import (
    clear_rules,
    describe_acl,
    ensure_ip_rule,
    ensure_vnet_rule,
    has_default_action,
    set_enforcement,
)
from .provisioning import build_vault_parameters, ensure_vault, ensure_virtual_network
from .retry import retry_http_request
from .security import log_security_audit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class WorkflowResult:
    """Result of a single sample run."""

    vault_name: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    vnet_created: bool = False
    subnet_created: bool = False
    vault_created: bool = False
    vnet_rule_added: bool = False
    ip_rule_added: bool = False
    acl_update_skipped: bool = False
    enforcement_enabled: bool = False
    access_denied_verified: bool = False
    rules_cleared: bool = False
    access_restored_verified: bool = False
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if the run completed without an error."""
        return self.error is None


class VNetAccessRuleWorkflow:
    """Demonstrates virtual-network based access rules on a key vault."""

    def __init__(self, context: ClientContext) -> None:
        self._context = context
        self._config = context.config

    async def run(self) -> WorkflowResult:
        """Execute the whole workflow once.

        Returns:
            WorkflowResult describing what was done; error is set if a step failed.
        """
        result = WorkflowResult(vault_name=self._config.vault_name)

        logger.info(
            "Starting vault network access rule workflow",
            extra={
                "vault_name": self._config.vault_name,
                "vault_resource_group": self._config.vault_resource_group,
                "vnet_resource_group": self._context.vnet_resource_group,
                "vnet_name": self._context.vnet_name,
                "subnet_name": self._context.subnet_name,
            },
        )

        try:
            await self._ensure_network(result)
            vault = await self._ensure_vault(result)
            vault = await self._apply_access_rules(vault, result)
            self._log_rules(vault)
            vault = await self._enable_enforcement(vault, result)
            await self._verify_access_denied(vault, result)
            vault = await self._clear_access_rules(vault, result)
            await self._verify_access_restored(vault, result)
        except RetryAbortedError as e:
            logger.error("Request aborted", extra={"error": str(e), "status_code": e.status_code})
            result.error = e
        except HttpResponseError as e:
            logger.error(
                "Azure API error",
                extra={"error": str(e), "status_code": e.status_code},
            )
            result.error = e
        except AzureError as e:
            logger.error("Azure error", extra={"error": str(e)})
            result.error = e
        except ProvisioningError as e:
            logger.error("Provisioning failed", extra={"error": str(e)})
            result.error = e
        except TimeoutError as e:
            logger.error("Azure operation timed out", extra={"error": str(e)})
            result.error = e

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _ensure_network(self, result: WorkflowResult) -> None:
        provisioned = await self._call(
            lambda: ensure_virtual_network(
                self._context.network_management,
                self._context.vnet_resource_group,
                self._context.vnet_name,
                self._context.subnet_name,
                location=self._config.vault_location,
                address_space=self._config.vnet_address_space,
                subnet_address_prefix=self._config.subnet_address_space,
            ),
            "ensure virtual network",
        )
        result.vnet_created = provisioned.vnet_created
        result.subnet_created = provisioned.subnet_created

    async def _ensure_vault(self, result: WorkflowResult) -> Vault:
        config = self._config
        provisioned = await self._call(
            lambda: ensure_vault(
                self._context.vault_management,
                config.vault_resource_group,
                config.vault_name,
                lambda: build_vault_parameters(
                    config.vault_location,
                    config.tenant_id,
                    config.vault_accessor_object_id,
                    enable_soft_delete=config.enable_soft_delete,
                ),
                settle_seconds=config.dns_settle_seconds,
                lookup_policy=config.vault_lookup_retry_policy(),
            ),
            "ensure vault",
        )
        result.vault_created = provisioned.created
        return provisioned.vault

    async def _apply_access_rules(self, vault: Vault, result: WorkflowResult) -> Vault:
        """Add the vnet and IP rules, updating the vault only if something changed."""
        properties = vault.properties
        acl, vnet_added = ensure_vnet_rule(properties.network_acls, self._config.subnet_resource_id)
        acl, ip_added = ensure_ip_rule(acl, self._config.ip_address)
        properties.network_acls = acl

        result.vnet_rule_added = vnet_added
        result.ip_rule_added = ip_added

        if not (vnet_added or ip_added):
            result.acl_update_skipped = True
            logger.info(
                "Network access rules already present; skipping update",
                extra={"vault_name": self._config.vault_name},
            )
            return vault

        updated = await self._update_vault(vault, "add network access rules")
        log_security_audit_event(
            "acl_update",
            target_resource=vault.id,
            action="add_rules",
            result="success",
            vnet_rule_added=vnet_added,
            ip_rule_added=ip_added,
        )
        return updated

    async def _enable_enforcement(self, vault: Vault, result: WorkflowResult) -> Vault:
        acl = vault.properties.network_acls
        if not has_default_action(acl, NetworkRuleAction.ALLOW):
            logger.info("Network ACL enforcement already enabled")
            result.enforcement_enabled = True
            return vault

        acl, changed = set_enforcement(acl, enabled=True)
        vault.properties.network_acls = acl
        if changed:
            vault = await self._update_vault(vault, "enable network ACL enforcement")
            log_security_audit_event(
                "acl_update",
                target_resource=vault.id,
                action="enable_enforcement",
                result="success",
            )
        result.enforcement_enabled = True
        return vault

    async def _verify_access_denied(self, vault: Vault, result: WorkflowResult) -> None:
        """Probe the vault's content; Forbidden confirms enforcement."""
        vault_uri = vault.properties.vault_uri
        logger.info(
            "Attempting to access the vault's content after enabling network ACL enforcement; "
            "this should fail unless the client matches a network access rule",
            extra={"vault_uri": vault_uri},
        )
        outcome = await self._call(
            lambda: self._context.vault_data.probe_secrets(vault_uri),
            "probe vault content (expect forbidden)",
        )
        result.access_denied_verified = outcome is AccessOutcome.FORBIDDEN
        log_security_audit_event(
            "access_probe",
            target_resource=vault_uri,
            action="list_secrets",
            result=outcome.value,
        )
        if result.access_denied_verified:
            logger.info("Access was denied as expected")
        else:
            logger.warning(
                "Access was granted while enforcement is enabled; the client may match "
                "a rule or the ACL change has not propagated yet",
                extra={"vault_uri": vault_uri},
            )

    async def _clear_access_rules(self, vault: Vault, result: WorkflowResult) -> Vault:
        logger.info(
            "Disabling network access rule enforcement and removing rules",
            extra={
                "vault_name": self._config.vault_name,
                "vault_resource_group": self._config.vault_resource_group,
            },
        )
        vault.properties.network_acls = clear_rules(vault.properties.network_acls)
        updated = await self._update_vault(vault, "remove network access rules")
        result.rules_cleared = True
        log_security_audit_event(
            "acl_update",
            target_resource=vault.id,
            action="clear_rules",
            result="success",
        )
        return updated

    async def _verify_access_restored(self, vault: Vault, result: WorkflowResult) -> None:
        """Probe the vault's content; retries absorb ACL propagation lag."""
        vault_uri = vault.properties.vault_uri
        data = self._context.vault_data
        policy = self._config.probe_retry_policy()
        logger.info(
            "Attempting to access the vault's content after disabling enforcement",
            extra={"vault_uri": vault_uri},
        )
        try:
            await self._call(
                lambda: retry_http_request(
                    lambda: data.list_secrets(vault_uri),
                    "list secrets",
                    policy,
                ),
                "probe vault content (expect success)",
                # The retry sequence sleeps on the executor thread
                timeout_seconds=self._config.operation_timeout_seconds
                + policy.initial_backoff_seconds * 2**policy.max_attempts,
            )
        except HttpResponseError as e:
            if classify_remote_error(e) is not RemoteErrorKind.FORBIDDEN:
                raise
            logger.warning(
                "Access is still forbidden after retries; the ACL change may not have "
                "propagated yet",
                extra={"vault_uri": vault_uri, "attempts": policy.max_attempts},
            )
            log_security_audit_event(
                "access_probe",
                target_resource=vault_uri,
                action="list_secrets",
                result=AccessOutcome.FORBIDDEN.value,
            )
            return

        result.access_restored_verified = True
        log_security_audit_event(
            "access_probe",
            target_resource=vault_uri,
            action="list_secrets",
            result=AccessOutcome.GRANTED.value,
        )
        logger.info("Verified access was restored")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _update_vault(self, vault: Vault, operation_name: str) -> Vault:
        logger.info(
            f"Updating vault '{self._config.vault_name}': {operation_name}",
            extra={
                "vault_resource_group": self._config.vault_resource_group,
                "network_acl": describe_acl(vault.properties.network_acls),
            },
        )
        return await self._call(
            lambda: self._context.vault_management.update_network_acl(
                vault,
                self._config.vault_resource_group,
                self._config.vault_name,
            ),
            operation_name,
        )

    async def _call(
        self,
        operation: Callable[[], T],
        operation_name: str,
        timeout_seconds: float | None = None,
    ) -> T:
        """Run a blocking Azure call on the executor with a timeout.

        Raises:
            TimeoutError: If the call exceeds the timeout.
            HttpResponseError: If the Azure API returns an unexpected error.
        """
        timeout = timeout_seconds or self._config.operation_timeout_seconds
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, operation), timeout=timeout)
        except TimeoutError:
            logger.error(
                f"{operation_name} timed out",
                extra={"timeout_seconds": timeout},
            )
            raise

    def _log_rules(self, vault: Vault) -> None:
        summary: dict[str, Any] = describe_acl(vault.properties.network_acls)
        logger.info(
            f"Network access rules on vault '{self._config.vault_name}'",
            extra={
                "vault_resource_group": self._config.vault_resource_group,
                "vnet_rules": summary.get("vnet_rules", []),
                "ip_rules": summary.get("ip_rules", []),
            },
        )

    def _log_result(self, result: WorkflowResult) -> None:
        log_data = {
            "vault_name": result.vault_name,
            "duration_seconds": result.duration_seconds,
            "vnet_created": result.vnet_created,
            "subnet_created": result.subnet_created,
            "vault_created": result.vault_created,
            "vnet_rule_added": result.vnet_rule_added,
            "ip_rule_added": result.ip_rule_added,
            "acl_update_skipped": result.acl_update_skipped,
            "access_denied_verified": result.access_denied_verified,
            "access_restored_verified": result.access_restored_verified,
        }
        if result.success:
            logger.info("Workflow completed", extra=log_data)
        else:
            log_data["error"] = str(result.error)
            log_data["error_type"] = type(result.error).__name__
            logger.error("Workflow failed", extra=log_data)
