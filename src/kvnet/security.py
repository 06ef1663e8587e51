"""Credential construction and security audit logging.

There is no process-wide cached credential. A credential is built on demand
from the configuration and owned by the run context that asked for it
(see context.ClientContext). Two credential types are supported:

- ClientSecretCredential when an application secret is configured
- ManagedIdentityCredential otherwise (optionally user-assigned via client id)

Secrets are never logged; client ids are truncated in log records.
"""

from __future__ import annotations

import logging

from azure.core.credentials import TokenCredential
from azure.identity import ClientSecretCredential, ManagedIdentityCredential

from .config import Config

logger = logging.getLogger(__name__)


def _redact(value: str) -> str:
    return value[:8] + "..." if len(value) > 8 else value


def build_credential(config: Config) -> TokenCredential:
    """Build the credential used for management and data-plane calls.

    Args:
        config: Validated sample configuration.

    Returns:
        A token credential for the configured identity.
    """
    if config.uses_client_secret:
        # Config validation guarantees client_id is set alongside the secret
        assert config.client_id is not None
        logger.info(
            "Using application credentials",
            extra={
                "tenant_id": config.tenant_id,
                "client_id": _redact(config.client_id),
            },
        )
        return ClientSecretCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )

    if config.client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": _redact(config.client_id)},
        )
        return ManagedIdentityCredential(client_id=config.client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()


def log_security_audit_event(
    event_type: str,
    target_resource: str | None = None,
    action: str | None = None,
    result: str | None = None,
    **details: object,
) -> None:
    """Log a security-relevant audit event.

    Args:
        event_type: Type of security event (acl_update, access_probe, ...).
        target_resource: Azure resource being changed or accessed.
        action: Action being performed.
        result: Result of the action (success, denied, granted).
        **details: Additional structured fields.
    """
    logger.info(
        f"Security audit: {event_type}",
        extra={
            "security_audit": True,
            "event_type": event_type,
            "target_resource": target_resource,
            "action": action,
            "result": result,
            **details,
        },
    )
