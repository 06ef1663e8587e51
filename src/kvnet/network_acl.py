"""Idempotent reconciliation of a vault's network access-control list.

The ACL is the management-plane NetworkRuleSet of a vault. It may be absent
on a freshly created vault, which means "no ACL configured, allow all".
Every ensure_* function reports whether it mutated the ACL so callers can
skip the remote update when nothing changed.

Comparison rules:
- vnet rules hold subnet resource ids and are compared ignoring case
- IP rules hold addresses or CIDR ranges and are compared exactly
"""

from __future__ import annotations

from typing import Any

from azure.mgmt.keyvault.models import (
    IPRule,
    NetworkRuleAction,
    NetworkRuleBypassOptions,
    NetworkRuleSet,
    VirtualNetworkRule,
)


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _new_acl() -> NetworkRuleSet:
    return NetworkRuleSet(
        bypass=NetworkRuleBypassOptions.AZURE_SERVICES,  # do not enforce for Azure services
        default_action=NetworkRuleAction.ALLOW,
        ip_rules=[],
        virtual_network_rules=[],
    )


def has_default_action(acl: NetworkRuleSet | None, action: NetworkRuleAction) -> bool:
    """Check the ACL's default action, ignoring case. An absent ACL allows all."""
    if acl is None or acl.default_action is None:
        return action == NetworkRuleAction.ALLOW
    return _enum_value(acl.default_action).lower() == _enum_value(action).lower()


def has_matching_vnet_rule(acl: NetworkRuleSet | None, subnet_resource_id: str) -> bool:
    """Check for a vnet rule naming the subnet (case-insensitive)."""
    if acl is None:
        return False
    target = subnet_resource_id.lower()
    return any(
        rule.id is not None and rule.id.lower() == target
        for rule in acl.virtual_network_rules or []
    )


def has_matching_ip_rule(acl: NetworkRuleSet | None, ip_address: str) -> bool:
    """Check for an IP rule with exactly this value (case-sensitive)."""
    if acl is None:
        return False
    return any(rule.value == ip_address for rule in acl.ip_rules or [])


def ensure_vnet_rule(
    acl: NetworkRuleSet | None, subnet_resource_id: str
) -> tuple[NetworkRuleSet, bool]:
    """Make sure the ACL allows the subnet.

    Args:
        acl: Current ACL, or None when the vault has none.
        subnet_resource_id: Subnet resource id to allow.

    Returns:
        Tuple of (acl, changed). The ACL is created with bypass=AzureServices
        and default action Allow when absent.
    """
    if acl is None:
        acl = _new_acl()
    if acl.virtual_network_rules is None:
        acl.virtual_network_rules = []
    if has_matching_vnet_rule(acl, subnet_resource_id):
        return acl, False
    acl.virtual_network_rules.append(VirtualNetworkRule(id=subnet_resource_id))
    return acl, True


def ensure_ip_rule(acl: NetworkRuleSet | None, ip_address: str) -> tuple[NetworkRuleSet, bool]:
    """Make sure the ACL allows the IP address or range.

    Returns:
        Tuple of (acl, changed).
    """
    if acl is None:
        acl = _new_acl()
    if acl.ip_rules is None:
        acl.ip_rules = []
    if has_matching_ip_rule(acl, ip_address):
        return acl, False
    acl.ip_rules.append(IPRule(value=ip_address))
    return acl, True


def set_enforcement(acl: NetworkRuleSet | None, enabled: bool) -> tuple[NetworkRuleSet, bool]:
    """Switch default-deny enforcement on or off.

    Returns:
        Tuple of (acl, changed). changed is False when the default action
        already matches, so no remote update is needed.
    """
    target = NetworkRuleAction.DENY if enabled else NetworkRuleAction.ALLOW
    if acl is not None and has_default_action(acl, target):
        return acl, False

    if acl is None:
        acl = _new_acl()
        if not enabled:
            return acl, False
    acl.default_action = target
    return acl, True


def clear_rules(acl: NetworkRuleSet | None) -> NetworkRuleSet:
    """Remove all vnet and IP rules and disable enforcement."""
    if acl is None:
        return _new_acl()
    acl.default_action = NetworkRuleAction.ALLOW
    acl.ip_rules = []
    acl.virtual_network_rules = []
    return acl


def describe_acl(acl: NetworkRuleSet | None) -> dict[str, Any]:
    """Summarize an ACL for structured logging."""
    if acl is None:
        return {"configured": False}
    return {
        "configured": True,
        "default_action": _enum_value(acl.default_action),
        "bypass": _enum_value(acl.bypass),
        "vnet_rules": [rule.id for rule in acl.virtual_network_rules or []],
        "ip_rules": [rule.value for rule in acl.ip_rules or []],
    }
