"""Parsing of Azure resource identifiers into named coordinates.

Only the fixed shape used by this sample is understood:

    /subscriptions/{sub}/resourceGroups/{rg}/providers/{provider}/{type}/{name}
    /subscriptions/{sub}/resourceGroups/{rg}/providers/{provider}/{type}/{name}/{childType}/{childName}

At most one child resource level is supported. Tokenizing stops after ten
segments, so anything deeper ends up inside the child name. There is no
percent-decoding and no general URL parsing.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidResourceIdentifier

SUBSCRIPTIONS_KEY = "subscriptions"
RESOURCE_GROUPS_KEY = "resourceGroups"
PROVIDERS_KEY = "providers"

MIN_TOKENS = 8
MAX_TOKENS = 10

NETWORK_PROVIDER = "Microsoft.Network"
VIRTUAL_NETWORKS_TYPE = "virtualNetworks"
SUBNETS_TYPE = "subnets"

INVALID_MESSAGE = "the specified resource identifier is not valid"


@dataclass(frozen=True)
class ResourceIdentifier:
    """Typed coordinates of a resource path."""

    subscription: str
    resource_group: str
    provider: str
    resource_type: str
    resource_name: str
    child_type: str | None = None
    child_name: str | None = None

    @property
    def has_child(self) -> bool:
        return self.child_type is not None

    @property
    def parent_id(self) -> str:
        """Identifier of the top-level resource, without the child segments."""
        return (
            f"/{SUBSCRIPTIONS_KEY}/{self.subscription}"
            f"/{RESOURCE_GROUPS_KEY}/{self.resource_group}"
            f"/{PROVIDERS_KEY}/{self.provider}/{self.resource_type}/{self.resource_name}"
        )

    def __str__(self) -> str:
        if self.has_child:
            return f"{self.parent_id}/{self.child_type}/{self.child_name}"
        return self.parent_id


def _tokenize(path: str) -> list[str]:
    # Non-empty segments, at most MAX_TOKENS; the last token keeps the remainder.
    tokens: list[str] = []
    remainder = path
    while remainder and len(tokens) < MAX_TOKENS - 1:
        head, sep, remainder = remainder.partition("/")
        if head:
            tokens.append(head)
        if not sep:
            remainder = ""
    remainder = remainder.strip("/")
    if remainder:
        tokens.append(remainder)
    return tokens


def _keyword_matches(token: str, keyword: str) -> bool:
    return token.lower() == keyword.lower()


def parse(path: str | None) -> ResourceIdentifier:
    """Parse a resource path into a ResourceIdentifier.

    Args:
        path: Resource identifier string.

    Returns:
        The parsed identifier; child fields are None for 8-segment paths.

    Raises:
        InvalidResourceIdentifier: If the path is empty, has a segment count
            other than 8 or 10, or a keyword segment is misplaced.
    """
    if path is None or not path.strip():
        raise InvalidResourceIdentifier("resource identifier must not be empty")

    tokens = _tokenize(path)

    if len(tokens) < MIN_TOKENS:
        raise InvalidResourceIdentifier(f"{INVALID_MESSAGE}: {path}")

    # example:
    # /subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/kv-samples
    #     /providers/Microsoft.Network/virtualNetworks/kvsample/subnets/subnet-0
    if not _keyword_matches(tokens[0], SUBSCRIPTIONS_KEY):
        raise InvalidResourceIdentifier(f"{INVALID_MESSAGE}: expected '{SUBSCRIPTIONS_KEY}'")
    if not _keyword_matches(tokens[2], RESOURCE_GROUPS_KEY):
        raise InvalidResourceIdentifier(f"{INVALID_MESSAGE}: expected '{RESOURCE_GROUPS_KEY}'")
    if not _keyword_matches(tokens[4], PROVIDERS_KEY):
        raise InvalidResourceIdentifier(f"{INVALID_MESSAGE}: expected '{PROVIDERS_KEY}'")

    child_type: str | None = None
    child_name: str | None = None
    if len(tokens) > MIN_TOKENS:
        if len(tokens) < MAX_TOKENS:
            raise InvalidResourceIdentifier(f"{INVALID_MESSAGE}: incomplete child resource")
        child_type = tokens[8]
        child_name = tokens[9]

    return ResourceIdentifier(
        subscription=tokens[1],
        resource_group=tokens[3],
        provider=tokens[5],
        resource_type=tokens[6],
        resource_name=tokens[7],
        child_type=child_type,
        child_name=child_name,
    )


def is_virtual_network_or_subnet(rid: ResourceIdentifier) -> bool:
    """Check whether the identifier designates a virtual network or one of its subnets."""
    if rid.provider.lower() != NETWORK_PROVIDER.lower():
        return False
    if rid.resource_type.lower() != VIRTUAL_NETWORKS_TYPE.lower():
        return False
    return rid.child_type is None or rid.child_type.lower() == SUBNETS_TYPE.lower()


def parse_subnet_id(path: str | None) -> ResourceIdentifier:
    """Parse a path and require it to name a subnet of a virtual network.

    Raises:
        InvalidResourceIdentifier: If the path is invalid or not a subnet.
    """
    rid = parse(path)
    if not is_virtual_network_or_subnet(rid) or not rid.has_child:
        raise InvalidResourceIdentifier(
            f"resource identifier does not designate a virtual network subnet: {path}"
        )
    return rid
