"""
Entitlement hierarchy builder.

Raw entitlement names follow the ``product-environment-role`` convention.
One build pass folds the raw entitlements into two synthetic levels:

- product nodes keyed ``product``, covering every environment and role
- role nodes keyed ``product-role``, covering every environment

plus one leaf record per raw entitlement. Aggregation is pure; the only
remote side effect of a pass (marking raw entitlements requestable) lives
in ``RequestableMarker`` and runs as a separate stage.
"""

from typing import Dict, Iterable, List, Optional

from shared.errors import ConnectorException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .models import (
    EntitlementHierarchy, EntitlementName, LeafEntitlementRecord,
    RawEntitlement, SyntheticEntitlementNode
)


logger = get_logger("proxy.hierarchy")

REQUESTABLE_PATCH = [{"op": "replace", "path": "/requestable", "value": True}]


def parse_name(name: Optional[str]) -> EntitlementName:
    """Split a raw entitlement name into product, environment and role.

    The last three non-empty hyphen-delimited segments are used; missing
    segments come back as empty strings.
    """
    parts = [part for part in (name or "").split("-") if part]
    role = parts.pop() if parts else ""
    environment = parts.pop() if parts else ""
    product = parts.pop() if parts else ""
    return EntitlementName(product=product, environment=environment, role=role)


def build_product_node(product: str) -> SyntheticEntitlementNode:
    return SyntheticEntitlementNode(
        name=product,
        description=f"Proxy entitlement for {product} product",
        product=product,
    )


def build_role_node(product: str, role: str) -> SyntheticEntitlementNode:
    return SyntheticEntitlementNode(
        name=f"{product}-{role}",
        description=f"Proxy entitlement for {role} role",
        product=product,
        role=role,
        parent=product,
    )


def build_leaf(entitlement: RawEntitlement, parsed: EntitlementName) -> LeafEntitlementRecord:
    return LeafEntitlementRecord(
        name=entitlement.name,
        description=f"Proxy entitlement for {parsed.environment} environment",
        product=parsed.product,
        environment=parsed.environment,
        role=parsed.role,
        parent=parsed.role_key,
        underlying_ids=[entitlement.id],
    )


def upsert(nodes: Dict[str, SyntheticEntitlementNode], key: str, factory) -> SyntheticEntitlementNode:
    """Return the node stored under ``key``, creating it on first sight."""
    node = nodes.get(key)
    if node is None:
        node = factory()
        nodes[key] = node
    return node


class EntitlementHierarchyBuilder:
    """Folds raw entitlements into the product/role/leaf hierarchy."""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics

    def build(self, entitlements: Iterable[RawEntitlement]) -> EntitlementHierarchy:
        hierarchy = EntitlementHierarchy()

        for entitlement in entitlements:
            parsed = parse_name(entitlement.name)
            if not parsed.is_complete:
                logger.warning(
                    "Entitlement name does not follow product-environment-role",
                    entitlement_id=entitlement.id,
                    name=entitlement.name
                )
                if self.metrics:
                    self.metrics.increment_counter("malformed_entitlement_names_total")

            product = upsert(hierarchy.products, parsed.product,
                             lambda: build_product_node(parsed.product))
            role = upsert(hierarchy.roles, parsed.role_key,
                          lambda: build_role_node(parsed.product, parsed.role))
            product.add(entitlement.id)
            role.add(entitlement.id)

            hierarchy.leaves.append(build_leaf(entitlement, parsed))
            logger.debug("Processed entitlement", entitlement_id=entitlement.id, name=entitlement.name)

        logger.debug(
            "Hierarchy built",
            products=len(hierarchy.products),
            roles=len(hierarchy.roles),
            leaves=len(hierarchy.leaves)
        )
        return hierarchy


class RequestableMarker:
    """Marks raw entitlements requestable, tolerating per-entitlement failures."""

    def __init__(self, client, metrics: Optional[MetricsCollector] = None):
        self.client = client
        self.metrics = metrics

    async def mark(self, entitlements: Iterable[RawEntitlement]) -> List[str]:
        """Flip ``requestable`` on every entitlement not yet requestable.

        Returns the ids that could not be updated.
        """
        failed: List[str] = []
        for entitlement in entitlements:
            if entitlement.requestable:
                continue

            logger.debug("Making entitlement requestable", entitlement_id=entitlement.id)
            try:
                await self.client.patch_entitlement(entitlement.id, REQUESTABLE_PATCH)
            except ConnectorException as e:
                logger.error(
                    "Failed to make entitlement requestable",
                    entitlement_id=entitlement.id,
                    error=str(e)
                )
                failed.append(entitlement.id)
                self._count("error")
                continue

            entitlement.requestable = True
            self._count("ok")
        return failed

    def _count(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("requestable_updates_total", status=status)
