"""
Entitlement hierarchy package.

Turns the flat list of raw ``product-environment-role`` entitlements into
the synthetic proxy hierarchy (product -> role -> leaf) emitted to the
identity platform.

Modules of interest:
- models: Raw entitlements, synthetic nodes, leaves, identities.
- builder: Name parsing, the aggregation fold and the requestable stage.
"""

from .builder import EntitlementHierarchyBuilder, RequestableMarker, parse_name
from .models import (
    EntitlementHierarchy, EntitlementName, LeafEntitlementRecord,
    RawEntitlement, SyntheticEntitlementNode
)

__all__ = [
    "EntitlementHierarchyBuilder",
    "RequestableMarker",
    "parse_name",
    "EntitlementHierarchy",
    "EntitlementName",
    "LeafEntitlementRecord",
    "RawEntitlement",
    "SyntheticEntitlementNode",
]
