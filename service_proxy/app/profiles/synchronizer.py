"""
Access profile synchronization for synthetic hierarchy nodes.
"""

from typing import Any, Dict, Iterable, List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..hierarchy.models import AccessProfile, SyntheticEntitlementNode


logger = get_logger("proxy.profiles")


def build_entitlement_refs(ids: Iterable[str]) -> List[Dict[str, str]]:
    return [{"id": entitlement_id, "type": "ENTITLEMENT"} for entitlement_id in ids]


class AccessProfileSynchronizer:
    """Materializes synthetic nodes as non-requestable access profiles."""

    def __init__(self, client, owner_id: Optional[str], source_id: Optional[str],
                 metrics: Optional[MetricsCollector] = None):
        self.client = client
        self.owner_id = owner_id
        self.source_id = source_id
        self.metrics = metrics

    async def sync_profile(self, name: str, underlying_ids: Iterable[str]) -> AccessProfile:
        """Create the profile ``name`` or replace its membership.

        Profiles are never requestable; access goes through the proxy
        entitlement.
        """
        refs = build_entitlement_refs(underlying_ids)
        existing = await self.client.get_access_profile_by_name(name)
        if existing is not None:
            logger.debug("Updating existing access profile", name=name, profile_id=existing.id)
            patch: List[Dict[str, Any]] = [
                {"op": "replace", "path": "/entitlements", "value": refs},
                {"op": "replace", "path": "/requestable", "value": False},
            ]
            profile = await self.client.patch_access_profile(existing.id, patch)
            self._count("update", "ok")
        else:
            logger.debug("Creating new access profile", name=name)
            profile = await self.client.create_access_profile(
                name, self.owner_id, self.source_id, refs, requestable=False
            )
            self._count("create", "ok")
        logger.debug("Access profile synchronized", name=name, profile_id=profile.id)
        return profile

    async def sync_node(self, node: SyntheticEntitlementNode) -> Optional[AccessProfile]:
        """Sync one node, logging and swallowing any failure."""
        try:
            return await self.sync_profile(node.name, node.underlying_ids)
        except Exception as e:
            logger.error("Error synchronizing access profile", name=node.name, error=str(e))
            self._count("sync", "error")
            return None

    def _count(self, action: str, status: str):
        if self.metrics:
            self.metrics.increment_counter("access_profile_syncs_total", action=action, status=status)
