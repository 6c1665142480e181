"""
Proxy state reconciliation.

Works out which proxy entitlements an identity effectively holds from two
signals in the identity index:

1. Direct holdings: raw entitlements the identity already has. Each one is
   reported under its own name, which is also the name of its leaf proxy.
2. Proxy grants: proxy entitlements previously granted on the proxy
   source. One is reported only once every raw entitlement it stands for
   is held directly; partial fulfilment does not count.
"""

from typing import Dict, Iterable, Mapping, Optional, Set

from shared.logging import get_logger
from ..hierarchy.models import RawEntitlement, Subject
from ..schemas import AccountOutput


logger = get_logger("proxy.reconciler")


class ProxyStateReconciler:
    """Computes the effective proxy entitlements of identities."""

    def __init__(self, proxy_source_id: str, raw_entitlement_ids: Iterable[str],
                 proxy_entitlements: Mapping[str, RawEntitlement]):
        self.proxy_source_id = proxy_source_id
        self.raw_entitlement_ids: Set[str] = set(raw_entitlement_ids)
        self.proxy_entitlements: Dict[str, RawEntitlement] = dict(proxy_entitlements)

    @classmethod
    def from_proxy_entitlements(cls, proxy_source_id: str,
                                entitlements: Iterable[RawEntitlement]) -> "ProxyStateReconciler":
        """Index the proxy source's aggregated entitlements by name."""
        by_name: Dict[str, RawEntitlement] = {}
        raw_ids: Set[str] = set()
        for entitlement in entitlements:
            by_name[entitlement.name] = entitlement
            raw_ids.update(entitlement.underlying_ids)
        return cls(proxy_source_id, raw_ids, by_name)

    def reconcile(self, subject: Subject) -> Set[str]:
        """Return the proxy entitlement names held by ``subject``."""
        held: Set[str] = set()
        direct_ids: Set[str] = set()

        for item in subject.access:
            if item.is_entitlement and item.id in self.raw_entitlement_ids:
                held.add(item.name)
                direct_ids.add(item.id)

        for item in subject.access:
            if not item.is_entitlement or item.source_id != self.proxy_source_id:
                continue
            if item.name in held:
                continue
            proxy = self.proxy_entitlements.get(item.name)
            if proxy is None:
                continue
            ids = proxy.underlying_ids
            if ids and all(entitlement_id in direct_ids for entitlement_id in ids):
                held.add(proxy.proxy_value)

        return held

    def account_for(self, subject: Subject) -> Optional[AccountOutput]:
        """Build the account record for ``subject``, or None if it holds nothing."""
        held = self.reconcile(subject)
        if not held:
            return None
        account = AccountOutput.for_identity(subject.name, sorted(held))
        logger.debug("Reconciled account", identity=subject.name, entitlements=account.attributes.entitlements)
        return account
