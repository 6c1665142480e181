"""
Unit tests for the proxy state reconciler.
"""

import pytest

from service_proxy.app.hierarchy.models import AccessItem, RawEntitlement, Subject
from service_proxy.app.reconcile import ProxyStateReconciler


PROXY_SOURCE = "proxy-src"
RAW_SOURCE = "raw-src"


def entitlement(item_id, name, source_id=RAW_SOURCE, item_type="ENTITLEMENT"):
    return AccessItem(id=item_id, name=name, type=item_type, source_id=source_id)


def proxy(entitlement_id, name, ids, value=None):
    return RawEntitlement(
        id=entitlement_id,
        name=name,
        value=value,
        source_id=PROXY_SOURCE,
        attributes={"ids": ids},
    )


class TestProxyStateReconciler:
    """Test cases for ProxyStateReconciler."""

    @pytest.fixture
    def reconciler(self):
        """Reconciler over a small finance hierarchy."""
        return ProxyStateReconciler.from_proxy_entitlements(PROXY_SOURCE, [
            proxy("p1", "finance", ["a", "b"]),
            proxy("p2", "finance-approver", ["a", "b"]),
            proxy("p3", "finance-prod-approver", ["a"]),
            proxy("p4", "finance-dev-approver", ["b"]),
        ])

    def test_raw_ids_indexed(self, reconciler):
        """Test that the raw id set is the union of underlying ids."""
        assert reconciler.raw_entitlement_ids == {"a", "b"}
        assert set(reconciler.proxy_entitlements) == {
            "finance", "finance-approver", "finance-prod-approver", "finance-dev-approver"
        }

    def test_direct_holdings_reported_by_name(self, reconciler):
        """Test that raw entitlements held directly are reported under their own name."""
        subject = Subject(id="i1", name="alice", access=[entitlement("a", "finance-prod-approver")])

        assert reconciler.reconcile(subject) == {"finance-prod-approver"}

    def test_fully_satisfied_proxy_grant_reported(self, reconciler):
        """Test that a proxy grant is reported once all of its ids are held."""
        subject = Subject(id="i1", name="alice", access=[
            entitlement("a", "finance-prod-approver"),
            entitlement("b", "finance-dev-approver"),
            entitlement("p2", "finance-approver", source_id=PROXY_SOURCE),
        ])

        held = reconciler.reconcile(subject)

        assert "finance-approver" in held
        assert held == {"finance-prod-approver", "finance-dev-approver", "finance-approver"}

    def test_partially_satisfied_proxy_grant_not_reported(self, reconciler):
        """Test that partial fulfilment does not count."""
        subject = Subject(id="i1", name="alice", access=[
            entitlement("a", "finance-prod-approver"),
            entitlement("p2", "finance-approver", source_id=PROXY_SOURCE),
        ])

        assert reconciler.reconcile(subject) == {"finance-prod-approver"}

    def test_proxy_grant_without_direct_holdings(self, reconciler):
        """Test that a pending proxy grant alone reports nothing."""
        subject = Subject(id="i1", name="alice", access=[
            entitlement("p1", "finance", source_id=PROXY_SOURCE),
        ])

        assert reconciler.reconcile(subject) == set()
        assert reconciler.account_for(subject) is None

    def test_proxy_value_used(self):
        """Test that the proxy entitlement value is what gets reported."""
        reconciler = ProxyStateReconciler.from_proxy_entitlements(PROXY_SOURCE, [
            proxy("p1", "Finance Approvers", ["a"], value="finance-approver"),
        ])
        subject = Subject(id="i1", name="alice", access=[
            entitlement("a", "raw-a"),
            entitlement("p1", "Finance Approvers", source_id=PROXY_SOURCE),
        ])

        assert reconciler.reconcile(subject) == {"raw-a", "finance-approver"}

    def test_unknown_proxy_grant_ignored(self, reconciler):
        """Test that proxy-source items without a known entitlement are skipped."""
        subject = Subject(id="i1", name="alice", access=[
            entitlement("a", "finance-prod-approver"),
            entitlement("px", "retired-proxy", source_id=PROXY_SOURCE),
        ])

        assert reconciler.reconcile(subject) == {"finance-prod-approver"}

    def test_non_entitlement_access_ignored(self, reconciler):
        """Test that roles and access profiles are not considered."""
        subject = Subject(id="i1", name="alice", access=[
            entitlement("a", "finance-prod-approver", item_type="ROLE"),
            entitlement("p3", "finance-prod-approver", source_id=PROXY_SOURCE, item_type="ACCESS_PROFILE"),
        ])

        assert reconciler.reconcile(subject) == set()

    def test_other_sources_ignored(self, reconciler):
        """Test that entitlements outside the raw id set are not reported."""
        subject = Subject(id="i1", name="alice", access=[entitlement("zzz", "payroll-prod-admin")])

        assert reconciler.reconcile(subject) == set()

    def test_account_for_subject(self, reconciler):
        """Test the emitted account record."""
        subject = Subject(id="i1", name="alice", access=[
            entitlement("b", "finance-dev-approver"),
            entitlement("a", "finance-prod-approver"),
        ])

        account = reconciler.account_for(subject)

        assert account.identity == "alice"
        assert account.uuid == "alice"
        assert account.attributes.id == "alice"
        assert account.attributes.name == "alice"
        assert account.attributes.entitlements == ["finance-dev-approver", "finance-prod-approver"]

    def test_empty_subject_not_emitted(self, reconciler):
        """Test that identities holding nothing produce no account."""
        assert reconciler.account_for(Subject(id="i2", name="bob")) is None
