"""
Unit tests for the entitlement hierarchy builder.
"""

import pytest
from unittest.mock import AsyncMock

from shared.errors import RemoteError
from shared.metrics import MetricsCollector
from service_proxy.app.hierarchy.builder import (
    EntitlementHierarchyBuilder, RequestableMarker, REQUESTABLE_PATCH, parse_name
)
from service_proxy.app.hierarchy.models import NodeKind, RawEntitlement


def raw(entitlement_id, name, requestable=False):
    return RawEntitlement(id=entitlement_id, name=name, requestable=requestable, source_id="src-1")


class TestParseName:
    """Test cases for parse_name."""

    def test_three_segments(self):
        """Test the product-environment-role convention."""
        parsed = parse_name("finance-prod-approver")

        assert parsed.product == "finance"
        assert parsed.environment == "prod"
        assert parsed.role == "approver"
        assert parsed.role_key == "finance-approver"
        assert parsed.is_complete

    def test_extra_leading_segments_ignored(self):
        """Test that only the last three segments are used."""
        parsed = parse_name("legacy-finance-prod-approver")

        assert (parsed.product, parsed.environment, parsed.role) == ("finance", "prod", "approver")

    def test_fewer_segments_degrade_to_empty(self):
        """Test names with missing segments."""
        parsed = parse_name("approver")

        assert (parsed.product, parsed.environment, parsed.role) == ("", "", "approver")
        assert not parsed.is_complete

    def test_empty_and_missing_name(self):
        """Test empty and None names."""
        assert parse_name("") == parse_name(None)
        assert parse_name(None).role == ""

    def test_empty_segments_skipped(self):
        """Test that doubled hyphens do not produce empty segments."""
        parsed = parse_name("finance--prod-approver")

        assert (parsed.product, parsed.environment, parsed.role) == ("finance", "prod", "approver")


class TestEntitlementHierarchyBuilder:
    """Test cases for EntitlementHierarchyBuilder."""

    @pytest.fixture
    def builder(self):
        """Create builder instance."""
        return EntitlementHierarchyBuilder()

    @pytest.fixture
    def finance_entitlements(self):
        """Two finance entitlements in one environment."""
        return [
            raw("e1", "finance-prod-approver"),
            raw("e2", "finance-prod-viewer"),
        ]

    def test_single_entitlement(self, builder):
        """Test that one entitlement yields one product and one role node."""
        hierarchy = builder.build([raw("e1", "hr-dev-admin")])

        assert list(hierarchy.products) == ["hr"]
        assert list(hierarchy.roles) == ["hr-admin"]
        assert hierarchy.products["hr"].underlying_ids == ["e1"]
        assert hierarchy.roles["hr-admin"].underlying_ids == ["e1"]

    def test_finance_scenario(self, builder, finance_entitlements):
        """Test the product, role and leaf layout of a small source."""
        hierarchy = builder.build(finance_entitlements)

        assert hierarchy.products["finance"].underlying_ids == ["e1", "e2"]
        assert hierarchy.roles["finance-approver"].underlying_ids == ["e1"]
        assert hierarchy.roles["finance-viewer"].underlying_ids == ["e2"]
        assert [leaf.underlying_ids for leaf in hierarchy.leaves] == [["e1"], ["e2"]]

    def test_node_attributes(self, builder, finance_entitlements):
        """Test descriptions and parents of emitted records."""
        hierarchy = builder.build(finance_entitlements)

        product = hierarchy.products["finance"]
        assert product.kind == NodeKind.PRODUCT
        assert product.description == "Proxy entitlement for finance product"
        assert product.parent is None
        assert "parent" not in product.attributes()
        assert product.attributes()["role"] == ""

        role = hierarchy.roles["finance-approver"]
        assert role.kind == NodeKind.ROLE
        assert role.description == "Proxy entitlement for approver role"
        assert role.attributes()["parent"] == "finance"

        leaf = hierarchy.leaves[0]
        assert leaf.name == "finance-prod-approver"
        assert leaf.description == "Proxy entitlement for prod environment"
        assert leaf.attributes() == {
            "id": "finance-prod-approver",
            "name": "finance-prod-approver",
            "description": "Proxy entitlement for prod environment",
            "product": "finance",
            "environment": "prod",
            "role": "approver",
            "parent": "finance-approver",
            "ids": ["e1"],
        }

    def test_roles_group_across_environments(self, builder):
        """Test that a role node spans every environment."""
        hierarchy = builder.build([
            raw("e1", "crm-dev-admin"),
            raw("e2", "crm-prod-admin"),
            raw("e3", "crm-prod-reader"),
        ])

        assert hierarchy.roles["crm-admin"].underlying_ids == ["e1", "e2"]
        assert hierarchy.roles["crm-reader"].underlying_ids == ["e3"]
        assert hierarchy.products["crm"].underlying_ids == ["e1", "e2", "e3"]

    def test_first_seen_order(self, builder):
        """Test that nodes are emitted products, roles, leaves in first-seen order."""
        hierarchy = builder.build([
            raw("e1", "zeta-prod-b"),
            raw("e2", "alpha-prod-a"),
            raw("e3", "zeta-dev-a"),
        ])

        names = [record.name for record in hierarchy.records()]
        assert names == [
            "zeta", "alpha",
            "zeta-b", "alpha-a", "zeta-a",
            "zeta-prod-b", "alpha-prod-a", "zeta-dev-a",
        ]

    def test_duplicate_ids_not_repeated(self, builder):
        """Test that underlying ids form an ordered set."""
        hierarchy = builder.build([raw("e1", "crm-dev-admin"), raw("e1", "crm-dev-admin")])

        assert hierarchy.products["crm"].underlying_ids == ["e1"]
        assert len(hierarchy.leaves) == 2

    def test_rebuild_is_identical(self, builder, finance_entitlements):
        """Test that two passes over the same input agree."""
        first = builder.build(finance_entitlements)
        second = builder.build(finance_entitlements)

        assert [r.attributes() for r in first.records()] == [r.attributes() for r in second.records()]
        assert first.products is not second.products

    def test_build_does_not_mutate_input(self, builder, finance_entitlements):
        """Test that aggregation leaves raw entitlements untouched."""
        builder.build(finance_entitlements)

        assert all(not entitlement.requestable for entitlement in finance_entitlements)

    def test_malformed_name_counted(self):
        """Test that short names are accepted and counted."""
        metrics = MetricsCollector("proxy")
        builder = EntitlementHierarchyBuilder(metrics)

        hierarchy = builder.build([raw("e1", "prod-admin")])

        assert list(hierarchy.products) == [""]
        assert list(hierarchy.roles) == ["-admin"]
        value = metrics.registry.get_sample_value("malformed_entitlement_names_total")
        assert value == 1.0


class TestRequestableMarker:
    """Test cases for RequestableMarker."""

    @pytest.fixture
    def client(self):
        """Mock identity platform client."""
        client = AsyncMock()
        client.patch_entitlement = AsyncMock(return_value=None)
        return client

    @pytest.mark.asyncio
    async def test_marks_only_non_requestable(self, client):
        """Test that already requestable entitlements are not patched."""
        entitlements = [raw("e1", "a-b-c"), raw("e2", "a-b-d", requestable=True)]

        failed = await RequestableMarker(client).mark(entitlements)

        assert failed == []
        client.patch_entitlement.assert_awaited_once_with("e1", REQUESTABLE_PATCH)
        assert entitlements[0].requestable is True

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_entitlements(self, client):
        """Test that one rejected patch does not abort the pass."""
        client.patch_entitlement.side_effect = [RemoteError("rejected", status_code=403), None]
        entitlements = [raw("e1", "a-b-c"), raw("e2", "a-b-d")]

        failed = await RequestableMarker(client).mark(entitlements)

        assert failed == ["e1"]
        assert client.patch_entitlement.await_count == 2
        assert entitlements[0].requestable is False
        assert entitlements[1].requestable is True

    @pytest.mark.asyncio
    async def test_failures_counted(self, client):
        """Test requestable update metrics."""
        metrics = MetricsCollector("proxy")
        client.patch_entitlement.side_effect = [RemoteError("rejected"), None]

        await RequestableMarker(client, metrics).mark([raw("e1", "a-b-c"), raw("e2", "a-b-d")])

        registry = metrics.registry
        assert registry.get_sample_value("requestable_updates_total", {"status": "error"}) == 1.0
        assert registry.get_sample_value("requestable_updates_total", {"status": "ok"}) == 1.0
