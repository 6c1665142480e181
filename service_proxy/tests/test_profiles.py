"""
Unit tests for the access profile synchronizer.
"""

import pytest
from unittest.mock import AsyncMock

from shared.errors import RemoteError
from service_proxy.app.hierarchy.builder import build_product_node, build_role_node
from service_proxy.app.hierarchy.models import AccessProfile
from service_proxy.app.profiles import AccessProfileSynchronizer, build_entitlement_refs


class TestAccessProfileSynchronizer:
    """Test cases for AccessProfileSynchronizer."""

    @pytest.fixture
    def client(self):
        """Mock identity platform client."""
        client = AsyncMock()
        client.get_access_profile_by_name = AsyncMock(return_value=None)
        client.create_access_profile = AsyncMock(
            return_value=AccessProfile(id="ap-new", name="finance")
        )
        client.patch_access_profile = AsyncMock(
            return_value=AccessProfile(id="ap-1", name="finance")
        )
        return client

    @pytest.fixture
    def synchronizer(self, client):
        """Create synchronizer instance."""
        return AccessProfileSynchronizer(client, owner_id="owner-1", source_id="raw-src")

    def test_entitlement_refs(self):
        """Test conversion of ids to entitlement references."""
        assert build_entitlement_refs(["e1", "e2"]) == [
            {"id": "e1", "type": "ENTITLEMENT"},
            {"id": "e2", "type": "ENTITLEMENT"},
        ]

    @pytest.mark.asyncio
    async def test_creates_missing_profile(self, synchronizer, client):
        """Test that an absent profile is created non-requestable."""
        profile = await synchronizer.sync_profile("finance", ["e1", "e2"])

        assert profile.id == "ap-new"
        client.get_access_profile_by_name.assert_awaited_once_with("finance")
        client.create_access_profile.assert_awaited_once_with(
            "finance",
            "owner-1",
            "raw-src",
            [{"id": "e1", "type": "ENTITLEMENT"}, {"id": "e2", "type": "ENTITLEMENT"}],
            requestable=False
        )
        client.patch_access_profile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_patches_existing_profile(self, synchronizer, client):
        """Test that an existing profile gets membership and requestable replaced."""
        client.get_access_profile_by_name.return_value = AccessProfile(
            id="ap-1", name="finance", requestable=True, entitlement_ids=["old"]
        )

        profile = await synchronizer.sync_profile("finance", ["e1"])

        assert profile.id == "ap-1"
        client.patch_access_profile.assert_awaited_once_with("ap-1", [
            {"op": "replace", "path": "/entitlements", "value": [{"id": "e1", "type": "ENTITLEMENT"}]},
            {"op": "replace", "path": "/requestable", "value": False},
        ])
        client.create_access_profile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sync_node_swallows_errors(self, synchronizer, client):
        """Test that a failing profile does not raise out of sync_node."""
        client.get_access_profile_by_name.side_effect = RemoteError("boom", status_code=500)

        result = await synchronizer.sync_node(build_product_node("finance"))

        assert result is None

    @pytest.mark.asyncio
    async def test_sync_node_uses_node_membership(self, synchronizer, client):
        """Test that role nodes sync under their product-role name."""
        node = build_role_node("finance", "approver")
        node.add("e1")

        await synchronizer.sync_node(node)

        args = client.create_access_profile.await_args.args
        assert args[0] == "finance-approver"
        assert args[3] == [{"id": "e1", "type": "ENTITLEMENT"}]
