"""
Proxy entitlements connector operations.

Each public coroutine implements one host command and runs as a single
sequential pass: every remote call is awaited before the next begins and
all state is re-read from the identity platform on every invocation.
"""

from typing import Any, AsyncIterator, Dict, List, Optional

from shared.config import ProxyConfig
from shared.errors import ConfigurationError, ConnectorException, NotFoundError, ValidationError
from shared.logging import get_logger, set_identity_context
from shared.metrics import MetricsCollector
from .access_requests import AccessRequestOrchestrator, AccessRequestType
from .hierarchy import EntitlementHierarchyBuilder, RequestableMarker
from .hierarchy.models import NodeKind, ProxySource
from .profiles import AccessProfileSynchronizer
from .reconcile import ProxyStateReconciler
from .schemas import (
    AccountCreateInput, AccountOutput, AccountUpdateInput, AttributeChangeOp,
    EntitlementOutput, as_list
)


class ProxyConnector:
    """Implements the host commands against the identity platform."""

    def __init__(self, client, config: ProxyConfig, metrics: Optional[MetricsCollector] = None):
        self.client = client
        self.config = config
        self.metrics = metrics
        self.logger = get_logger("proxy.connector")
        self._source: Optional[ProxySource] = None

    async def get_source(self) -> ProxySource:
        """Locate the proxy source by its connector instance id."""
        if self._source is not None:
            return self._source

        instance_id = self.config.sp_connector_instance_id
        if not instance_id:
            raise ConfigurationError("sp_connector_instance_id is not configured")

        sources = await self.client.list_sources()
        for source in sources:
            if source.connector_instance_id == instance_id:
                self._source = source
                self.logger.debug("Proxy source found", source_id=source.id, source_name=source.name)
                return source

        raise NotFoundError(
            f"Source with spConnectorInstanceId {instance_id} not found",
            details={"sp_connector_instance_id": instance_id}
        )

    async def _orchestrator(self) -> AccessRequestOrchestrator:
        source = await self.get_source()
        return AccessRequestOrchestrator(self.client, source.id, self.config, self.metrics)

    async def test_connection(self) -> Dict[str, Any]:
        self.logger.debug("Testing connection")
        try:
            await self.client.get_public_identity_config()
        except ConnectorException as e:
            self.logger.error("Connection test failed", error=str(e))
            raise
        self.logger.debug("Connection test successful")
        return {}

    async def list_accounts(self) -> AsyncIterator[AccountOutput]:
        source = await self.get_source()
        proxy_entitlements = await self.client.list_entitlements(source.id)
        reconciler = ProxyStateReconciler.from_proxy_entitlements(source.id, proxy_entitlements)

        subjects = await self.client.search_identities()
        for subject in subjects:
            account = reconciler.account_for(subject)
            if account is None:
                continue
            self.logger.debug("Sending account", identity=subject.name)
            self._count_emitted("account")
            yield account
        self.logger.debug("Account list operation completed")

    async def list_entitlements(self) -> AsyncIterator[EntitlementOutput]:
        self.logger.debug("Starting entitlement list operation")
        raw_entitlements = await self.client.search_entitlements(self.config.search)
        self.logger.debug("Found entitlements", count=len(raw_entitlements))
        if not raw_entitlements:
            return

        hierarchy = EntitlementHierarchyBuilder(self.metrics).build(raw_entitlements)
        await RequestableMarker(self.client, self.metrics).mark(raw_entitlements)

        synchronizer = None
        if self.config.create_access_profile:
            source = await self.get_source()
            synchronizer = AccessProfileSynchronizer(
                self.client, source.owner_id, raw_entitlements[0].source_id, self.metrics
            )

        for record in hierarchy.records():
            if synchronizer is not None and record.kind != NodeKind.LEAF:
                await synchronizer.sync_node(record)
            self.logger.debug("Sending entitlement", name=record.name, kind=record.kind.value)
            self._count_emitted(record.kind.value)
            yield EntitlementOutput.from_record(record)
        self.logger.debug("Entitlement list operation completed")

    async def create_account(self, request: AccountCreateInput) -> AccountOutput:
        name = request.attributes.name or request.identity
        if not name:
            raise ValidationError("Account name or identity is required")
        entitlements = as_list(request.attributes.entitlements)
        set_identity_context(name)
        self.logger.info("Account creation parameters", name=name, proxy_entitlements=entitlements)

        identity = await self.client.get_identity_by_name(name)
        if identity is None:
            raise NotFoundError(f"Identity {name} not found", details={"identity": name})

        orchestrator = await self._orchestrator()
        await orchestrator.request_access(identity.id, entitlements, AccessRequestType.GRANT_ACCESS)

        account = AccountOutput.for_identity(name, entitlements)
        self.logger.debug("Account created successfully", account=account.model_dump())
        return account

    async def update_account(self, request: AccountUpdateInput) -> AccountOutput:
        for change in request.changes:
            if change.op == AttributeChangeOp.SET:
                raise ValidationError(
                    "Unsupported operation",
                    details={"op": change.op.value, "attribute": change.attribute}
                )

        name = request.identity
        set_identity_context(name)
        source = await self.get_source()
        existing = await self.client.get_account_by_source(name, source.id)
        if existing is None:
            raise NotFoundError(f"Account {name} not found", details={"identity": name})
        if not existing.identity_id:
            raise NotFoundError(f"Account {name} is not correlated to an identity", details={"identity": name})
        self.logger.debug("Retrieved existing account", account_id=existing.id)

        orchestrator = await self._orchestrator()
        added: List[str] = []
        removed: List[str] = []
        for change in request.changes:
            values = as_list(change.value)
            if change.op == AttributeChangeOp.ADD:
                direction = AccessRequestType.GRANT_ACCESS
            else:
                direction = AccessRequestType.REVOKE_ACCESS
            self.logger.debug("Processing change operation", operation=change.op.value, values=values)
            await orchestrator.request_access(existing.identity_id, values, direction)
            if direction == AccessRequestType.GRANT_ACCESS:
                added.extend(values)
            else:
                removed.extend(values)

        entitlements = list(dict.fromkeys(
            value for value in [*existing.entitlements, *added] if value not in removed
        ))
        self.logger.debug("Final entitlements list", entitlements=entitlements)
        return AccountOutput.for_identity(name, entitlements)

    def _count_emitted(self, kind: str):
        if self.metrics:
            self.metrics.increment_counter("records_emitted_total", kind=kind)
