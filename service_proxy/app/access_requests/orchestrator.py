"""
Access request orchestration.

Assigning or removing a proxy entitlement never grants or revokes access
directly. The proxy names are resolved to the real entitlements they
stand for and a single approval-gated access request is submitted for
them. A failed submission is retried once after a fixed delay; a second
failure propagates.
"""

from typing import Any, Dict, Iterable, List, Optional
from enum import Enum

from shared.config import ProxyConfig
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, retry_on_exception


logger = get_logger("proxy.access_requests")


class AccessRequestType(str, Enum):
    """Direction of an access request."""
    GRANT_ACCESS = "GRANT_ACCESS"
    REVOKE_ACCESS = "REVOKE_ACCESS"


class AccessRequestOrchestrator:
    """Resolves proxy names and submits access requests for them."""

    def __init__(self, client, proxy_source_id: str, config: ProxyConfig,
                 metrics: Optional[MetricsCollector] = None):
        self.client = client
        self.proxy_source_id = proxy_source_id
        self.config = config
        self.metrics = metrics
        self.retry_config = RetryConfig.single_retry(config.retry_delay_seconds)

    async def resolve(self, proxy_names: Iterable[str]) -> List[str]:
        """Collect the raw entitlement ids behind ``proxy_names``.

        Names that do not resolve on the proxy source are skipped.
        """
        resolved: Dict[str, None] = {}
        for name in proxy_names:
            entitlement = await self.client.get_entitlement_by_name(name, self.proxy_source_id)
            if entitlement is None:
                logger.warning("Proxy entitlement not found, skipping", proxy_name=name)
                continue
            for entitlement_id in entitlement.underlying_ids:
                resolved.setdefault(entitlement_id, None)
        return list(resolved)

    async def request_access(self, identity_id: str, proxy_names: Iterable[str],
                             direction: AccessRequestType) -> Dict[str, Any]:
        """Submit one access request for the entitlements behind ``proxy_names``."""
        proxy_names = list(proxy_names)
        comment = self.config.format_comment(proxy_names)
        entitlement_ids = await self.resolve(proxy_names)
        logger.debug(
            "Creating access request",
            identity_id=identity_id,
            proxy_names=proxy_names,
            entitlement_ids=entitlement_ids,
            direction=direction.value
        )

        @retry_on_exception((Exception,), config=self.retry_config, on_retry=self._on_retry)
        async def _submit_access_request():
            return await self.client.create_access_request(
                identity_id, entitlement_ids, direction, comment
            )

        try:
            response = await _submit_access_request()
        except Exception:
            self._count(direction, "failed")
            raise

        self._count(direction, "submitted")
        logger.debug("Access request created", identity_id=identity_id, response=response)
        return response

    def _on_retry(self, attempt: int, error: BaseException):
        logger.debug("First attempt failed, retrying", error=str(error), delay=self.retry_config.delay_for(attempt))
        if self.metrics:
            self.metrics.increment_counter("access_request_retries_total")

    def _count(self, direction: AccessRequestType, outcome: str):
        if self.metrics:
            self.metrics.increment_counter(
                "access_requests_total", direction=direction.value, outcome=outcome
            )
