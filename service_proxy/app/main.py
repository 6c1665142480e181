"""
Proxy entitlements connector service.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import pydantic
from fastapi import Response

from shared.base_service import BaseService
from shared.config import ProxyConfig
from shared.errors import ValidationError
from shared.logging import clear_context, set_command_context

from .adapters.isc_client import ISCClient
from .connector import ProxyConnector
from .schemas import AccountCreateInput, AccountUpdateInput, CommandRequest, CommandType


NDJSON_MEDIA_TYPE = "application/x-ndjson"


class ProxyConnectorService(BaseService):
    """Exposes the connector commands to the host platform."""

    def __init__(self, config: Optional[ProxyConfig] = None,
                 client_factory: Optional[Callable[[ProxyConfig], Any]] = None):
        super().__init__(config)
        self.client_factory = client_factory or ISCClient
        self._setup_connector_routes()

    def _setup_connector_routes(self):
        """Set up connector-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": self.service_name,
                "message": "Proxy Entitlements Connector",
                "version": "1.0.0",
                "commands": [command.value for command in CommandType]
            }

        @self.app.post("/commands")
        async def run_command(request: CommandRequest):
            """Run one connector command and return its records as NDJSON."""
            try:
                command = CommandType(request.type)
            except ValueError:
                raise ValidationError(
                    f"Unsupported command {request.type}",
                    details={"type": request.type}
                )

            set_command_context(command.value)
            try:
                with self.metrics.time_operation("command_duration_seconds", command=command.value):
                    records = await self.execute(command, request.input)
            finally:
                clear_context()

            body = "".join(json.dumps(record) + "\n" for record in records)
            return Response(content=body, media_type=NDJSON_MEDIA_TYPE)

    async def execute(self, command: CommandType, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run ``command`` to completion and collect everything it emits."""
        client = self.client_factory(self.config)
        try:
            connector = ProxyConnector(client, self.config, self.metrics)

            if command == CommandType.TEST_CONNECTION:
                return [await connector.test_connection()]
            if command == CommandType.ACCOUNT_LIST:
                return [account.model_dump() async for account in connector.list_accounts()]
            if command == CommandType.ENTITLEMENT_LIST:
                return [entitlement.model_dump() async for entitlement in connector.list_entitlements()]
            if command == CommandType.ACCOUNT_CREATE:
                account = await connector.create_account(_parse(AccountCreateInput, payload))
                return [account.model_dump()]
            if command == CommandType.ACCOUNT_UPDATE:
                account = await connector.update_account(_parse(AccountUpdateInput, payload))
                return [account.model_dump()]
        finally:
            await client.aclose()

        raise ValidationError(f"Unsupported command {command.value}")

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check identity platform reachability."""
        client = self.client_factory(self.config)
        try:
            await ProxyConnector(client, self.config).test_connection()
            return {"identity_platform": "ok"}
        except Exception:
            return {"identity_platform": "error"}
        finally:
            await client.aclose()


def _parse(model, payload: Dict[str, Any]):
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid command input", details={"errors": [
            {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]} for error in e.errors()
        ]})


def create_app():
    """Create connector service application."""
    service = ProxyConnectorService()
    return service.app


def main():
    """Run the connector service."""
    ProxyConnectorService().run()


if __name__ == "__main__":
    main()
