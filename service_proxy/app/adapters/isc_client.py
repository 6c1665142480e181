"""
Identity platform REST client for the proxy connector.
"""

import json
import time
from typing import Dict, Any, Optional, List

import httpx

from shared.config import ProxyConfig
from shared.errors import RemoteError
from shared.logging import get_logger
from ..hierarchy.models import (
    AccessProfile, Account, ProxySource, RawEntitlement, Subject
)


EXPERIMENTAL_HEADERS = {"X-SailPoint-Experimental": "true"}
JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"
TOKEN_EXPIRY_MARGIN = 60.0

IDENTITY_ACCESS_FIELDS = [
    "id",
    "name",
    "access.id",
    "access.name",
    "access.value",
    "access.type",
    "access.source.id",
]


def quote_filter_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _parse(model, data: Any):
    """Build ``model`` from an API document, raising RemoteError on an unexpected shape."""
    try:
        return model.from_api(data)
    except (KeyError, TypeError, AttributeError) as e:
        raise RemoteError(
            f"Unexpected {model.__name__} document: {e!r}",
            details={"document": data if isinstance(data, (dict, list)) else str(data)}
        )


class ISCClient:
    """Client for the identity platform APIs the connector depends on."""

    def __init__(self, config: ProxyConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.token_url = config.resolved_token_url()
        self.page_size = config.page_size
        self.logger = get_logger("proxy.isc_client")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.request_timeout,
            transport=transport
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    async def __aenter__(self) -> "ISCClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _get_token(self) -> str:
        """Fetch or reuse a client-credentials access token."""
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        try:
            response = await self._client.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                }
            )
        except httpx.HTTPError as e:
            self.logger.error("Token request failed", error=str(e))
            raise RemoteError(f"Token request failed: {e}")

        if response.status_code != 200:
            raise RemoteError(
                "Token request rejected",
                status_code=response.status_code,
                body=response.text
            )

        payload = self._json(response)
        try:
            self._token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 0))
        except (KeyError, TypeError, ValueError, AttributeError):
            raise RemoteError("Token response is missing access_token", status_code=200, body=response.text)
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN)
        return self._token

    async def _request(self, method: str, path: str, *,
                       params: Optional[Dict[str, Any]] = None,
                       payload: Any = None,
                       headers: Optional[Dict[str, str]] = None,
                       content_type: Optional[str] = None) -> httpx.Response:
        """Execute an authenticated request, raising RemoteError on failure."""
        token = await self._get_token()
        request_headers = {"Authorization": f"Bearer {token}"}
        request_headers.update(headers or {})

        kwargs: Dict[str, Any] = {"params": params, "headers": request_headers}
        if payload is not None:
            if content_type:
                request_headers["Content-Type"] = content_type
                kwargs["content"] = json.dumps(payload)
            else:
                kwargs["json"] = payload

        self.logger.debug("Remote request", method=method, path=path, params=params, payload=payload)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            self.logger.error("Remote request failed", method=method, path=path, error=str(e))
            raise RemoteError(f"{method} {path} failed: {e}")

        if response.status_code >= 400:
            self.logger.error(
                "Remote request rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                response=response.text
            )
            raise RemoteError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

        self.logger.debug("Remote response", method=method, path=path, status_code=response.status_code,
                          response=response.text)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise RemoteError(
                f"{response.request.method} {response.request.url.path} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text
            )

    def _json_list(self, response: httpx.Response) -> List[Dict[str, Any]]:
        data = self._json(response) or []
        if not isinstance(data, list):
            raise RemoteError(
                f"{response.request.method} {response.request.url.path} did not return a list",
                status_code=response.status_code,
                body=response.text
            )
        return data

    async def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None,
                        headers: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """Fetch every page of an offset/limit list endpoint."""
        items: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page_params = dict(params or {})
            page_params.update({"offset": offset, "limit": self.page_size})
            response = await self._request("GET", path, params=page_params, headers=headers)
            page = self._json_list(response)
            items.extend(page)
            if len(page) < self.page_size:
                return items
            offset += self.page_size

    async def get_public_identity_config(self) -> Dict[str, Any]:
        response = await self._request("GET", "/v3/public-identities-config")
        return self._json(response)

    async def list_sources(self) -> List[ProxySource]:
        return [_parse(ProxySource, item) for item in await self._paginate("/v3/sources")]

    async def search(self, query: str, index: str,
                     includes: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Run a search query, following ``searchAfter`` across pages."""
        body: Dict[str, Any] = {
            "indices": [index],
            "query": {"query": query},
            "sort": ["id"],
            "includeNested": True,
        }
        if includes:
            body["queryResultFilter"] = {"includes": includes}

        documents: List[Dict[str, Any]] = []
        while True:
            response = await self._request(
                "POST", "/v3/search", params={"limit": self.page_size}, payload=body
            )
            page = self._json_list(response)
            documents.extend(page)
            if len(page) < self.page_size:
                return documents
            last = page[-1]
            if not isinstance(last, dict) or "id" not in last:
                raise RemoteError("Search page ended with a document without id", details={"index": index})
            body = dict(body, searchAfter=[last["id"]])

    async def search_entitlements(self, query: str) -> List[RawEntitlement]:
        return [_parse(RawEntitlement, doc) for doc in await self.search(query, "entitlements")]

    async def search_identities(self, query: str = "*") -> List[Subject]:
        documents = await self.search(query, "identities", includes=IDENTITY_ACCESS_FIELDS)
        return [_parse(Subject, doc) for doc in documents]

    async def list_entitlements(self, source_id: Optional[str] = None) -> List[RawEntitlement]:
        params = {"filters": f'source.id eq "{quote_filter_value(source_id)}"'} if source_id else None
        items = await self._paginate("/v2025/entitlements", params=params, headers=EXPERIMENTAL_HEADERS)
        return [_parse(RawEntitlement, item) for item in items]

    async def get_entitlement_by_name(self, name: str, source_id: str) -> Optional[RawEntitlement]:
        filters = f'source.id eq "{quote_filter_value(source_id)}" and value eq "{quote_filter_value(name)}"'
        response = await self._request(
            "GET", "/v2025/entitlements", params={"filters": filters}, headers=EXPERIMENTAL_HEADERS
        )
        items = self._json_list(response)
        return _parse(RawEntitlement, items[0]) if items else None

    async def patch_entitlement(self, entitlement_id: str, operations: List[Dict[str, Any]]) -> RawEntitlement:
        response = await self._request(
            "PATCH", f"/v2025/entitlements/{entitlement_id}",
            payload=operations,
            headers=EXPERIMENTAL_HEADERS,
            content_type=JSON_PATCH_CONTENT_TYPE
        )
        return _parse(RawEntitlement, self._json(response))

    async def get_identity_by_name(self, name: str) -> Optional[Subject]:
        response = await self._request(
            "POST", "/v3/search",
            params={"limit": 1},
            payload={
                "indices": ["identities"],
                "query": {"query": f'name.exact:"{quote_filter_value(name)}"'},
                "includeNested": True,
            }
        )
        documents = self._json_list(response)
        return _parse(Subject, documents[0]) if documents else None

    async def get_account_by_source(self, native_identity: str, source_id: str) -> Optional[Account]:
        filters = (
            f'nativeIdentity eq "{quote_filter_value(native_identity)}" '
            f'and sourceId eq "{quote_filter_value(source_id)}"'
        )
        response = await self._request("GET", "/v3/accounts", params={"filters": filters})
        items = self._json_list(response)
        return _parse(Account, items[0]) if items else None

    async def create_access_request(self, identity_id: str, entitlement_ids: List[str],
                                    request_type, comment: str) -> Dict[str, Any]:
        payload = {
            "requestedFor": [identity_id],
            "requestType": getattr(request_type, "value", request_type),
            "requestedItems": [
                {"id": entitlement_id, "type": "ENTITLEMENT", "comment": comment}
                for entitlement_id in entitlement_ids
            ],
        }
        response = await self._request("POST", "/v3/access-requests", payload=payload)
        return self._json(response)

    async def get_access_profile_by_name(self, name: str) -> Optional[AccessProfile]:
        response = await self._request(
            "GET", "/v2025/access-profiles",
            params={"filters": f'name eq "{quote_filter_value(name)}"'},
            headers=EXPERIMENTAL_HEADERS
        )
        items = self._json_list(response)
        return _parse(AccessProfile, items[0]) if items else None

    async def create_access_profile(self, name: str, owner_id: Optional[str], source_id: Optional[str],
                                    entitlements: List[Dict[str, str]],
                                    requestable: bool = False) -> AccessProfile:
        payload = {
            "name": name,
            "description": name,
            "owner": {"id": owner_id, "type": "IDENTITY"},
            "source": {"id": source_id},
            "enabled": True,
            "entitlements": entitlements,
            "requestable": requestable,
        }
        response = await self._request(
            "POST", "/v2025/access-profiles", payload=payload, headers=EXPERIMENTAL_HEADERS
        )
        return _parse(AccessProfile, self._json(response))

    async def patch_access_profile(self, profile_id: str, operations: List[Dict[str, Any]]) -> AccessProfile:
        response = await self._request(
            "PATCH", f"/v2025/access-profiles/{profile_id}",
            payload=operations,
            headers=EXPERIMENTAL_HEADERS,
            content_type=JSON_PATCH_CONTENT_TYPE
        )
        return _parse(AccessProfile, self._json(response))
