"""
Entitlement data models for the proxy connector.
"""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from enum import Enum


ENTITLEMENT_TYPE = "ENTITLEMENT"


class NodeKind(str, Enum):
    """Synthetic hierarchy levels."""
    PRODUCT = "product"
    ROLE = "role"
    LEAF = "leaf"


@dataclass
class RawEntitlement:
    """An entitlement as the identity platform reports it.

    Proxy entitlements aggregated on the proxy source carry the ids of the
    real entitlements they stand for in ``attributes["ids"]``.
    """
    id: str
    name: str
    requestable: bool = False
    value: Optional[str] = None
    source_id: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def underlying_ids(self) -> List[str]:
        ids = self.attributes.get("ids") or []
        if isinstance(ids, str):
            return [ids]
        return list(ids)

    @property
    def proxy_value(self) -> str:
        return self.value or self.name

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RawEntitlement":
        source = data.get("source") or {}
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            requestable=bool(data.get("requestable", False)),
            value=data.get("value"),
            source_id=source.get("id"),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass(frozen=True)
class EntitlementName:
    """The ``product-environment-role`` parts of a raw entitlement name."""
    product: str
    environment: str
    role: str

    @property
    def is_complete(self) -> bool:
        return bool(self.product and self.environment and self.role)

    @property
    def role_key(self) -> str:
        return f"{self.product}-{self.role}"


@dataclass
class SyntheticEntitlementNode:
    """A proxy entitlement grouping raw entitlements by product or product-role."""
    name: str
    description: str
    product: str
    role: str = ""
    parent: Optional[str] = None
    underlying_ids: List[str] = field(default_factory=list)

    @property
    def kind(self) -> NodeKind:
        return NodeKind.ROLE if self.role else NodeKind.PRODUCT

    def add(self, entitlement_id: str) -> None:
        """Append an id, keeping first-insertion order and no duplicates."""
        if entitlement_id not in self.underlying_ids:
            self.underlying_ids.append(entitlement_id)

    def attributes(self) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {
            "id": self.name,
            "name": self.name,
            "description": self.description,
            "product": self.product,
            "role": self.role,
            "ids": list(self.underlying_ids),
        }
        if self.parent:
            attributes["parent"] = self.parent
        return attributes


@dataclass
class LeafEntitlementRecord:
    """The proxy entitlement emitted for exactly one raw entitlement."""
    name: str
    description: str
    product: str
    environment: str
    role: str
    parent: str
    underlying_ids: List[str] = field(default_factory=list)

    kind = NodeKind.LEAF

    def attributes(self) -> Dict[str, Any]:
        return {
            "id": self.name,
            "name": self.name,
            "description": self.description,
            "product": self.product,
            "environment": self.environment,
            "role": self.role,
            "parent": self.parent,
            "ids": list(self.underlying_ids),
        }


@dataclass
class EntitlementHierarchy:
    """Result of one hierarchy build pass."""
    products: Dict[str, SyntheticEntitlementNode] = field(default_factory=dict)
    roles: Dict[str, SyntheticEntitlementNode] = field(default_factory=dict)
    leaves: List[LeafEntitlementRecord] = field(default_factory=list)

    def records(self) -> List[Any]:
        """Products, then roles, then leaves, each in first-seen order."""
        return [*self.products.values(), *self.roles.values(), *self.leaves]


@dataclass
class AccessItem:
    """One access item held by an identity."""
    id: str
    name: str
    type: str
    source_id: Optional[str] = None
    value: Optional[str] = None

    @property
    def is_entitlement(self) -> bool:
        return self.type == ENTITLEMENT_TYPE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AccessItem":
        source = data.get("source") or {}
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            type=data.get("type") or "",
            source_id=source.get("id"),
            value=data.get("value"),
        )


@dataclass
class Subject:
    """An identity and the access it currently holds."""
    id: str
    name: str
    access: List[AccessItem] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Subject":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            access=[AccessItem.from_api(item) for item in data.get("access") or []],
        )


@dataclass
class ProxySource:
    """The source this connector instance backs."""
    id: str
    name: str
    owner_id: Optional[str] = None
    connector_instance_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ProxySource":
        owner = data.get("owner") or {}
        connector_attributes = data.get("connectorAttributes") or {}
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            owner_id=owner.get("id"),
            connector_instance_id=connector_attributes.get("spConnectorInstanceId"),
        )


@dataclass
class Account:
    """An account on the proxy source."""
    id: str
    native_identity: str
    identity_id: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def entitlements(self) -> List[str]:
        values = self.attributes.get("entitlements") or []
        if isinstance(values, str):
            return [values]
        return list(values)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            id=data["id"],
            native_identity=data.get("nativeIdentity") or "",
            identity_id=data.get("identityId"),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass
class AccessProfile:
    """A materialized, non-requestable grouping of raw entitlements."""
    id: str
    name: str
    requestable: bool = False
    entitlement_ids: List[str] = field(default_factory=list)
    source_id: Optional[str] = None
    owner_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AccessProfile":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            requestable=bool(data.get("requestable", False)),
            entitlement_ids=[ref["id"] for ref in data.get("entitlements") or [] if ref.get("id")],
            source_id=(data.get("source") or {}).get("id"),
            owner_id=(data.get("owner") or {}).get("id"),
        )
