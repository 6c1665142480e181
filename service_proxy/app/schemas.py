"""
Request and response models exchanged with the host platform.
"""

from typing import Dict, Any, Optional, List, Union
from enum import Enum

from pydantic import BaseModel, Field


class CommandType(str, Enum):
    """Connector commands the host may invoke."""
    TEST_CONNECTION = "std:test-connection"
    ACCOUNT_LIST = "std:account:list"
    ENTITLEMENT_LIST = "std:entitlement:list"
    ACCOUNT_CREATE = "std:account:create"
    ACCOUNT_UPDATE = "std:account:update"


class AttributeChangeOp(str, Enum):
    """Account attribute change operations."""
    ADD = "Add"
    REMOVE = "Remove"
    SET = "Set"


def as_list(value: Union[str, List[str], None]) -> List[str]:
    """Normalize a single value or list of values to a list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


class AccountAttributes(BaseModel):
    """Attributes of an emitted account."""
    id: str
    name: str
    entitlements: List[str] = Field(default_factory=list)


class AccountOutput(BaseModel):
    """Account record emitted to the host."""
    identity: str
    uuid: str
    attributes: AccountAttributes

    @classmethod
    def for_identity(cls, name: str, entitlements: List[str]) -> "AccountOutput":
        return cls(
            identity=name,
            uuid=name,
            attributes=AccountAttributes(id=name, name=name, entitlements=entitlements),
        )


class EntitlementOutput(BaseModel):
    """Entitlement record emitted to the host."""
    identity: str
    uuid: str
    type: str = "entitlement"
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record) -> "EntitlementOutput":
        return cls(identity=record.name, uuid=record.name, attributes=record.attributes())


class AccountCreateAttributes(BaseModel):
    name: Optional[str] = None
    entitlements: Union[str, List[str], None] = None


class AccountCreateInput(BaseModel):
    """Input of std:account:create."""
    identity: Optional[str] = None
    attributes: AccountCreateAttributes = Field(default_factory=AccountCreateAttributes)


class AttributeChange(BaseModel):
    op: AttributeChangeOp
    attribute: str = "entitlements"
    value: Union[str, List[str], None] = None


class AccountUpdateInput(BaseModel):
    """Input of std:account:update."""
    identity: str
    changes: List[AttributeChange] = Field(default_factory=list)


class CommandRequest(BaseModel):
    """A single host invocation."""
    type: str
    input: Dict[str, Any] = Field(default_factory=dict)
