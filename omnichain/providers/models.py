"""
Relay boundary records.

Only the fields the core depends on are typed; everything else the relay
returns is kept as pass-through data and echoed back untouched.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReceiptStatus(str, Enum):
    """Supertransaction status as reported by the relay."""

    PENDING = "PENDING"
    MINING = "MINING"
    MINED_SUCCESS = "MINED_SUCCESS"
    MINED_FAIL = "MINED_FAIL"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReceiptStatus":
        if value and value.upper() in cls.__members__:
            return cls[value.upper()]
        return cls.PENDING


class Quote(BaseModel):
    """Priced, routed bundle awaiting the user's execution signature."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    hash: str = Field(..., description="Supertransaction hash the user signs")
    node: Optional[str] = Field(None, description="Relay node that issued the quote")
    payment_info: Dict[str, Any] = Field(default_factory=dict, alias="paymentInfo")
    user_ops: List[Dict[str, Any]] = Field(default_factory=list, alias="userOps")

    @property
    def sponsored(self) -> bool:
        return bool(self.payment_info.get("sponsored"))

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExecuteResult(BaseModel):
    """Handle for a submitted bundle. Not finality."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    hash: str


class Receipt(BaseModel):
    """Terminal (or latest) state of a supertransaction."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    hash: str
    transaction_status: str = Field("PENDING", alias="transactionStatus")
    user_ops: List[Dict[str, Any]] = Field(default_factory=list, alias="userOps")
    explorer_links: List[str] = Field(default_factory=list, alias="explorerLinks")
    error: Optional[str] = Field(None, alias="errorMessage")

    @property
    def status(self) -> ReceiptStatus:
        return ReceiptStatus.parse(self.transaction_status)

    @property
    def is_final(self) -> bool:
        return self.status in {ReceiptStatus.MINED_SUCCESS, ReceiptStatus.MINED_FAIL, ReceiptStatus.FAILED}

    @property
    def is_success(self) -> bool:
        return self.status == ReceiptStatus.MINED_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
