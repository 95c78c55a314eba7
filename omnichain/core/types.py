"""
Shared types for instruction composition, delegation and execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .errors import CompositionError


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = "0x" + "00" * 32


class TransactionStatus(str, Enum):
    """Client-observable lifecycle of one supertransaction."""
    IDLE = "idle"
    PREPARING = "preparing"
    SIGNING_AUTHORIZATION = "signing_authorization"
    GETTING_QUOTE = "getting_quote"
    SIGNING_EXECUTION = "signing_execution"
    EXECUTING = "executing"
    CONFIRMING = "confirming"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def message(self) -> str:
        """Short user-facing description of the stage."""
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES = {
    TransactionStatus.IDLE: "Ready",
    TransactionStatus.PREPARING: "Preparing transaction...",
    TransactionStatus.SIGNING_AUTHORIZATION: "Please sign authorization",
    TransactionStatus.GETTING_QUOTE: "Getting quote from MEE...",
    TransactionStatus.SIGNING_EXECUTION: "Please sign transaction",
    TransactionStatus.EXECUTING: "Executing transaction...",
    TransactionStatus.CONFIRMING: "Confirming on-chain...",
    TransactionStatus.SUCCESS: "Transaction successful!",
    TransactionStatus.FAILED: "Transaction failed",
}


# =============================================================================
# Amounts
# =============================================================================

@dataclass(frozen=True)
class FixedAmount:
    """An amount known at composition time."""
    value: int

    def __post_init__(self):
        if self.value < 0:
            raise CompositionError(f"Amount must be non-negative, got {self.value}")

    def to_payload(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RuntimeAmount:
    """
    Whatever balance of ``token_address`` the owner holds when the relay
    executes the call, subject to ``>= min_constraint``.

    Never resolved locally; the relay injects the value at execution time.
    """
    token_address: str
    owner_address: str
    min_constraint: int = 1

    def __post_init__(self):
        if not self.min_constraint or self.min_constraint <= 0:
            raise CompositionError(
                "Runtime amount requires a non-zero minimum constraint"
            )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "runtimeErc20Balance",
            "tokenAddress": self.token_address,
            "targetAddress": self.owner_address,
            "constraints": [{"type": "gte", "value": str(self.min_constraint)}],
        }


AmountSpec = Union[FixedAmount, RuntimeAmount]


def _arg_payload(arg: Any) -> Any:
    if isinstance(arg, (FixedAmount, RuntimeAmount)):
        return arg.to_payload()
    if isinstance(arg, bool):
        return arg
    if isinstance(arg, int):
        # Decimal strings keep uint256 values intact through JSON.
        return str(arg)
    return arg


# =============================================================================
# Calls & instructions
# =============================================================================

@dataclass(frozen=True)
class Call:
    """
    A single on-chain invocation.

    Raw calls carry encoded ``data``. Composable calls carry a function
    signature and arguments instead, because at least one argument is a
    runtime amount that only the relay can resolve.
    """
    to: str
    value: int = 0
    data: str = "0x"
    function_signature: Optional[str] = None
    args: Tuple[Any, ...] = ()

    @property
    def is_composable(self) -> bool:
        return self.function_signature is not None

    @property
    def runtime_amounts(self) -> List[RuntimeAmount]:
        return [arg for arg in self.args if isinstance(arg, RuntimeAmount)]

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"to": self.to, "value": str(self.value)}
        if self.is_composable:
            payload["functionSignature"] = self.function_signature
            payload["args"] = [_arg_payload(arg) for arg in self.args]
        else:
            payload["data"] = self.data
        return payload


@dataclass(frozen=True)
class Instruction:
    """Ordered calls targeted at one chain."""
    chain_id: int
    calls: Tuple[Call, ...]
    description: str = field(default="", compare=False)

    def __post_init__(self):
        if not isinstance(self.calls, tuple):
            object.__setattr__(self, "calls", tuple(self.calls))
        if not self.calls:
            raise CompositionError("Instruction must contain at least one call", chain_id=self.chain_id)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "calls": [call.to_payload() for call in self.calls],
        }


# =============================================================================
# Authorizations
# =============================================================================

UNIVERSAL_CHAIN_ID = 0


@dataclass(frozen=True)
class Authorization:
    """Signed EIP-7702 delegation grant. ``chain_id == 0`` is valid on every chain."""
    chain_id: int
    address: str
    nonce: int
    v: int
    r: str
    s: str

    @property
    def is_universal(self) -> bool:
        return self.chain_id == UNIVERSAL_CHAIN_ID

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form. The nonce is a decimal string so large values survive."""
        return {
            "chainId": self.chain_id,
            "address": self.address,
            "nonce": str(self.nonce),
            "v": self.v,
            "r": self.r,
            "s": self.s,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Authorization":
        nonce = data["nonce"]
        return cls(
            chain_id=int(data["chainId"]),
            address=data["address"],
            nonce=int(nonce, 16) if isinstance(nonce, str) and nonce.startswith("0x") else int(nonce),
            v=int(data.get("v", data.get("yParity", 0))),
            r=data["r"],
            s=data["s"],
        )


AuthorizationSet = Dict[int, Authorization]


# =============================================================================
# Requests
# =============================================================================

@dataclass(frozen=True)
class FeeTokenInfo:
    """ERC-20 used to pay relay fees, possibly on a different chain."""
    address: str
    chain_id: int

    def to_payload(self) -> Dict[str, Any]:
        return {"address": self.address, "chainId": self.chain_id}


@dataclass
class ListNFTParams:
    nft_address: str
    token_id: int
    price: int
    chain_id: int
    payment_token: Optional[str] = None         # Defaults to USDC on chain_id
    gasless: bool = True


@dataclass
class BuyNFTParams:
    """Same-chain purchase."""
    chain_id: int
    nft_address: str
    token_id: int
    price: int
    payment_token: str
    listing_id: int = 0
    seller: Optional[str] = None
    fee_token: Optional[FeeTokenInfo] = None
    gasless: bool = False


@dataclass
class CrossChainBuyParams:
    listing_chain_id: int
    payment_chain_id: int
    nft_address: str
    token_id: int
    price: int
    payment_token: str                          # On payment_chain_id
    listing_token: Optional[str] = None         # On listing_chain_id; defaults to USDC
    listing_id: int = 0
    seller: Optional[str] = None
    auto_bridge: bool = True
    fee_token: Optional[FeeTokenInfo] = None
    gasless: bool = False

    @property
    def is_cross_chain(self) -> bool:
        return self.payment_chain_id != self.listing_chain_id

    def same_chain_params(self) -> BuyNFTParams:
        """The equivalent same-chain request, paying on the listing chain."""
        return BuyNFTParams(
            chain_id=self.listing_chain_id,
            nft_address=self.nft_address,
            token_id=self.token_id,
            price=self.price,
            payment_token=self.payment_token,
            listing_id=self.listing_id,
            seller=self.seller,
            fee_token=self.fee_token,
            gasless=self.gasless,
        )


@dataclass
class BatchBuyItem:
    chain_id: int
    nft_address: str
    token_id: int
    price: int
    payment_token: str
    listing_id: int = 0
    seller: Optional[str] = None


@dataclass
class BatchBuyParams:
    items: Sequence[BatchBuyItem]
    fee_token: Optional[FeeTokenInfo] = None
    gasless: bool = False


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class TransactionResult:
    """Terminal artifact of one submission. Never mutated after creation."""
    hash: str
    status: TransactionStatus
    chain_ids: Tuple[int, ...]
    explorer_link: str = ""
    receipt: Optional[Dict[str, Any]] = field(default=None, compare=False)
    error: Optional[str] = None
    message: Optional[str] = None  # Progress hint for non-failed results

    def __post_init__(self):
        if not isinstance(self.chain_ids, tuple):
            object.__setattr__(self, "chain_ids", tuple(self.chain_ids))

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.SUCCESS

    @property
    def is_pending(self) -> bool:
        """Submitted, but no terminal receipt within the local wait window."""
        return self.status == TransactionStatus.CONFIRMING

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "hash": self.hash,
            "status": self.status.value,
            "chainIds": list(self.chain_ids),
            "explorerLink": self.explorer_link,
        }
        if self.receipt is not None:
            data["receipt"] = self.receipt
        if self.error is not None:
            data["error"] = self.error
        if self.message is not None:
            data["message"] = self.message
        return data
