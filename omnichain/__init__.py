"""Omnichain NFT marketplace execution core."""

from .core.errors import (
    AuthorizationError,
    CompositionError,
    ConfirmationTimeout,
    ExecutionError,
    MissingAuthorizationError,
    OmnichainError,
    QuoteError,
    UnsupportedChainError,
)
from .core.types import (
    BatchBuyItem,
    BatchBuyParams,
    BuyNFTParams,
    CrossChainBuyParams,
    FeeTokenInfo,
    ListNFTParams,
    TransactionResult,
    TransactionStatus,
)
from .marketplace import OmnichainMarketplace

__version__ = "0.1.0"

__all__ = [
    "AuthorizationError",
    "BatchBuyItem",
    "BatchBuyParams",
    "BuyNFTParams",
    "CompositionError",
    "ConfirmationTimeout",
    "CrossChainBuyParams",
    "ExecutionError",
    "FeeTokenInfo",
    "ListNFTParams",
    "MissingAuthorizationError",
    "OmnichainError",
    "OmnichainMarketplace",
    "QuoteError",
    "TransactionResult",
    "TransactionStatus",
    "UnsupportedChainError",
]
