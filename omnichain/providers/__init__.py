"""External service clients."""

from .base import Provider, RelayClient
from .mee import MeeConfig, MeeRelayProvider, get_mee_provider
from .models import ExecuteResult, Quote, Receipt, ReceiptStatus

__all__ = [
    "ExecuteResult",
    "MeeConfig",
    "MeeRelayProvider",
    "Provider",
    "Quote",
    "Receipt",
    "ReceiptStatus",
    "RelayClient",
    "get_mee_provider",
]
