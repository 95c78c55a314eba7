"""
Result envelope for public operations.

Every public marketplace operation returns a TransactionResult; errors raised
anywhere in compose/authorize/quote/execute/confirm are converted here.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from ...config import settings
from ..errors import OmnichainError
from ..types import ZERO_HASH, TransactionResult, TransactionStatus

logger = logging.getLogger(__name__)


class ResultReporter:
    """Builds TransactionResult envelopes and shields callers from exceptions."""

    def __init__(self, explorer_base_url: Optional[str] = None):
        self.explorer_base_url = (explorer_base_url or settings.explorer_base_url).rstrip("/")

    def explorer_link(self, hash: str) -> str:
        if not hash or hash == ZERO_HASH:
            return ""
        return f"{self.explorer_base_url}/{hash}"

    def success(
        self,
        hash: str,
        chain_ids: Iterable[int],
        receipt: Optional[Dict[str, Any]] = None,
    ) -> TransactionResult:
        return TransactionResult(
            hash=hash,
            status=TransactionStatus.SUCCESS,
            chain_ids=tuple(chain_ids),
            explorer_link=self.explorer_link(hash),
            receipt=receipt,
        )

    def pending(self, hash: str, chain_ids: Iterable[int], message: str = "") -> TransactionResult:
        """Submitted but not final within the local wait; keep the hash for later lookup."""
        return TransactionResult(
            hash=hash,
            status=TransactionStatus.CONFIRMING,
            chain_ids=tuple(chain_ids),
            explorer_link=self.explorer_link(hash),
            message=message or None,
        )

    def failure(self, error: BaseException, chain_ids: Iterable[int] = ()) -> TransactionResult:
        if isinstance(error, OmnichainError):
            message = error.message
            hash = error.tx_hash or ZERO_HASH
        else:
            message = str(error) or error.__class__.__name__
            hash = ZERO_HASH
        return TransactionResult(
            hash=hash,
            status=TransactionStatus.FAILED,
            chain_ids=tuple(chain_ids),
            explorer_link="",
            error=message,
        )

    async def run(
        self,
        operation: str,
        action: Callable[[], Awaitable[TransactionResult]],
        chain_ids: Iterable[int] = (),
    ) -> TransactionResult:
        """
        Await ``action`` and return its result, or a failed envelope if it raised.

        Cancellation is not an Exception and propagates.
        """
        chain_ids = tuple(chain_ids)
        try:
            return await action()
        except Exception as e:
            code = getattr(e, "code", "unexpected_error")
            logger.error(f"{operation} failed [{code}]: {e}", exc_info=not isinstance(e, OmnichainError))
            return self.failure(e, chain_ids)
