"""
Error taxonomy for the omnichain execution core.

Every error raised by composition, authorization or relay interaction derives
from OmnichainError so the result reporter can convert it into the public
failed envelope without knowing which stage produced it.
"""

from typing import Dict, Iterable, List, Optional


class OmnichainError(Exception):
    """Base class for all core errors."""

    code: str = "omnichain_error"

    def __init__(
        self,
        message: str,
        *,
        chain_id: Optional[int] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.chain_id = chain_id
        self.tx_hash = tx_hash


class CompositionError(OmnichainError):
    """Invalid or unsupported request shape. Raised before any network call."""

    code = "composition_error"


class UnsupportedChainError(CompositionError):
    """No purchase target, bridge pool or relay support registered for a chain."""

    code = "unsupported_chain"

    def __init__(self, message: str, chain_id: int):
        super().__init__(message, chain_id=chain_id)


class AuthorizationError(OmnichainError):
    """User declined to sign or the signing channel is unavailable."""

    code = "authorization_error"

    def __init__(
        self,
        message: str,
        *,
        chain_id: Optional[int] = None,
        failed_chains: Optional[Iterable[int]] = None,
        authorizations: Optional[Dict[int, object]] = None,
    ):
        super().__init__(message, chain_id=chain_id)
        self.failed_chains: List[int] = list(failed_chains or [])
        # Grants that were signed before the failure; callers may still inspect them.
        self.authorizations = dict(authorizations or {})


class MissingAuthorizationError(OmnichainError):
    """The bundle references chains the authorization set does not cover."""

    code = "missing_authorization"

    def __init__(self, message: str, missing_chains: Iterable[int]):
        super().__init__(message)
        self.missing_chains: List[int] = list(missing_chains)


class QuoteError(OmnichainError):
    """Relay rejected the quote request."""

    code = "quote_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExecutionError(OmnichainError):
    """Relay accepted the quote but execution failed."""

    code = "execution_error"


class ConfirmationTimeout(OmnichainError):
    """Receipt did not arrive in time. Not a failure: the bundle may still land."""

    code = "confirmation_timeout"

    def __init__(self, message: str, tx_hash: str, timeout_s: float):
        super().__init__(message, tx_hash=tx_hash)
        self.timeout_s = timeout_s


class InvalidTransitionError(OmnichainError):
    """Attempted a status transition the state machine does not allow."""

    code = "invalid_transition"

    def __init__(self, from_state: str, to_state: str, message: str):
        super().__init__(message)
        self.from_state = from_state
        self.to_state = to_state
