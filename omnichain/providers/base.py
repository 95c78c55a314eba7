from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..core.types import Authorization, FeeTokenInfo, Instruction
from .models import ExecuteResult, Quote, Receipt


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class RelayClient(Protocol):
    """
    Execution relay contract consumed by the orchestrator.

    The relay computes fees and routes, executes the signed bundle across
    chains in order, and reports one receipt for the whole supertransaction.
    """

    async def get_quote(
        self,
        instructions: Sequence[Instruction],
        *,
        account: str,
        authorizations: Sequence[Authorization],
        delegate: bool = True,
        sponsorship: bool = False,
        fee_token: Optional[FeeTokenInfo] = None,
    ) -> Quote: ...

    async def execute_quote(self, quote: Quote, signature: Optional[str] = None) -> ExecuteResult: ...

    async def wait_for_receipt(self, hash: str, timeout_s: Optional[float] = None) -> Receipt: ...

    async def get_supported_chains(self) -> List[int]: ...

