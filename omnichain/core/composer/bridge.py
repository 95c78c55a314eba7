"""
Across bridge legs.

How a leg works:
1. Approve the token to the source chain's SpokePool
2. Call depositV3 with the bridge parameters
3. Relayers fill the order on the destination chain (usually 1-2 minutes)

With a runtime amount, the relay bridges exactly the balance present at
execution time, so fees from earlier steps never leave dust behind.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from ...services.address import AddressResolver, is_valid_evm_address
from ..abi import ACROSS_DEPOSIT_V3, ERC20_APPROVE, build_call
from ..chains import ChainRegistry
from ..errors import CompositionError, UnsupportedChainError
from ..types import ZERO_ADDRESS, AmountSpec, FixedAmount, Instruction, RuntimeAmount


logger = logging.getLogger(__name__)

DEFAULT_FILL_DEADLINE_SECONDS = 3600
ESTIMATED_BRIDGE_TIME_SECONDS = 120


@dataclass(frozen=True)
class BridgeRequest:
    from_chain: int
    to_chain: int
    token: str                              # Input token on from_chain
    recipient: str                          # Receiver on to_chain
    amount: AmountSpec
    output_amount: Optional[int] = None     # Defaults to a fixed input amount
    output_token: Optional[str] = None      # Defaults to the same symbol on to_chain


def needs_bridging(payment_chain: int, listing_chain: int) -> bool:
    return payment_chain != listing_chain


def estimate_bridge_time(from_chain: int, to_chain: int) -> int:
    """Seconds; Across fills are typically fast regardless of route."""
    return ESTIMATED_BRIDGE_TIME_SECONDS


class BridgeInstructionBuilder:
    """Emits the ``[approve, depositV3]`` pair for one bridge leg."""

    def __init__(
        self,
        registry: ChainRegistry,
        resolver: AddressResolver,
        *,
        fill_deadline_seconds: int = DEFAULT_FILL_DEADLINE_SECONDS,
        exclusivity_deadline: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._fill_deadline_seconds = fill_deadline_seconds
        self._exclusivity_deadline = exclusivity_deadline
        self._clock = clock

    def _output_token(self, request: BridgeRequest) -> str:
        if request.output_token:
            return request.output_token
        output = self._registry.token_on_chain(request.token, request.from_chain, request.to_chain)
        if not output:
            raise CompositionError(
                f"No counterpart of token {request.token} on chain {request.to_chain}",
                chain_id=request.to_chain,
            )
        return output

    def _output_amount(self, request: BridgeRequest) -> int:
        if request.output_amount is not None:
            return request.output_amount
        if isinstance(request.amount, FixedAmount):
            return request.amount.value
        raise CompositionError("Bridging a runtime amount requires an explicit output amount")

    def build_bridge(self, request: BridgeRequest) -> List[Instruction]:
        if not needs_bridging(request.from_chain, request.to_chain):
            raise CompositionError("Bridge source and destination chains are the same", chain_id=request.from_chain)
        for label, address in (("token", request.token), ("recipient", request.recipient)):
            if not is_valid_evm_address(address):
                raise CompositionError(f"Invalid bridge {label} address: {address!r}")

        spoke_pool = self._registry.spoke_pool_for(request.from_chain)
        if not spoke_pool:
            raise UnsupportedChainError(
                f"Across SpokePool not found for chain {request.from_chain}",
                chain_id=request.from_chain,
            )

        output_token = self._output_token(request)
        output_amount = self._output_amount(request)
        depositor = self._resolver.address_on(request.from_chain)
        input_amount = request.amount.value if isinstance(request.amount, FixedAmount) else request.amount

        now = int(self._clock())
        approve = Instruction(
            chain_id=request.from_chain,
            calls=(build_call(request.token, ERC20_APPROVE, [spoke_pool, input_amount]),),
            description="approve-bridge",
        )
        deposit = Instruction(
            chain_id=request.from_chain,
            calls=(
                build_call(
                    spoke_pool,
                    ACROSS_DEPOSIT_V3,
                    [
                        depositor,
                        request.recipient,
                        request.token,
                        output_token,
                        input_amount,
                        output_amount,
                        request.to_chain,
                        ZERO_ADDRESS,                           # no exclusive relayer
                        now,                                    # quote timestamp
                        now + self._fill_deadline_seconds,      # fill deadline
                        self._exclusivity_deadline,
                        "0x",                                   # no message
                    ],
                ),
            ),
            description="deposit-bridge",
        )

        runtime = " (runtime amount)" if isinstance(request.amount, RuntimeAmount) else ""
        logger.info(
            f"Built bridge leg {request.from_chain} -> {request.to_chain} via {spoke_pool}{runtime}"
        )
        return [approve, deposit]
