"""
Instruction composition for marketplace actions.

Each request shape maps to an ordered list of per-chain instructions. Every
approval precedes the instruction that spends it, and a bridge leg is always
followed directly by the destination-chain approval. The composer never reads
chain state: balance-dependent amounts are deferred to the relay.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

from ...services.address import AddressResolver, is_valid_evm_address
from ..abi import (
    ERC20_APPROVE,
    ERC721_APPROVE,
    MARKETPLACE_BUY_NFT,
    MARKETPLACE_CANCEL_LISTING,
    MARKETPLACE_CREATE_LISTING,
    build_call,
)
from ..chains import ChainRegistry
from ..errors import CompositionError, UnsupportedChainError
from ..types import (
    AmountSpec,
    BatchBuyParams,
    BuyNFTParams,
    CrossChainBuyParams,
    FixedAmount,
    Instruction,
    ListNFTParams,
    RuntimeAmount,
)
from .bridge import BridgeInstructionBuilder, BridgeRequest, needs_bridging


logger = logging.getLogger(__name__)


def chain_ids(instructions: Iterable[Instruction]) -> List[int]:
    """Chains referenced by a bundle, in first-use order."""
    return list(dict.fromkeys(instruction.chain_id for instruction in instructions))


class InstructionComposer:
    """Builds ordered instruction lists for list, buy, batch-buy and cancel."""

    def __init__(
        self,
        registry: ChainRegistry,
        resolver: AddressResolver,
        bridge_builder: Optional[BridgeInstructionBuilder] = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._bridge = bridge_builder or BridgeInstructionBuilder(registry, resolver)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _marketplace(self, chain_id: int) -> str:
        marketplace = self._registry.marketplace_for(chain_id)
        if not marketplace:
            raise UnsupportedChainError(
                f"Marketplace not deployed on chain {chain_id}",
                chain_id=chain_id,
            )
        return marketplace

    @staticmethod
    def _require_address(label: str, value: Optional[str]) -> str:
        if not is_valid_evm_address(value):
            raise CompositionError(f"Missing or invalid {label}: {value!r}")
        return value

    @staticmethod
    def _require_price(price: int) -> int:
        if not isinstance(price, int) or price <= 0:
            raise CompositionError(f"Price must be a positive integer amount, got {price!r}")
        return price

    @staticmethod
    def _require_uint(label: str, value: int) -> int:
        if not isinstance(value, int) or value < 0:
            raise CompositionError(f"{label} must be a non-negative integer, got {value!r}")
        return value

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    @staticmethod
    def _approve_erc20(
        chain_id: int,
        token: str,
        spender: str,
        amount: Union[AmountSpec, int],
        description: str,
    ) -> Instruction:
        if isinstance(amount, FixedAmount):
            amount = amount.value
        return Instruction(
            chain_id=chain_id,
            calls=(build_call(token, ERC20_APPROVE, [spender, amount]),),
            description=description,
        )

    @staticmethod
    def _buy(chain_id: int, marketplace: str, listing_id: int, nft_address: str, token_id: int) -> Instruction:
        return Instruction(
            chain_id=chain_id,
            calls=(build_call(marketplace, MARKETPLACE_BUY_NFT, [listing_id, nft_address, token_id]),),
            description="buy",
        )

    def _listing_token(self, params: CrossChainBuyParams) -> str:
        if params.listing_token:
            return self._require_address("listing token", params.listing_token)
        token = (
            self._registry.token_on_chain(params.payment_token, params.payment_chain_id, params.listing_chain_id)
            or self._registry.usdc_address(params.listing_chain_id)
        )
        if not token:
            raise CompositionError(
                f"Payment token not found for chain {params.listing_chain_id}",
                chain_id=params.listing_chain_id,
            )
        return token

    # ------------------------------------------------------------------
    # Request shapes
    # ------------------------------------------------------------------

    def compose_list(self, params: ListNFTParams) -> List[Instruction]:
        """Approve the NFT to the marketplace, then create the listing."""
        chain_id = params.chain_id
        marketplace = self._marketplace(chain_id)
        nft_address = self._require_address("NFT address", params.nft_address)
        token_id = self._require_uint("Token id", params.token_id)
        price = self._require_price(params.price)
        payment = params.payment_token or self._registry.usdc_address(chain_id)
        if not payment:
            raise CompositionError(f"Payment token not found for chain {chain_id}", chain_id=chain_id)
        self._require_address("payment token", payment)

        logger.info(f"Listing NFT {nft_address}:{token_id} for {price} on chain {chain_id}")
        return [
            Instruction(
                chain_id=chain_id,
                calls=(build_call(nft_address, ERC721_APPROVE, [marketplace, token_id]),),
                description="approve-nft",
            ),
            Instruction(
                chain_id=chain_id,
                calls=(
                    build_call(
                        marketplace,
                        MARKETPLACE_CREATE_LISTING,
                        [nft_address, token_id, price, payment],
                    ),
                ),
                description="create-listing",
            ),
        ]

    def compose_same_chain_buy(self, params: BuyNFTParams) -> List[Instruction]:
        """Fixed-amount approve of the payment token, then the buy call."""
        chain_id = params.chain_id
        marketplace = self._marketplace(chain_id)
        nft_address = self._require_address("NFT address", params.nft_address)
        payment = self._require_address("payment token", params.payment_token)
        price = self._require_price(params.price)
        token_id = self._require_uint("Token id", params.token_id)
        listing_id = self._require_uint("Listing id", params.listing_id)

        return [
            self._approve_erc20(chain_id, payment, marketplace, FixedAmount(price), "approve-marketplace"),
            self._buy(chain_id, marketplace, listing_id, nft_address, token_id),
        ]

    def compose_cross_chain_buy(self, params: CrossChainBuyParams) -> List[Instruction]:
        """
        Same chain: identical to ``compose_same_chain_buy``.

        Different chains with auto-bridge:
        1. Approve payment token to the bridge (payment chain)
        2. Deposit into the bridge (payment chain)
        3. Approve whatever arrived to the marketplace (listing chain)
        4. Buy (listing chain)

        Without auto-bridge the funds are assumed to already sit on the
        listing chain; if they don't, the relay rejects the bundle.
        """
        if not needs_bridging(params.payment_chain_id, params.listing_chain_id):
            logger.info(f"Building same-chain purchase on chain {params.listing_chain_id}")
            return self.compose_same_chain_buy(params.same_chain_params())

        listing_chain = params.listing_chain_id
        payment_chain = params.payment_chain_id
        marketplace = self._marketplace(listing_chain)
        nft_address = self._require_address("NFT address", params.nft_address)
        payment_token = self._require_address("payment token", params.payment_token)
        price = self._require_price(params.price)
        token_id = self._require_uint("Token id", params.token_id)
        listing_id = self._require_uint("Listing id", params.listing_id)
        listing_token = self._listing_token(params)

        if not params.auto_bridge:
            logger.info(
                f"Chains differ ({payment_chain} -> {listing_chain}) but auto-bridge is off; "
                "expecting funds on the listing chain"
            )
            return [
                self._approve_erc20(listing_chain, listing_token, marketplace, FixedAmount(price), "approve-marketplace"),
                self._buy(listing_chain, marketplace, listing_id, nft_address, token_id),
            ]

        logger.info(f"Building cross-chain purchase: {payment_chain} -> {listing_chain}")
        buyer = self._resolver.address_on(listing_chain)
        instructions = self._bridge.build_bridge(
            BridgeRequest(
                from_chain=payment_chain,
                to_chain=listing_chain,
                token=payment_token,
                recipient=buyer,
                amount=RuntimeAmount(payment_token, self._resolver.address_on(payment_chain), 1),
                output_amount=price,
                output_token=listing_token,
            )
        )
        instructions.append(
            self._approve_erc20(
                listing_chain,
                listing_token,
                marketplace,
                RuntimeAmount(listing_token, buyer, 1),
                "approve-marketplace",
            )
        )
        instructions.append(self._buy(listing_chain, marketplace, listing_id, nft_address, token_id))

        logger.info(f"Built {len(instructions)} instructions for cross-chain purchase")
        return instructions

    def compose_batch_buy(self, params: BatchBuyParams) -> List[Instruction]:
        """
        One approve+buy pair per item. Items on chains without a marketplace
        are skipped; the batch fails only when nothing is left.
        """
        if not params.items:
            raise CompositionError("No buy instructions provided")

        instructions: List[Instruction] = []
        for index, item in enumerate(params.items):
            marketplace = self._registry.marketplace_for(item.chain_id)
            if not marketplace:
                logger.warning(f"Marketplace not deployed on chain {item.chain_id}, skipping item {index}")
                continue

            nft_address = self._require_address("NFT address", item.nft_address)
            payment = self._require_address("payment token", item.payment_token)
            price = self._require_price(item.price)
            token_id = self._require_uint("Token id", item.token_id)
            listing_id = self._require_uint("Listing id", item.listing_id)

            instructions.append(
                self._approve_erc20(item.chain_id, payment, marketplace, FixedAmount(price), "approve-marketplace")
            )
            instructions.append(self._buy(item.chain_id, marketplace, listing_id, nft_address, token_id))

        if not instructions:
            raise CompositionError("No valid instructions to execute")

        logger.info(f"Built {len(instructions)} instructions for {len(chain_ids(instructions))} chains")
        return instructions

    def compose_cancel(self, listing_id: int, chain_id: int) -> List[Instruction]:
        marketplace = self._marketplace(chain_id)
        listing_id = self._require_uint("Listing id", listing_id)
        return [
            Instruction(
                chain_id=chain_id,
                calls=(build_call(marketplace, MARKETPLACE_CANCEL_LISTING, [listing_id]),),
                description="cancel-listing",
            )
        ]
