"""
Omnichain marketplace facade.

Public entry point for UI callers. Every operation composes instructions,
runs them through the orchestrator and returns a TransactionResult; nothing
raises out of a public operation.

Usage:
    marketplace = OmnichainMarketplace(user_address, sign_authorization=wallet.sign_authorization)
    await marketplace.initialize()
    result = await marketplace.buy_nft_cross_chain(CrossChainBuyParams(...))
    if result.is_pending:
        print(result.explorer_link)
"""

import logging
from typing import List, Optional

from .config import Settings, settings as default_settings
from .core.authorization import AuthorizationManager, AuthorizationStore, SignAuthorizationFn
from .core.chains import ChainRegistry
from .core.composer import BridgeInstructionBuilder, InstructionComposer
from .core.execution import ExecutionOrchestrator, ResultReporter, SignQuoteFn
from .core.execution.state_machine import StatusCallback
from .core.types import (
    AuthorizationSet,
    BatchBuyParams,
    BuyNFTParams,
    CrossChainBuyParams,
    FeeTokenInfo,
    Instruction,
    ListNFTParams,
    TransactionResult,
    TransactionStatus,
)
from .providers.base import RelayClient
from .providers.mee import get_mee_provider
from .services.address import AddressResolver

logger = logging.getLogger(__name__)


class OmnichainMarketplace:
    """List, buy, batch-buy and cancel NFTs with one signature per bundle."""

    def __init__(
        self,
        user_address: str,
        *,
        sign_authorization: Optional[SignAuthorizationFn],
        relay: Optional[RelayClient] = None,
        quote_signer: Optional[SignQuoteFn] = None,
        registry: Optional[ChainRegistry] = None,
        store: Optional[AuthorizationStore] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.registry = registry or ChainRegistry.from_settings(self.config)
        self.resolver = AddressResolver(user_address, self.registry.supported_chain_ids)
        self.composer = InstructionComposer(
            self.registry,
            self.resolver,
            BridgeInstructionBuilder(
                self.registry,
                self.resolver,
                fill_deadline_seconds=self.config.bridge_fill_deadline_seconds,
                exclusivity_deadline=self.config.bridge_exclusivity_deadline,
            ),
        )
        self.auth_manager = AuthorizationManager(
            self.resolver.user_address,
            signer=sign_authorization,
            registry=self.registry,
            store=store,
            delegate_contract_address=self.config.delegate_contract_address,
        )
        self.reporter = ResultReporter(self.config.explorer_base_url)
        self.orchestrator = ExecutionOrchestrator(
            relay or get_mee_provider(),
            self.auth_manager,
            self.registry,
            reporter=self.reporter,
            quote_signer=quote_signer,
            use_universal_authorization=self.config.use_universal_authorization,
            validate_supported_chains=self.config.validate_supported_chains,
            receipt_timeout_s=self.config.receipt_timeout_seconds,
            status_reset_s=self.config.status_reset_seconds,
        )
        self._authorizations: Optional[AuthorizationSet] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def user_address(self) -> str:
        return self.resolver.user_address

    @property
    def is_initialized(self) -> bool:
        return self._authorizations is not None

    @property
    def authorizations(self) -> Optional[AuthorizationSet]:
        return self._authorizations

    @property
    def status(self) -> TransactionStatus:
        return self.orchestrator.status

    @property
    def error(self) -> Optional[str]:
        flow = self.orchestrator.current_flow
        return flow.error if flow is not None else None

    def on_status_change(self, callback: StatusCallback) -> None:
        self.orchestrator.on_status_change(callback)

    def get_explorer_link(self, hash: str) -> str:
        return self.reporter.explorer_link(hash)

    async def initialize(self, use_universal: Optional[bool] = None) -> AuthorizationSet:
        """
        Sign (or load) delegation grants for every supported chain.

        Raises:
            AuthorizationError: If the user declines or the signer is unavailable
        """
        universal = self.config.use_universal_authorization if use_universal is None else use_universal
        logger.info(f"Initializing omnichain marketplace for {self.user_address}")
        self._authorizations = await self.auth_manager.get_or_sign(universal)
        logger.info(f"Ready with authorizations for {len(self._authorizations)} chains")
        return self._authorizations

    async def reset_authorizations(self) -> None:
        await self.auth_manager.clear()
        self._authorizations = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _fee_token(self, fee_token: Optional[FeeTokenInfo], chain_id: int, gasless: bool) -> Optional[FeeTokenInfo]:
        """Sponsored bundles pay no fee; otherwise default to USDC on the paying chain."""
        if gasless:
            return None
        if fee_token is not None:
            return fee_token
        usdc = self.registry.usdc_address(chain_id)
        return FeeTokenInfo(address=usdc, chain_id=chain_id) if usdc else None

    async def _submit(
        self,
        operation: str,
        instructions: List[Instruction],
        *,
        gasless: bool,
        fee_token: Optional[FeeTokenInfo],
    ) -> TransactionResult:
        result = await self.orchestrator.execute(
            instructions,
            sponsorship=gasless,
            fee_token=fee_token,
            operation=operation,
        )
        if result.is_success:
            logger.info(f"{operation} completed: {result.explorer_link}")
        return result

    async def list_nft(self, params: ListNFTParams) -> TransactionResult:
        """Approve the NFT and create a listing (sponsored unless ``gasless`` is off)."""

        async def action() -> TransactionResult:
            instructions = self.composer.compose_list(params)
            return await self._submit(
                "list_nft",
                instructions,
                gasless=params.gasless,
                fee_token=self._fee_token(None, params.chain_id, params.gasless),
            )

        return await self.reporter.run("list_nft", action, [params.chain_id])

    async def buy_nft(self, params: BuyNFTParams) -> TransactionResult:
        """Same-chain purchase."""

        async def action() -> TransactionResult:
            instructions = self.composer.compose_same_chain_buy(params)
            return await self._submit(
                "buy_nft",
                instructions,
                gasless=params.gasless,
                fee_token=self._fee_token(params.fee_token, params.chain_id, params.gasless),
            )

        return await self.reporter.run("buy_nft", action, [params.chain_id])

    async def buy_nft_cross_chain(self, params: CrossChainBuyParams) -> TransactionResult:
        """Buy on the listing chain paying from the payment chain, bridging when needed."""

        async def action() -> TransactionResult:
            instructions = self.composer.compose_cross_chain_buy(params)
            return await self._submit(
                "buy_nft_cross_chain",
                instructions,
                gasless=params.gasless,
                fee_token=self._fee_token(params.fee_token, params.payment_chain_id, params.gasless),
            )

        chains = list(dict.fromkeys([params.payment_chain_id, params.listing_chain_id]))
        return await self.reporter.run("buy_nft_cross_chain", action, chains)

    async def batch_buy_nfts(self, params: BatchBuyParams) -> TransactionResult:
        """Buy several NFTs, possibly on several chains, in one bundle."""

        async def action() -> TransactionResult:
            instructions = self.composer.compose_batch_buy(params)
            fee_chain = instructions[0].chain_id
            return await self._submit(
                "batch_buy_nfts",
                instructions,
                gasless=params.gasless,
                fee_token=self._fee_token(params.fee_token, fee_chain, params.gasless),
            )

        chains = list(dict.fromkeys(item.chain_id for item in params.items))
        return await self.reporter.run("batch_buy_nfts", action, chains)

    async def cancel_listing(self, listing_id: int, chain_id: int) -> TransactionResult:
        """Cancel a listing. Always sponsored."""

        async def action() -> TransactionResult:
            instructions = self.composer.compose_cancel(listing_id, chain_id)
            return await self._submit("cancel_listing", instructions, gasless=True, fee_token=None)

        return await self.reporter.run("cancel_listing", action, [chain_id])


__all__ = ["OmnichainMarketplace"]
