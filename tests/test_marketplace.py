"""
End-to-end tests for the OmnichainMarketplace facade with a fake relay.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from omnichain import (
    BatchBuyItem,
    BatchBuyParams,
    BuyNFTParams,
    CrossChainBuyParams,
    ExecutionError,
    ListNFTParams,
    OmnichainMarketplace,
    TransactionStatus,
)
from omnichain.config import Settings
from omnichain.core.chains import ChainRegistry
from omnichain.core.errors import AuthorizationError
from omnichain.core.types import ZERO_ADDRESS, ZERO_HASH, Authorization
from omnichain.providers import ExecuteResult, Quote, Receipt


USER = "0x52908400098527886E0F7030069857D2E4169EE7"
DELEGATE = "0x000000004F43C49e93C970E84001853a70923B03"
NFT = "0x5555555555555555555555555555555555555555"
MARKETPLACE_BASE = "0x6666666666666666666666666666666666666666"
MARKETPLACE_ARB = "0x7777777777777777777777777777777777777777"
USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
USDC_ARB = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
TX_HASH = "0x" + "ef" * 32


def make_auth(chain_id: int) -> Authorization:
    return Authorization(chain_id=chain_id, address=DELEGATE, nonce=1, v=27, r="0x01", s="0x02")


@pytest.fixture
def relay() -> MagicMock:
    relay = MagicMock()
    relay.get_supported_chains = AsyncMock(return_value=[8453, 42161])
    relay.get_quote = AsyncMock(return_value=Quote(hash="0xquote"))
    relay.execute_quote = AsyncMock(return_value=ExecuteResult(hash=TX_HASH))
    relay.wait_for_receipt = AsyncMock(return_value=Receipt(hash=TX_HASH, transactionStatus="MINED_SUCCESS"))
    return relay


@pytest.fixture
def signer() -> AsyncMock:
    return AsyncMock(side_effect=lambda contract_address, chain_id: make_auth(chain_id))


@pytest.fixture
def marketplace(relay: MagicMock, signer: AsyncMock) -> OmnichainMarketplace:
    registry = ChainRegistry(
        supported_chain_ids=[8453, 42161],
        marketplace_addresses={8453: MARKETPLACE_BASE, 42161: MARKETPLACE_ARB, 10: ZERO_ADDRESS},
    )
    config = Settings(
        explorer_base_url="https://explorer.test/details",
        status_reset_seconds=60,
        receipt_timeout_seconds=5,
    )
    return OmnichainMarketplace(
        USER,
        sign_authorization=signer,
        relay=relay,
        registry=registry,
        config=config,
    )


# =============================================================================
# Initialization
# =============================================================================

class TestInitialize:

    @pytest.mark.asyncio
    async def test_initialize_signs_every_chain_once(self, marketplace: OmnichainMarketplace, signer: AsyncMock):
        assert marketplace.is_initialized is False

        authorizations = await marketplace.initialize()
        await marketplace.initialize()

        assert sorted(authorizations) == [8453, 42161]
        assert marketplace.is_initialized is True
        assert signer.await_count == 2

    @pytest.mark.asyncio
    async def test_initialize_propagates_decline(self, relay: MagicMock):
        marketplace = OmnichainMarketplace(
            USER,
            sign_authorization=AsyncMock(side_effect=RuntimeError("User rejected")),
            relay=relay,
            registry=ChainRegistry(supported_chain_ids=[8453]),
            config=Settings(status_reset_seconds=0),
        )

        with pytest.raises(AuthorizationError):
            await marketplace.initialize()

        assert marketplace.is_initialized is False

    @pytest.mark.asyncio
    async def test_reset_authorizations(self, marketplace: OmnichainMarketplace, signer: AsyncMock):
        await marketplace.initialize()
        await marketplace.reset_authorizations()

        assert marketplace.is_initialized is False
        await marketplace.initialize()
        assert signer.await_count == 4


# =============================================================================
# Operations
# =============================================================================

class TestOperations:

    @pytest.mark.asyncio
    async def test_list_nft_gasless(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        result = await marketplace.list_nft(
            ListNFTParams(nft_address=NFT, token_id=1, price=100, chain_id=8453)
        )

        assert result.status == TransactionStatus.SUCCESS
        assert result.hash == TX_HASH
        assert result.chain_ids == (8453,)
        assert result.explorer_link == f"https://explorer.test/details/{TX_HASH}"
        kwargs = relay.get_quote.await_args.kwargs
        assert kwargs["sponsorship"] is True
        assert kwargs["fee_token"] is None

    @pytest.mark.asyncio
    async def test_buy_nft_defaults_fee_token_to_usdc(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        result = await marketplace.buy_nft(
            BuyNFTParams(chain_id=8453, nft_address=NFT, token_id=1, price=100, payment_token=USDC_BASE)
        )

        assert result.is_success is True
        fee_token = relay.get_quote.await_args.kwargs["fee_token"]
        assert fee_token.address == USDC_BASE
        assert fee_token.chain_id == 8453
        assert relay.get_quote.await_args.kwargs["sponsorship"] is False

    @pytest.mark.asyncio
    async def test_cross_chain_buy_submits_four_instructions(
        self,
        marketplace: OmnichainMarketplace,
        relay: MagicMock,
    ):
        result = await marketplace.buy_nft_cross_chain(
            CrossChainBuyParams(
                listing_chain_id=42161,
                payment_chain_id=8453,
                nft_address=NFT,
                token_id=7,
                price=100,
                payment_token=USDC_BASE,
            )
        )

        assert result.status == TransactionStatus.SUCCESS
        assert result.chain_ids == (8453, 42161)
        submitted = relay.get_quote.await_args.args[0]
        assert [i.chain_id for i in submitted] == [8453, 8453, 42161, 42161]
        assert relay.get_quote.await_args.kwargs["fee_token"].chain_id == 8453

    @pytest.mark.asyncio
    async def test_batch_buy_skips_unsupported_items(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        items = [
            BatchBuyItem(chain_id=8453, nft_address=NFT, token_id=1, price=10, payment_token=USDC_BASE),
            BatchBuyItem(chain_id=10, nft_address=NFT, token_id=2, price=10, payment_token=USDC_BASE),
            BatchBuyItem(chain_id=42161, nft_address=NFT, token_id=3, price=10, payment_token=USDC_ARB),
        ]

        result = await marketplace.batch_buy_nfts(BatchBuyParams(items=items, gasless=True))

        assert result.is_success is True
        submitted = relay.get_quote.await_args.args[0]
        assert len(submitted) == 4

    @pytest.mark.asyncio
    async def test_cancel_listing_is_sponsored(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        result = await marketplace.cancel_listing(3, 42161)

        assert result.is_success is True
        assert relay.get_quote.await_args.kwargs["sponsorship"] is True


# =============================================================================
# Failure envelopes
# =============================================================================

class TestFailureEnvelopes:

    @pytest.mark.asyncio
    async def test_execute_failure_returns_failed_result(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        relay.execute_quote.side_effect = ExecutionError("Relay unavailable")

        result = await marketplace.buy_nft(
            BuyNFTParams(chain_id=8453, nft_address=NFT, token_id=1, price=100, payment_token=USDC_BASE)
        )

        assert result.status == TransactionStatus.FAILED
        assert result.hash == ZERO_HASH
        assert result.error == "Relay unavailable"
        assert result.explorer_link == ""
        assert result.chain_ids == (8453,)
        assert marketplace.status == TransactionStatus.FAILED
        assert marketplace.error == "Relay unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_error_never_escapes(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        relay.get_quote.side_effect = RuntimeError("socket closed")

        result = await marketplace.cancel_listing(3, 8453)

        assert result.status == TransactionStatus.FAILED
        assert result.error == "socket closed"

    @pytest.mark.asyncio
    async def test_composition_error_makes_no_network_call(
        self,
        marketplace: OmnichainMarketplace,
        relay: MagicMock,
        signer: AsyncMock,
    ):
        result = await marketplace.list_nft(
            ListNFTParams(nft_address=NFT, token_id=1, price=100, chain_id=10)
        )

        assert result.status == TransactionStatus.FAILED
        assert result.chain_ids == (10,)
        assert "chain 10" in result.error
        signer.assert_not_awaited()
        relay.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_batch_with_nothing_valid(self, marketplace: OmnichainMarketplace, relay: MagicMock):
        items = [BatchBuyItem(chain_id=10, nft_address=NFT, token_id=2, price=10, payment_token=USDC_BASE)]

        result = await marketplace.batch_buy_nfts(BatchBuyParams(items=items))

        assert result.status == TransactionStatus.FAILED
        assert result.error == "No valid instructions to execute"
        assert result.chain_ids == (10,)

    @pytest.mark.asyncio
    async def test_declined_authorization_returns_failed_result(self, relay: MagicMock):
        marketplace = OmnichainMarketplace(
            USER,
            sign_authorization=AsyncMock(side_effect=RuntimeError("User rejected")),
            relay=relay,
            registry=ChainRegistry(supported_chain_ids=[8453], marketplace_addresses={8453: MARKETPLACE_BASE}),
            config=Settings(status_reset_seconds=0),
        )

        result = await marketplace.cancel_listing(1, 8453)

        assert result.status == TransactionStatus.FAILED
        assert "User rejected" in result.error
        relay.get_quote.assert_not_awaited()


def test_explorer_link(marketplace: OmnichainMarketplace):
    assert marketplace.get_explorer_link(TX_HASH) == f"https://explorer.test/details/{TX_HASH}"
