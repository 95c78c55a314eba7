"""
Tests for the MEE relay HTTP client.

Requests are served by httpx.MockTransport; nothing touches the network.
"""

import json
from typing import Callable, List

import httpx
import pytest

from omnichain.core.errors import ConfirmationTimeout, ExecutionError, QuoteError
from omnichain.core.types import Authorization, Call, FeeTokenInfo, Instruction
from omnichain.providers import MeeConfig, MeeRelayProvider, Quote, ReceiptStatus


TOKEN = "0x2222222222222222222222222222222222222222"
DELEGATE = "0x000000004F43C49e93C970E84001853a70923B03"
TX_HASH = "0x" + "cd" * 32


def make_provider(handler: Callable[[httpx.Request], httpx.Response], **config) -> MeeRelayProvider:
    fields = dict(
        api_key="test-key",
        base_url="https://relay.test",
        receipt_timeout_s=0.2,
        poll_interval_s=0.01,
    )
    fields.update(config)
    return MeeRelayProvider(MeeConfig(**fields), transport=httpx.MockTransport(handler))


def instructions() -> List[Instruction]:
    return [Instruction(chain_id=8453, calls=(Call(to=TOKEN, data="0x1234"),))]


def authorizations() -> List[Authorization]:
    return [Authorization(chain_id=8453, address=DELEGATE, nonce=2 ** 70, v=27, r="0x01", s="0x02")]


# =============================================================================
# Quotes
# =============================================================================

class TestGetQuote:

    @pytest.mark.asyncio
    async def test_request_payload(self):
        captured: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"hash": "0xquote", "paymentInfo": {"sponsored": True}, "fee": "12"})

        provider = make_provider(handler, sponsorship_options={"gasTank": {"chainId": 84532}})
        quote = await provider.get_quote(
            instructions(),
            account="0xUser",
            authorizations=authorizations(),
            sponsorship=True,
            fee_token=FeeTokenInfo(address=TOKEN, chain_id=8453),
        )

        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/quote"
        assert request.headers["x-api-key"] == "test-key"

        body = json.loads(request.content)
        assert body["account"] == "0xUser"
        assert body["delegate"] is True
        assert body["instructions"] == [
            {"chainId": 8453, "calls": [{"to": TOKEN, "value": "0", "data": "0x1234"}]}
        ]
        assert body["authorizations"][0]["nonce"] == str(2 ** 70)
        assert body["sponsorship"] is True
        assert body["sponsorshipOptions"] == {"gasTank": {"chainId": 84532}}
        assert body["feeToken"] == {"address": TOKEN, "chainId": 8453}

        assert quote.hash == "0xquote"
        assert quote.sponsored is True
        await provider.close()

    @pytest.mark.asyncio
    async def test_no_sponsorship_fields_by_default(self):
        captured: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"hash": "0xquote"})

        provider = make_provider(handler, api_key="")
        await provider.get_quote(instructions(), account="0xUser", authorizations=authorizations())

        body = json.loads(captured[0].content)
        assert "sponsorship" not in body
        assert "feeToken" not in body
        assert "x-api-key" not in captured[0].headers

    @pytest.mark.asyncio
    async def test_rejection_maps_to_quote_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Sponsorship is not enabled"})

        provider = make_provider(handler)

        with pytest.raises(QuoteError) as exc_info:
            await provider.get_quote(instructions(), account="0xUser", authorizations=authorizations())

        assert exc_info.value.status_code == 400
        assert "Sponsorship is not enabled" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_quote_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(QuoteError):
            await provider.get_quote(instructions(), account="0xUser", authorizations=authorizations())


# =============================================================================
# Execution
# =============================================================================

class TestExecuteQuote:

    @pytest.mark.asyncio
    async def test_quote_echoed_untouched(self):
        captured: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"hash": TX_HASH})

        provider = make_provider(handler)
        quote = Quote.model_validate({"hash": "0xquote", "paymentInfo": {"token": TOKEN}, "fee": "12"})

        result = await provider.execute_quote(quote, "0xsig")

        body = json.loads(captured[0].content)
        assert captured[0].url.path == "/v1/exec"
        assert body["quote"]["fee"] == "12"
        assert body["quote"]["paymentInfo"] == {"token": TOKEN}
        assert body["signature"] == "0xsig"
        assert result.hash == TX_HASH

    @pytest.mark.asyncio
    async def test_failure_maps_to_execution_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="internal error")

        provider = make_provider(handler)

        with pytest.raises(ExecutionError) as exc_info:
            await provider.execute_quote(Quote(hash="0xquote"))

        assert "internal error" in exc_info.value.message
        assert exc_info.value.tx_hash is None


# =============================================================================
# Receipts
# =============================================================================

class TestWaitForReceipt:

    @pytest.mark.asyncio
    async def test_polls_until_final(self):
        responses = [
            httpx.Response(404, json={"message": "not found"}),
            httpx.Response(200, json={"transactionStatus": "MINING"}),
            httpx.Response(200, json={"transactionStatus": "MINED_SUCCESS", "explorerLinks": ["https://x"]}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/v1/explorer/{TX_HASH}"
            return responses.pop(0)

        provider = make_provider(handler)
        receipt = await provider.wait_for_receipt(TX_HASH)

        assert responses == []
        assert receipt.hash == TX_HASH
        assert receipt.status == ReceiptStatus.MINED_SUCCESS
        assert receipt.is_success is True
        assert receipt.explorer_links == ["https://x"]

    @pytest.mark.asyncio
    async def test_failed_bundle_raises_with_hash(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"transactionStatus": "MINED_FAIL", "errorMessage": "buy reverted"})

        provider = make_provider(handler)

        with pytest.raises(ExecutionError) as exc_info:
            await provider.wait_for_receipt(TX_HASH)

        assert exc_info.value.tx_hash == TX_HASH
        assert "buy reverted" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_is_confirmation_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"transactionStatus": "PENDING"})

        provider = make_provider(handler)

        with pytest.raises(ConfirmationTimeout) as exc_info:
            await provider.wait_for_receipt(TX_HASH, timeout_s=0.05)

        assert exc_info.value.tx_hash == TX_HASH
        assert exc_info.value.timeout_s == 0.05

    @pytest.mark.asyncio
    async def test_transient_errors_keep_polling(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json={"transactionStatus": "MINED_SUCCESS"})

        provider = make_provider(handler)
        receipt = await provider.wait_for_receipt(TX_HASH)

        assert receipt.is_success is True
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_gateway_errors_keep_polling(self):
        responses = [
            httpx.Response(502, text="bad gateway"),
            httpx.Response(429, json={"message": "rate limited"}),
            httpx.Response(200, json={"transactionStatus": "MINED_SUCCESS"}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        provider = make_provider(handler)
        receipt = await provider.wait_for_receipt(TX_HASH)

        assert responses == []
        assert receipt.is_success is True

    @pytest.mark.asyncio
    async def test_persistent_outage_is_confirmation_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        provider = make_provider(handler)

        with pytest.raises(ConfirmationTimeout) as exc_info:
            await provider.wait_for_receipt(TX_HASH, timeout_s=0.05)

        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_client_error_on_receipt_is_execution_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "malformed hash"})

        provider = make_provider(handler)

        with pytest.raises(ExecutionError) as exc_info:
            await provider.wait_for_receipt(TX_HASH)

        assert exc_info.value.tx_hash == TX_HASH
        assert "malformed hash" in exc_info.value.message

    def test_unknown_status_treated_as_pending(self):
        assert ReceiptStatus.parse("SOMETHING_NEW") == ReceiptStatus.PENDING
        assert ReceiptStatus.parse(None) == ReceiptStatus.PENDING
        assert ReceiptStatus.parse("mined_success") == ReceiptStatus.MINED_SUCCESS


# =============================================================================
# Supported chains / health
# =============================================================================

class TestSupportedChains:

    @pytest.mark.asyncio
    async def test_parses_and_caches(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            assert request.url.path == "/v1/info"
            return httpx.Response(200, json={"supportedChains": [{"chainId": "8453", "name": "Base"}, 42161]})

        provider = make_provider(handler)

        assert await provider.get_supported_chains() == [8453, 42161]
        assert await provider.get_supported_chains() == [8453, 42161]
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_health_check(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        provider = make_provider(handler)
        health = await provider.health_check()

        assert health["status"] == "error"
        assert await provider.ready() is True
