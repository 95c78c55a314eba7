"""
Biconomy MEE provider: quotes, executes and tracks supertransactions.

A supertransaction is one user-signed bundle that may contain instructions
for several chains; the MEE node executes them in order and finalizes the
whole bundle as one unit.

Docs: https://docs.biconomy.io/
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import settings
from ..core.chains import TESTNET_SPONSORSHIP
from ..core.errors import ConfirmationTimeout, ExecutionError, QuoteError
from ..core.types import Authorization, FeeTokenInfo, Instruction
from .base import Provider
from .models import ExecuteResult, Quote, Receipt

logger = logging.getLogger(__name__)


@dataclass
class MeeConfig:
    """MEE provider configuration."""
    api_key: str = ""  # Optional on testnet
    base_url: str = "https://network.biconomy.io"
    timeout_s: float = 30.0
    receipt_timeout_s: float = 300.0
    poll_interval_s: float = 2.0
    sponsorship_options: Optional[Dict[str, Any]] = None


class MeeRelayProvider(Provider):
    """
    Execution relay client.

    Usage:
        provider = get_mee_provider()
        quote = await provider.get_quote(instructions, account=user, authorizations=auths)
        result = await provider.execute_quote(quote, signature)
        receipt = await provider.wait_for_receipt(result.hash)
    """

    name = "mee"

    def __init__(
        self,
        config: Optional[MeeConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or MeeConfig(
            api_key=settings.mee_api_key,
            base_url=settings.mee_base_url,
            timeout_s=settings.mee_timeout_seconds,
            receipt_timeout_s=settings.receipt_timeout_seconds,
            poll_interval_s=settings.receipt_poll_interval_seconds,
            sponsorship_options=TESTNET_SPONSORSHIP if settings.is_testnet else None,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._supported_chains: Optional[List[int]] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "User-Agent": "OmnichainMarketplace/1.0",
            }
            if self._config.api_key:
                headers["x-api-key"] = self._config.api_key

            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=headers,
                timeout=self._config.timeout_s,
                transport=self._transport,
            )
        return self._client

    async def ready(self) -> bool:
        return bool(self._config.base_url)

    async def health_check(self) -> Dict[str, Any]:
        try:
            chains = await self.get_supported_chains(refresh=True)
            return {"status": "healthy", "chains": len(chains)}
        except (QuoteError, httpx.HTTPError) as e:
            return {"status": "error", "reason": str(e)}

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            for key in ("message", "error", "errors"):
                if body.get(key):
                    return str(body[key])
        return response.text

    async def get_supported_chains(self, refresh: bool = False) -> List[int]:
        """Chain ids the relay can serve. Cached after the first successful call."""
        if self._supported_chains is not None and not refresh:
            return list(self._supported_chains)

        try:
            response = await self._get_client().get("/v1/info")
        except httpx.RequestError as e:
            logger.error(f"Relay info request failed: {e}")
            raise QuoteError(f"Relay unreachable: {e}") from e

        if response.status_code != 200:
            raise QuoteError(
                f"Failed to get supported chains: {self._error_text(response)}",
                status_code=response.status_code,
            )

        chains: List[int] = []
        for entry in response.json().get("supportedChains", []):
            chain_id = entry.get("chainId") if isinstance(entry, dict) else entry
            if chain_id is not None:
                chains.append(int(chain_id))
        self._supported_chains = chains
        return list(chains)

    async def get_quote(
        self,
        instructions: Sequence[Instruction],
        *,
        account: str,
        authorizations: Sequence[Authorization],
        delegate: bool = True,
        sponsorship: bool = False,
        fee_token: Optional[FeeTokenInfo] = None,
    ) -> Quote:
        payload: Dict[str, Any] = {
            "account": account,
            "instructions": [instruction.to_payload() for instruction in instructions],
            "delegate": delegate,
            "authorizations": [auth.to_dict() for auth in authorizations],
        }
        if sponsorship:
            payload["sponsorship"] = True
            if self._config.sponsorship_options:
                payload["sponsorshipOptions"] = self._config.sponsorship_options
        if fee_token is not None:
            payload["feeToken"] = fee_token.to_payload()

        try:
            response = await self._get_client().post("/v1/quote", json=payload)
        except httpx.RequestError as e:
            logger.error(f"Quote request failed: {e}")
            raise QuoteError(f"Quote request failed: {e}") from e

        if response.status_code not in (200, 201):
            error_text = self._error_text(response)
            logger.error(f"Quote rejected: {response.status_code} - {error_text}")
            raise QuoteError(f"Quote rejected: {error_text}", status_code=response.status_code)

        quote = Quote.model_validate(response.json())
        logger.info(f"Quote received: {quote.hash}")
        return quote

    async def execute_quote(self, quote: Quote, signature: Optional[str] = None) -> ExecuteResult:
        payload: Dict[str, Any] = {"quote": quote.to_payload()}
        if signature:
            payload["signature"] = signature

        try:
            response = await self._get_client().post("/v1/exec", json=payload)
        except httpx.RequestError as e:
            logger.error(f"Execute request failed: {e}")
            raise ExecutionError(f"Execute request failed: {e}") from e

        if response.status_code not in (200, 201):
            error_text = self._error_text(response)
            logger.error(f"Execution failed: {response.status_code} - {error_text}")
            raise ExecutionError(f"Execution failed: {error_text}")

        result = ExecuteResult.model_validate(response.json())
        logger.info(f"Supertransaction submitted: {result.hash}")
        return result

    async def get_receipt(self, hash: str) -> Optional[Receipt]:
        """
        Latest receipt, or None while the relay has not indexed the hash yet.

        Raises:
            httpx.HTTPStatusError: On 429 or 5xx, which callers may retry
            ExecutionError: On any other non-200 reply
        """
        response = await self._get_client().get(f"/v1/explorer/{hash}")
        if response.status_code == 404:
            return None
        if response.status_code == 429 or response.status_code >= 500:
            response.raise_for_status()
        if response.status_code != 200:
            raise ExecutionError(
                f"Failed to get receipt: {self._error_text(response)}",
                tx_hash=hash,
            )
        data = response.json()
        data.setdefault("hash", hash)
        return Receipt.model_validate(data)

    async def wait_for_receipt(self, hash: str, timeout_s: Optional[float] = None) -> Receipt:
        """
        Poll until the supertransaction is final.

        Raises:
            ExecutionError: If the bundle failed on-chain
            ConfirmationTimeout: If nothing final arrived in time (bundle may still land)
        """
        timeout_s = timeout_s if timeout_s is not None else self._config.receipt_timeout_s
        start_time = time.monotonic()

        while True:
            try:
                receipt = await self.get_receipt(hash)
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                logger.warning(f"Receipt poll failed, retrying: {e}")
                receipt = None

            if receipt is not None and receipt.is_final:
                if not receipt.is_success:
                    raise ExecutionError(
                        f"Supertransaction {hash} failed: {receipt.error or receipt.transaction_status}",
                        tx_hash=hash,
                    )
                return receipt

            elapsed = time.monotonic() - start_time
            if elapsed >= timeout_s:
                raise ConfirmationTimeout(
                    f"Supertransaction {hash} still processing after {timeout_s}s",
                    tx_hash=hash,
                    timeout_s=timeout_s,
                )

            await asyncio.sleep(self._config.poll_interval_s)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


# Singleton instance
_mee_provider: Optional[MeeRelayProvider] = None


def get_mee_provider() -> MeeRelayProvider:
    """Get the singleton MEE provider instance."""
    global _mee_provider
    if _mee_provider is None:
        _mee_provider = MeeRelayProvider()
    return _mee_provider
