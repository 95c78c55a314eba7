"""
Execution Orchestrator

Drives one composed bundle through authorization, quote, execution signature,
submission and confirmation, reporting progress through a
TransactionStateMachine.
"""

import logging
import time
import uuid
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from ...logging_config import bind_flow, unbind_flow
from ...providers.base import RelayClient
from ...providers.models import Quote
from ..authorization.manager import AuthorizationManager, all_authorizations
from ..chains import ChainRegistry
from ..composer.composer import chain_ids as referenced_chains
from ..errors import (
    AuthorizationError,
    CompositionError,
    ConfirmationTimeout,
    ExecutionError,
    OmnichainError,
    QuoteError,
    UnsupportedChainError,
)
from ..types import FeeTokenInfo, Instruction, TransactionResult, TransactionStatus
from .reporter import ResultReporter
from .state_machine import StatusCallback, TransactionStateMachine

logger = logging.getLogger(__name__)
slog = structlog.stdlib.get_logger("omnichain.execution")

# Signs the quote hash; returning None means the user declined
SignQuoteFn = Callable[[Quote], Awaitable[Optional[str]]]


class ExecutionOrchestrator:
    """
    Submits instruction bundles to the execution relay.

    Each ``execute`` call runs its own state machine; ``status`` reports the
    most recently started flow. Errors propagate as OmnichainError subclasses
    after the flow has been marked failed; a receipt that does not arrive in
    time is returned as a pending result instead.
    """

    def __init__(
        self,
        relay: RelayClient,
        auth_manager: AuthorizationManager,
        registry: ChainRegistry,
        *,
        reporter: Optional[ResultReporter] = None,
        quote_signer: Optional[SignQuoteFn] = None,
        use_universal_authorization: bool = False,
        validate_supported_chains: bool = True,
        receipt_timeout_s: Optional[float] = None,
        status_reset_s: Optional[float] = 3.0,
    ):
        self.relay = relay
        self.auth_manager = auth_manager
        self.registry = registry
        self.reporter = reporter or ResultReporter()
        self.quote_signer = quote_signer
        self.use_universal_authorization = use_universal_authorization
        self.validate_supported_chains = validate_supported_chains
        self.receipt_timeout_s = receipt_timeout_s
        self.status_reset_s = status_reset_s

        self._callbacks: List[StatusCallback] = []
        self._current: Optional[TransactionStateMachine] = None

    @property
    def status(self) -> TransactionStatus:
        if self._current is None:
            return TransactionStatus.IDLE
        return self._current.status

    @property
    def current_flow(self) -> Optional[TransactionStateMachine]:
        return self._current

    def on_status_change(self, callback: StatusCallback) -> None:
        """Observe transitions of every flow started after registration."""
        self._callbacks.append(callback)

    def _new_flow(self, flow_id: str) -> TransactionStateMachine:
        machine = TransactionStateMachine(
            reset_after_s=self.status_reset_s,
            logger=logger,
            flow_id=flow_id,
        )
        for callback in self._callbacks:
            machine.on_status_change(callback)
        self._current = machine
        return machine

    async def execute(
        self,
        instructions: Sequence[Instruction],
        *,
        sponsorship: bool = False,
        fee_token: Optional[FeeTokenInfo] = None,
        use_universal: Optional[bool] = None,
        operation: str = "execute",
    ) -> TransactionResult:
        """
        Run one bundle to a terminal receipt.

        Returns:
            A success result, or a confirming result if the local wait ran out

        Raises:
            CompositionError: Empty bundle or a chain the relay does not serve
            AuthorizationError: Grant or execution signature declined
            MissingAuthorizationError: Grants do not cover every referenced chain
            QuoteError: Relay rejected the quote
            ExecutionError: Submission failed or the bundle failed on-chain
        """
        flow_id = uuid.uuid4().hex[:8]
        machine = self._new_flow(flow_id)
        universal = self.use_universal_authorization if use_universal is None else use_universal

        bind_flow(flow_id, operation)
        start = time.perf_counter()
        try:
            slog.info("flow_started", instructions=len(instructions), sponsorship=sponsorship)
            result = await self._run(machine, instructions, sponsorship, fee_token, universal)
            slog.info(
                "flow_finished",
                status=result.status.value,
                hash=result.hash,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            return result
        except Exception as e:
            if not machine.is_terminal:
                await machine.fail(e.message if isinstance(e, OmnichainError) else str(e))
            slog.warning(
                "flow_failed",
                error=str(e),
                code=getattr(e, "code", "unexpected_error"),
                stage=machine.history[-2].to_status.value if len(machine.history) > 1 else None,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            raise
        finally:
            unbind_flow()

    async def _run(
        self,
        machine: TransactionStateMachine,
        instructions: Sequence[Instruction],
        sponsorship: bool,
        fee_token: Optional[FeeTokenInfo],
        universal: bool,
    ) -> TransactionResult:
        # PREPARING
        await machine.transition_to(TransactionStatus.PREPARING)
        if not instructions:
            raise CompositionError("No instructions to execute")
        chains = referenced_chains(instructions)

        # SIGNING_AUTHORIZATION: coverage is checked before any relay call
        await machine.transition_to(TransactionStatus.SIGNING_AUTHORIZATION)
        authorizations = await self.auth_manager.get_or_sign(universal)
        self.auth_manager.validate_coverage(authorizations, chains)

        # GETTING_QUOTE
        await machine.transition_to(TransactionStatus.GETTING_QUOTE)
        if self.validate_supported_chains:
            await self._check_supported(chains)
        quote = await self.relay.get_quote(
            instructions,
            account=self.auth_manager.user_address,
            authorizations=all_authorizations(authorizations),
            delegate=True,
            sponsorship=sponsorship,
            fee_token=fee_token,
        )

        # SIGNING_EXECUTION
        await machine.transition_to(TransactionStatus.SIGNING_EXECUTION)
        signature = await self._sign_quote(quote)

        # EXECUTING
        await machine.transition_to(TransactionStatus.EXECUTING)
        submitted = await self.relay.execute_quote(quote, signature)
        tx_hash = submitted.hash

        # CONFIRMING
        await machine.transition_to(TransactionStatus.CONFIRMING, reason=tx_hash)
        try:
            receipt = await self.relay.wait_for_receipt(tx_hash, timeout_s=self.receipt_timeout_s)
        except ConfirmationTimeout as e:
            logger.warning(f"Supertransaction {tx_hash} still processing: {e.message}")
            machine.schedule_reset()
            return self.reporter.pending(
                tx_hash,
                chains,
                "Transaction is still processing. Track it with the explorer link.",
            )
        except ExecutionError as e:
            if e.tx_hash is None:
                e.tx_hash = tx_hash
            raise

        await machine.transition_to(TransactionStatus.SUCCESS, reason=tx_hash)
        return self.reporter.success(tx_hash, chains, receipt.to_dict())

    async def _check_supported(self, chains: List[int]) -> None:
        try:
            supported = set(await self.relay.get_supported_chains())
        except QuoteError:
            raise
        except Exception as e:
            raise QuoteError(f"Could not load supported chains: {e}") from e

        for chain_id in chains:
            if chain_id not in supported:
                raise UnsupportedChainError(
                    f"{self.registry.chain_name(chain_id)} (chainId: {chain_id}) is not supported by the relay",
                    chain_id=chain_id,
                )

    async def _sign_quote(self, quote: Quote) -> Optional[str]:
        if self.quote_signer is None:
            return None
        try:
            signature = await self.quote_signer(quote)
        except Exception as e:
            raise AuthorizationError(f"Execution signature rejected: {e}") from e
        if not signature:
            raise AuthorizationError("Execution signature rejected by user")
        return signature

