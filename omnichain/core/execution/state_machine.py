"""
Transaction Status State Machine

Tracks one supertransaction through its client-observable lifecycle,
validates transitions, notifies observers and returns to idle after a
cool-down once the flow finishes.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from ..errors import InvalidTransitionError
from ..types import TransactionStatus


@dataclass
class StatusTransition:
    """Record of a status transition."""
    from_status: TransactionStatus
    to_status: TransactionStatus
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None


# Observers may be plain functions or coroutine functions
StatusCallback = Callable[[StatusTransition], Any]


class TransactionStateMachine:
    """
    Linear status machine for one execution flow.

    idle -> preparing -> signing_authorization -> getting_quote ->
    signing_execution -> executing -> confirming -> success | failed

    Every active state may fail. A finished flow (success, failed, or a
    confirmation that outlived the local wait) returns to idle after
    ``reset_after_s`` seconds.
    """

    TRANSITIONS: Dict[TransactionStatus, Set[TransactionStatus]] = {
        TransactionStatus.IDLE: {
            TransactionStatus.PREPARING,
        },
        TransactionStatus.PREPARING: {
            TransactionStatus.SIGNING_AUTHORIZATION,
            TransactionStatus.FAILED,
        },
        TransactionStatus.SIGNING_AUTHORIZATION: {
            TransactionStatus.GETTING_QUOTE,
            TransactionStatus.FAILED,
        },
        TransactionStatus.GETTING_QUOTE: {
            TransactionStatus.SIGNING_EXECUTION,
            TransactionStatus.FAILED,
        },
        TransactionStatus.SIGNING_EXECUTION: {
            TransactionStatus.EXECUTING,
            TransactionStatus.FAILED,
        },
        TransactionStatus.EXECUTING: {
            TransactionStatus.CONFIRMING,
            TransactionStatus.FAILED,
        },
        TransactionStatus.CONFIRMING: {
            TransactionStatus.SUCCESS,
            TransactionStatus.FAILED,
            TransactionStatus.IDLE,  # Stopped waiting locally; bundle may still land
        },
        TransactionStatus.SUCCESS: {
            TransactionStatus.IDLE,
            TransactionStatus.PREPARING,
        },
        TransactionStatus.FAILED: {
            TransactionStatus.IDLE,
            TransactionStatus.PREPARING,
        },
    }

    TERMINAL_STATES = frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED})

    def __init__(
        self,
        reset_after_s: Optional[float] = 3.0,
        logger: Optional[logging.Logger] = None,
        flow_id: Optional[str] = None,
    ):
        """
        Args:
            reset_after_s: Cool-down before returning to idle; None disables the reset
            logger: Optional logger
            flow_id: Identifier used in log lines
        """
        self.reset_after_s = reset_after_s
        self.logger = logger or logging.getLogger(__name__)
        self.flow_id = flow_id

        self._status = TransactionStatus.IDLE
        self._history: List[StatusTransition] = []
        self._callbacks: List[StatusCallback] = []
        self._reset_task: Optional[asyncio.Task] = None
        self.error: Optional[str] = None

    @property
    def status(self) -> TransactionStatus:
        return self._status

    @property
    def history(self) -> List[StatusTransition]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._status in self.TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        return self._status != TransactionStatus.IDLE and not self.is_terminal

    def can_transition_to(self, to_status: TransactionStatus) -> bool:
        return to_status in self.TRANSITIONS.get(self._status, set())

    def on_status_change(self, callback: StatusCallback) -> None:
        """Register an observer called after every transition."""
        self._callbacks.append(callback)

    async def transition_to(
        self,
        to_status: TransactionStatus,
        reason: Optional[str] = None,
    ) -> StatusTransition:
        """
        Move to ``to_status``.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        from_status = self._status

        if not self.can_transition_to(to_status):
            allowed = sorted(s.value for s in self.TRANSITIONS.get(from_status, set()))
            raise InvalidTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
                message=f"Invalid transition from {from_status.value} to {to_status.value}. "
                        f"Allowed: {allowed}",
            )

        self._cancel_reset()

        if to_status == TransactionStatus.PREPARING:
            self.error = None

        transition = StatusTransition(from_status=from_status, to_status=to_status, reason=reason)
        self._status = to_status
        self._history.append(transition)

        self.logger.info(
            f"Flow {self.flow_id or '-'}: {from_status.value} -> {to_status.value}"
            f"{f' ({reason})' if reason else ''}"
        )

        for callback in self._callbacks:
            try:
                result = callback(transition)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(f"Status callback error: {e}")

        if self.is_terminal:
            self.schedule_reset()

        return transition

    async def fail(self, message: str) -> StatusTransition:
        """Move to failed, recording a human-readable error."""
        self.error = message or "Unknown error"
        return await self.transition_to(TransactionStatus.FAILED, reason=self.error)

    def schedule_reset(self) -> None:
        """Return to idle after the cool-down. A newer schedule replaces a pending one."""
        if self.reset_after_s is None:
            return
        self._cancel_reset()
        self._reset_task = asyncio.create_task(self._reset_after(self.reset_after_s))

    async def _reset_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Detach first so the transition does not cancel this task
        self._reset_task = None
        if self.can_transition_to(TransactionStatus.IDLE):
            await self.transition_to(TransactionStatus.IDLE, reason="Cool-down elapsed")

    def _cancel_reset(self) -> None:
        if self._reset_task and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    async def wait_idle(self) -> None:
        """Block until a pending reset has run."""
        task = self._reset_task
        if task is not None:
            await asyncio.wait({task})
