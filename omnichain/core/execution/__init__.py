"""Bundle submission, status tracking and result envelopes."""

from .orchestrator import ExecutionOrchestrator, SignQuoteFn
from .reporter import ResultReporter
from .state_machine import StatusTransition, TransactionStateMachine

__all__ = [
    "ExecutionOrchestrator",
    "ResultReporter",
    "SignQuoteFn",
    "StatusTransition",
    "TransactionStateMachine",
]
