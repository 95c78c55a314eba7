"""Instruction composition: marketplace actions and bridge legs."""

from .bridge import (
    BridgeInstructionBuilder,
    BridgeRequest,
    estimate_bridge_time,
    needs_bridging,
)
from .composer import InstructionComposer, chain_ids

__all__ = [
    "BridgeInstructionBuilder",
    "BridgeRequest",
    "InstructionComposer",
    "chain_ids",
    "estimate_bridge_time",
    "needs_bridging",
]
