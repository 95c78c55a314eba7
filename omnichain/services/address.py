"""Delegated execution addresses and EVM address validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from eth_utils import to_checksum_address

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


@lru_cache(maxsize=256)
def is_valid_evm_address(address: Optional[str]) -> bool:
    if not address:
        return False
    return bool(_EVM_ADDRESS_RE.fullmatch(address))


def normalize_address(address: str) -> str:
    """Checksummed form of a 0x-prefixed EVM address."""
    if not is_valid_evm_address(address):
        raise ValueError(f"Invalid EVM address: {address!r}")
    return to_checksum_address(address)


def session_key(address: str) -> str:
    """Case-insensitive identity used to key per-user session state."""
    return address.lower()


@dataclass
class ChainAddress:
    chain_id: int
    address: str
    deployed: bool = False  # Delegation installs lazily on the first bundle per chain


class AddressResolver:
    """
    Resolves the execution address on each chain.

    In delegated (EIP-7702) mode the user's own EOA gains smart-account
    powers, so ``address_on`` returns the same address for every chain.
    Callers route payments on that assumption; there is no per-chain
    address book.
    """

    def __init__(self, user_address: str, supported_chain_ids: Iterable[int]):
        self._address = normalize_address(user_address)
        self._chains: List[int] = list(supported_chain_ids)

    @property
    def user_address(self) -> str:
        return self._address

    def address_on(self, chain_id: int) -> str:
        # Unsupported chain ids are a caller precondition; the answer is the same anyway.
        return self._address

    def addresses(self) -> Dict[int, ChainAddress]:
        return {
            chain_id: ChainAddress(chain_id=chain_id, address=self.address_on(chain_id))
            for chain_id in self._chains
        }


__all__ = [
    "AddressResolver",
    "ChainAddress",
    "is_valid_evm_address",
    "normalize_address",
    "session_key",
]
