"""Service layer helpers"""

from .address import AddressResolver, ChainAddress, is_valid_evm_address, normalize_address, session_key

__all__ = [
    "AddressResolver",
    "ChainAddress",
    "is_valid_evm_address",
    "normalize_address",
    "session_key",
]
