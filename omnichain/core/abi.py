"""
Calldata builders for the fixed on-chain targets: ERC-20/ERC-721 approve,
Across depositV3 and the marketplace contract.

Only static types plus ``bytes`` are supported, which covers every target
this core addresses.
"""

from __future__ import annotations

import re
from typing import Any, List, Sequence, Tuple

from eth_utils import keccak

from .errors import CompositionError
from .types import Call, FixedAmount, RuntimeAmount


ERC20_APPROVE = "approve(address,uint256)"
ERC721_APPROVE = "approve(address,uint256)"
ACROSS_DEPOSIT_V3 = (
    "depositV3(address,address,address,address,uint256,uint256,uint256,"
    "address,uint32,uint32,uint32,bytes)"
)
MARKETPLACE_CREATE_LISTING = "createListing(address,uint256,uint256,address)"
MARKETPLACE_BUY_NFT = "buyNFT(uint256,address,uint256)"
MARKETPLACE_CANCEL_LISTING = "cancelListing(uint256)"

_SIGNATURE_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")
_UINT_RE = re.compile(r"^uint(\d*)$")


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _encode_uint(value: int, bits: int = 256) -> str:
    if value < 0:
        raise CompositionError("Value must be non-negative")
    if value >= 2 ** bits:
        raise CompositionError(f"Value {value} does not fit in uint{bits}")
    return hex(value)[2:].rjust(64, "0")


def _encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise CompositionError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


def _encode_bytes(data: str) -> str:
    hex_data = _strip_0x(data)
    if len(hex_data) % 2 != 0:
        raise CompositionError("Byte data must have an even-length hex string")
    data_len = len(hex_data) // 2
    padded_len = ((data_len + 31) // 32) * 32
    padding = "0" * ((padded_len - data_len) * 2)
    return _encode_uint(data_len) + hex_data + padding


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    match = _SIGNATURE_RE.match(signature.replace(" ", ""))
    if not match:
        raise CompositionError(f"Malformed function signature: {signature}")
    name, params = match.groups()
    return name, [p for p in params.split(",") if p]


def selector(signature: str) -> str:
    return f"0x{keccak(text=signature)[:4].hex()}"


def _encode_static(abi_type: str, value: Any) -> str:
    if abi_type == "address":
        return _encode_address(value)
    if abi_type == "bool":
        return _encode_uint(1 if value else 0)
    uint = _UINT_RE.match(abi_type)
    if uint:
        if isinstance(value, FixedAmount):
            value = value.value
        return _encode_uint(int(value), int(uint.group(1) or 256))
    raise CompositionError(f"Unsupported ABI type: {abi_type}")


def encode_function_call(signature: str, args: Sequence[Any]) -> str:
    """Encode ``signature(args...)`` into hex calldata."""
    _, types = parse_signature(signature)
    if len(types) != len(args):
        raise CompositionError(
            f"{signature} expects {len(types)} arguments, got {len(args)}"
        )

    head: List[str] = []
    tail: List[str] = []
    head_size = 32 * len(types)
    for abi_type, value in zip(types, args):
        if abi_type == "bytes":
            offset = head_size + sum(len(chunk) // 2 for chunk in tail)
            head.append(_encode_uint(offset))
            tail.append(_encode_bytes(value))
        else:
            head.append(_encode_static(abi_type, value))
    return selector(signature) + "".join(head) + "".join(tail)


def build_call(to: str, signature: str, args: Sequence[Any], value: int = 0) -> Call:
    """
    Build a Call for ``signature``. Arguments containing a RuntimeAmount make
    the call composable: the relay encodes it once the amount is known.
    """
    if any(isinstance(arg, RuntimeAmount) for arg in args):
        _, types = parse_signature(signature)
        if len(types) != len(args):
            raise CompositionError(
                f"{signature} expects {len(types)} arguments, got {len(args)}"
            )
        return Call(to=to, value=value, function_signature=signature, args=tuple(args))
    return Call(to=to, value=value, data=encode_function_call(signature, args))
