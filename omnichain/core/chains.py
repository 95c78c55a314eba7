"""Chain metadata and per-chain address books (tokens, bridge pools, marketplaces)."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from .types import ZERO_ADDRESS


CHAIN_METADATA: Dict[int, Dict[str, object]] = {
    1: {'name': 'Ethereum', 'testnet': False},
    10: {'name': 'Optimism', 'testnet': False},
    137: {'name': 'Polygon', 'testnet': False},
    8453: {'name': 'Base', 'testnet': False},
    42161: {'name': 'Arbitrum', 'testnet': False},
    84532: {'name': 'Base Sepolia', 'testnet': True},
    11155420: {'name': 'Optimism Sepolia', 'testnet': True},
    80002: {'name': 'Polygon Amoy', 'testnet': True},
    421614: {'name': 'Arbitrum Sepolia', 'testnet': True},
    11155111: {'name': 'Sepolia', 'testnet': True},
}

# The relay only sponsors Base Sepolia on testnet and Base on mainnet today.
TESTNET_CHAIN_IDS: List[int] = [84532]
MAINNET_CHAIN_IDS: List[int] = [8453]

TOKEN_ADDRESSES: Dict[str, Dict[int, str]] = {
    'USDC': {
        1: '0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48',
        10: '0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85',
        137: '0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359',
        8453: '0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913',
        42161: '0xaf88d065e77c8cC2239327C5EDb3A432268e5831',
        84532: '0x036CbD53842c5426634e7929541eC2318f3dCF7e',
    },
    'USDT': {
        1: '0xdAC17F958D2ee523a2206206994597C13D831ec7',
        10: '0x94b008aA00579c1307B0EF2c499aD98a8ce58e58',
        137: '0xc2132D05D31c914a87C6611C10748AEb04B58e8F',
        8453: '0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2',
        42161: '0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9',
    },
}

# Across V3 SpokePool per source chain
ACROSS_SPOKE_POOLS: Dict[int, str] = {
    1: '0x5c7BCd6E7De5423a257D81B442095A1a6ced35C5',
    10: '0x6f26Bf09B1C792e3228e5467807a900A503c0281',
    137: '0x9295ee1d8C5b022Be115A2AD3c30C72E34e7F096',
    8453: '0x09aea4b2242abC8bb4BB78D537A67a245A7bEC64',
    42161: '0xe35e9842fceaCA96570B734083f4a58e8F7C5f2A',
}

# Zero address means "not deployed yet"
MARKETPLACE_ADDRESSES: Dict[int, str] = {
    1: ZERO_ADDRESS,
    10: ZERO_ADDRESS,
    137: ZERO_ADDRESS,
    8453: ZERO_ADDRESS,
    42161: ZERO_ADDRESS,
    84532: '0xf1DCeB337C737195560a1228a76ABC5cA73e5EA7',
}

TESTNET_SPONSORSHIP = {
    'url': 'https://network.biconomy.io',
    'gasTank': {
        'address': '0x18eAc826f3dD77d065E75E285d3456B751AC80d5',
        'token': '0x036cbd53842c5426634e7929541ec2318f3dcf7e',
        'chainId': 84532,
    },
}


def _deployed(address: Optional[str]) -> Optional[str]:
    if not address or address.lower() == ZERO_ADDRESS:
        return None
    return address


class ChainRegistry:
    """Static chain registry for the supported network mode.

    Usage:
        registry = ChainRegistry.from_settings(settings)
        registry.marketplace_for(84532)   # '0xf1DC...'
        registry.token_on_chain(usdc_base, 8453, 42161)  # USDC on Arbitrum
    """

    def __init__(
        self,
        *,
        supported_chain_ids: Iterable[int],
        marketplace_addresses: Optional[Mapping[int, str]] = None,
        spoke_pools: Optional[Mapping[int, str]] = None,
        token_addresses: Optional[Mapping[str, Mapping[int, str]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._supported = list(dict.fromkeys(int(c) for c in supported_chain_ids))
        self._marketplaces = dict(MARKETPLACE_ADDRESSES if marketplace_addresses is None else marketplace_addresses)
        self._spoke_pools = dict(ACROSS_SPOKE_POOLS if spoke_pools is None else spoke_pools)
        tokens = TOKEN_ADDRESSES if token_addresses is None else token_addresses
        self._tokens: Dict[str, Dict[int, str]] = {sym.upper(): dict(by_chain) for sym, by_chain in tokens.items()}
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings) -> "ChainRegistry":
        if settings.supported_chain_ids:
            supported = settings.supported_chain_ids
        else:
            supported = TESTNET_CHAIN_IDS if settings.is_testnet else MAINNET_CHAIN_IDS
        marketplaces = {**MARKETPLACE_ADDRESSES, **{int(k): v for k, v in settings.marketplace_addresses.items()}}
        return cls(supported_chain_ids=supported, marketplace_addresses=marketplaces)

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    @property
    def supported_chain_ids(self) -> List[int]:
        return list(self._supported)

    def is_supported(self, chain_id: int) -> bool:
        return chain_id in self._supported

    def chain_name(self, chain_id: int) -> str:
        meta = CHAIN_METADATA.get(chain_id)
        if meta:
            return str(meta['name'])
        return f"Chain {chain_id}"

    def describe(self, chain_ids: Iterable[int]) -> str:
        return ", ".join(self.chain_name(c) for c in chain_ids)

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def marketplace_for(self, chain_id: int) -> Optional[str]:
        """Deployed marketplace on ``chain_id``, or None."""
        return _deployed(self._marketplaces.get(chain_id))

    def spoke_pool_for(self, chain_id: int) -> Optional[str]:
        return _deployed(self._spoke_pools.get(chain_id))

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def token_address(self, symbol: str, chain_id: int) -> Optional[str]:
        return self._tokens.get(symbol.upper(), {}).get(chain_id)

    def usdc_address(self, chain_id: int) -> Optional[str]:
        return self.token_address('USDC', chain_id)

    def token_symbol(self, address: str, chain_id: int) -> Optional[str]:
        target = address.lower()
        for symbol, by_chain in self._tokens.items():
            known = by_chain.get(chain_id)
            if known and known.lower() == target:
                return symbol
        return None

    def token_on_chain(self, address: str, from_chain: int, to_chain: int) -> Optional[str]:
        """Address of the same-symbol token on ``to_chain``."""
        symbol = self.token_symbol(address, from_chain)
        if symbol is None:
            self._logger.debug("Unknown token %s on chain %s", address, from_chain)
            return None
        return self.token_address(symbol, to_chain)
