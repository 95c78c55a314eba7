"""
EIP-7702 authorization lifecycle.

An authorization temporarily installs smart-account code on the user's EOA,
so the relay can batch, sponsor and orchestrate calls while the address stays
the same. Grants are signed once per chain, or once universally
(``chainId = 0``), and cached for the session.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..chains import ChainRegistry
from ..errors import AuthorizationError, MissingAuthorizationError
from ..types import UNIVERSAL_CHAIN_ID, Authorization, AuthorizationSet
from .store import AuthorizationStore


logger = logging.getLogger(__name__)

# (contract_address=..., chain_id=...) -> signed grant
SignAuthorizationFn = Callable[..., Awaitable[Union[Authorization, Dict[str, Any]]]]


def _coerce(result: Union[Authorization, Dict[str, Any]]) -> Authorization:
    if isinstance(result, Authorization):
        return result
    return Authorization.from_dict(result)


def has_authorization_for_chain(authorizations: AuthorizationSet, chain_id: int) -> bool:
    return chain_id in authorizations


def authorizations_for_chains(
    authorizations: AuthorizationSet,
    chain_ids: Iterable[int],
) -> List[Authorization]:
    """Grants covering ``chain_ids``, one per distinct grant, in chain order."""
    selected: List[Authorization] = []
    for chain_id in chain_ids:
        auth = authorizations.get(chain_id)
        if auth is not None and auth not in selected:
            selected.append(auth)
    return selected


def all_authorizations(authorizations: AuthorizationSet) -> List[Authorization]:
    return authorizations_for_chains(authorizations, authorizations.keys())


class AuthorizationManager:
    """
    Obtains, caches and validates delegation grants for one user.

    ``get_or_sign`` is the main entry point: it prompts at most once per
    session, even when several flows race for the same cache entry.
    """

    def __init__(
        self,
        user_address: str,
        *,
        signer: Optional[SignAuthorizationFn],
        registry: ChainRegistry,
        store: Optional[AuthorizationStore] = None,
        delegate_contract_address: str,
    ) -> None:
        self.user_address = user_address
        self._signer = signer
        self._registry = registry
        self._store = store or AuthorizationStore()
        self._delegate = delegate_contract_address

    @property
    def store(self) -> AuthorizationStore:
        return self._store

    async def _request_signature(self, chain_id: int) -> Authorization:
        if self._signer is None:
            raise AuthorizationError(
                "Signing channel unavailable. Connect a wallet first.",
                chain_id=chain_id,
            )
        try:
            result = await self._signer(contract_address=self._delegate, chain_id=chain_id)
        except Exception as e:
            raise AuthorizationError(
                f"Failed to sign authorization for chain {chain_id}: {e}",
                chain_id=chain_id,
            ) from e
        if result is None:
            raise AuthorizationError(
                f"Signer returned no authorization for chain {chain_id}",
                chain_id=chain_id,
            )
        return _coerce(result)

    async def sign_for_chain(self, chain_id: int) -> Authorization:
        """Sign a grant valid only on ``chain_id``."""
        logger.info(f"Requesting authorization for {self._registry.chain_name(chain_id)} (chainId: {chain_id})")
        auth = await self._request_signature(chain_id)
        logger.info(f"Authorization signed for chain {chain_id}")
        return auth

    async def sign_universal(self) -> Authorization:
        """
        Sign one chainId=0 grant and install it for every supported chain,
        replacing any per-chain grants cached for this user.
        """
        logger.info("Requesting universal authorization")
        auth = await self._request_signature(UNIVERSAL_CHAIN_ID)
        broadcast = {chain_id: auth for chain_id in self._registry.supported_chain_ids}
        await self._store.set(self.user_address, broadcast)
        logger.info("Universal authorization signed (valid on all chains)")
        return auth

    async def sign_for_all_chains(self, use_universal: bool = False) -> AuthorizationSet:
        """
        Sign grants for every supported chain.

        Per-chain signing continues past failures so the error can name every
        chain that failed; grants that did succeed ride along on the error.
        """
        chain_ids = self._registry.supported_chain_ids

        if use_universal:
            auth = await self.sign_universal()
            return {chain_id: auth for chain_id in chain_ids}

        logger.info(f"Signing authorizations for {len(chain_ids)} chains")
        authorizations: AuthorizationSet = {}
        failed: List[int] = []
        reasons: List[str] = []
        for chain_id in chain_ids:
            try:
                authorizations[chain_id] = await self.sign_for_chain(chain_id)
            except AuthorizationError as e:
                logger.warning(f"Authorization failed for chain {chain_id}: {e.message}")
                failed.append(chain_id)
                reasons.append(e.message)

        if failed:
            raise AuthorizationError(
                f"Failed to sign EIP-7702 authorizations for chains: "
                f"{self._registry.describe(failed)}. {' '.join(reasons)}",
                failed_chains=failed,
                authorizations=authorizations,
            )
        return authorizations

    async def get_or_sign(self, use_universal: bool = False) -> AuthorizationSet:
        """Return the session's grants, prompting the user only on a cache miss."""
        async with self._store.lock(self.user_address):
            stored = await self._store.get(self.user_address)
            if stored:
                logger.info("Using stored authorizations (no signature needed)")
                return stored

            logger.info("No stored authorizations found, requesting signatures")
            authorizations = await self.sign_for_all_chains(use_universal)
            await self._store.set(self.user_address, authorizations)
            return authorizations

    async def clear(self) -> None:
        await self._store.clear(self.user_address)

    def validate_coverage(
        self,
        authorizations: AuthorizationSet,
        required_chain_ids: Iterable[int],
    ) -> None:
        """
        Raises:
            MissingAuthorizationError: naming every required chain with no grant
        """
        missing = [
            chain_id
            for chain_id in dict.fromkeys(required_chain_ids)
            if not has_authorization_for_chain(authorizations, chain_id)
        ]
        if missing:
            raise MissingAuthorizationError(
                f"Missing EIP-7702 authorizations for chains: "
                f"{self._registry.describe(missing)}. Please sign authorizations first.",
                missing_chains=missing,
            )
