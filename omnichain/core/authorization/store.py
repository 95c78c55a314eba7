"""Session-scoped cache of signed delegation grants."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol

from ...services.address import session_key
from ..types import Authorization, AuthorizationSet

logger = logging.getLogger(__name__)

KEY_PREFIX = "omnichain_auth_"

# Fields restored to int when reading a stored set.
NUMERIC_FIELDS = frozenset({"nonce"})


class KeyValueBackend(Protocol):
    """String key-value storage scoped to one user session."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemorySessionStorage:
    """Process-local backend; lives as long as the session object does."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


def _storage_key(user_address: str) -> str:
    return f"{KEY_PREFIX}{session_key(user_address)}"


def serialize_authorizations(authorizations: AuthorizationSet) -> str:
    return json.dumps(
        {str(chain_id): auth.to_dict() for chain_id, auth in authorizations.items()},
        sort_keys=True,
    )


def _restore_numeric(pairs: list) -> Dict[str, Any]:
    restored: Dict[str, Any] = {}
    for key, value in pairs:
        if key in NUMERIC_FIELDS and isinstance(value, str):
            value = int(value)
        restored[key] = value
    return restored


def deserialize_authorizations(raw: str) -> AuthorizationSet:
    data = json.loads(raw, object_pairs_hook=_restore_numeric)
    return {int(chain_id): Authorization.from_dict(entry) for chain_id, entry in data.items()}


class AuthorizationStore:
    """
    Caches one AuthorizationSet per user identity for the session.

    Keys are the lowercased user address; values are JSON with integer
    fields written as decimal strings.
    """

    def __init__(self, backend: Optional[KeyValueBackend] = None) -> None:
        self._backend = backend if backend is not None else InMemorySessionStorage()
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, user_address: str) -> asyncio.Lock:
        """Per-user guard for the miss-then-sign path."""
        key = _storage_key(user_address)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def get(self, user_address: str) -> Optional[AuthorizationSet]:
        raw = self._backend.get_item(_storage_key(user_address))
        if not raw:
            return None
        try:
            authorizations = deserialize_authorizations(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"Discarding unreadable stored authorizations: {exc}")
            self._backend.remove_item(_storage_key(user_address))
            return None
        logger.debug(f"Retrieved stored authorizations for {len(authorizations)} chains")
        return authorizations

    async def set(self, user_address: str, authorizations: AuthorizationSet) -> None:
        self._backend.set_item(_storage_key(user_address), serialize_authorizations(authorizations))
        logger.debug("Authorizations stored in session")

    async def clear(self, user_address: str) -> None:
        self._backend.remove_item(_storage_key(user_address))
        logger.debug("Cleared stored authorizations")
