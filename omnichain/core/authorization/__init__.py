"""Delegation grant signing, caching and coverage checks."""

from .manager import (
    AuthorizationManager,
    SignAuthorizationFn,
    all_authorizations,
    authorizations_for_chains,
    has_authorization_for_chain,
)
from .store import (
    AuthorizationStore,
    InMemorySessionStorage,
    KeyValueBackend,
    deserialize_authorizations,
    serialize_authorizations,
)

__all__ = [
    "AuthorizationManager",
    "AuthorizationStore",
    "InMemorySessionStorage",
    "KeyValueBackend",
    "SignAuthorizationFn",
    "all_authorizations",
    "authorizations_for_chains",
    "deserialize_authorizations",
    "has_authorization_for_chain",
    "serialize_authorizations",
]
