"""
Session Store

The current account snapshot and its bearer token, persisted in the same
key-value store as everything else so a restart keeps the user signed in.

DESIGN DECISION: The session is an explicit object handed to the gateway
at construction. Only login, register and logout write it. Reads never
raise: an absent or corrupted snapshot simply means "not signed in".
"""

import json
from typing import Optional

import structlog
from pydantic import ValidationError

from nexora.models.finance import Account
from nexora.services.storage.interface import StorageError
from nexora.services.storage.key_value import KeyValueStore

SESSION_KEY = "nexora_session"
TOKEN_KEY = "nexora_token"

logger = structlog.get_logger(__name__)


class SessionStore:
    """Owns the persisted session snapshot and credential token."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def save(self, account: Account, token: Optional[str] = None) -> None:
        """Persist a new session, replacing whatever was there (last writer wins)."""
        self._store.set(SESSION_KEY, account.model_dump_json(by_alias=True, exclude_none=True))
        if token:
            self._store.set(TOKEN_KEY, token)
        else:
            self._store.remove(TOKEN_KEY)

    def clear(self) -> None:
        self._store.remove(SESSION_KEY)
        self._store.remove(TOKEN_KEY)

    def current(self) -> Optional[Account]:
        """The last persisted account, or None."""
        try:
            raw = self._store.get(SESSION_KEY)
            if not raw:
                return None
            return Account.model_validate(json.loads(raw))
        except (StorageError, ValueError, ValidationError) as e:
            logger.warning("session_unreadable", error=str(e))
            return None

    @property
    def token(self) -> Optional[str]:
        try:
            return self._store.get(TOKEN_KEY) or None
        except StorageError as e:
            logger.warning("token_unreadable", error=str(e))
            return None
