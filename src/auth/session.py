"""
Client session persisted in the key-value medium.
"""

import logging
from typing import Any, Optional

from ..claims.schema import User
from ..storage.codec import TOKEN_KEY, USER_KEY
from ..storage.kv import KeyValueStore
from .tokens import verify_token

logger = logging.getLogger(__name__)


def resolve_user(token: str, secret: str, data_source: Optional[Any] = None) -> Optional[User]:
    """
    User for ``token``.

    Tokens signed with ``secret`` verify locally. Any other token is checked
    with ``data_source.verify`` (the backend's ``GET /auth/verify``) when a
    data source is given.

    Raises:
        BackendError: the backend failed for a reason other than rejecting the token
    """
    user = verify_token(token, secret)
    if user is None and data_source is not None:
        user = data_source.verify(token)
    return user


class SessionStore:
    """Holds the current token and user under ``detachd_token`` / ``detachd_user``."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def save(self, user: User, token: str) -> None:
        self.kv.write_batch({
            TOKEN_KEY: token,
            USER_KEY: user.model_dump_json(by_alias=True),
        })

    def token(self) -> Optional[str]:
        return self.kv.get(TOKEN_KEY)

    def current_user(self, secret: str, data_source: Optional[Any] = None) -> Optional[User]:
        """The user carried by the stored token, if it still verifies."""
        token = self.token()
        if not token:
            return None
        return resolve_user(token, secret, data_source)

    def logout(self) -> None:
        self.kv.write_batch({}, removes=[TOKEN_KEY, USER_KEY])
        logger.info("Session cleared")
