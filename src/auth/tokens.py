"""
Signed session tokens.

Tokens are ``header.payload.signature`` with base64url segments and an
HMAC-SHA256 signature over the first two. Anything expired, malformed or
tampered with verifies to None.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..claims.schema import User

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "detachd.systems"
TOKEN_AUDIENCE = "detachd-users"
_HEADER = {"alg": "HS256", "typ": "JWT"}


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input.encode("utf-8"), hashlib.sha256).digest()
    return _b64encode(digest)


def avatar_url_for(name: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote(name)}&background=1e40af&color=fff"


def issue_token(user: User, secret: str, ttl_seconds: int = 24 * 60 * 60, now: Optional[float] = None) -> str:
    """
    Issue a signed token for ``user``.

    Args:
        user: The authenticated user
        secret: HMAC secret
        ttl_seconds: Lifetime of the token
        now: Issue time as a UNIX timestamp (defaults to the current time)

    Returns:
        Token string
    """
    issued_at = int(now if now is not None else time.time())
    payload = {
        "userId": user.id,
        "email": user.email,
        "role": user.role.value,
        "name": user.name,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
    }
    header = _b64encode(json.dumps(_HEADER, separators=(",", ":")).encode("utf-8"))
    body = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header}.{body}"
    return f"{signing_input}.{_sign(signing_input, secret)}"


def verify_token(token: str, secret: str, now: Optional[float] = None) -> Optional[User]:
    """
    Verify a token and rebuild its user.

    Returns:
        User, or None for expired, malformed or tampered tokens
    """
    parts = token.split(".") if token else []
    if len(parts) != 3:
        return None

    header, body, signature = parts
    expected = _sign(f"{header}.{body}", secret)
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        logger.warning("Rejected token with invalid signature")
        return None

    try:
        payload = json.loads(_b64decode(body))
        expires = int(payload["exp"])
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Rejected malformed token: {e}")
        return None

    if expires < int(now if now is not None else time.time()):
        logger.debug(f"Token for {payload.get('userId')} expired")
        return None

    try:
        return User(
            id=payload["userId"],
            email=payload.get("email", ""),
            name=payload["name"],
            role=payload["role"],
            avatar_url=avatar_url_for(payload["name"]),
        )
    except (KeyError, ValidationError) as e:
        logger.warning(f"Rejected token with invalid claims: {e}")
        return None
