"""
Authentication helpers: signed tokens, the client session and attempt
throttling.
"""

from .rate_limit import RateLimiter
from .session import SessionStore, resolve_user
from .tokens import issue_token, verify_token

__all__ = [
    "RateLimiter",
    "SessionStore",
    "issue_token",
    "resolve_user",
    "verify_token",
]
