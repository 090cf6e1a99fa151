"""
Exception hierarchy shared by the portal packages.
"""

from typing import Dict, Optional


class PortalError(Exception):
    """Base class for all portal errors."""


class StorageUnavailableError(PortalError):
    """The key-value medium could not be read or written."""


class CorruptRecordError(PortalError):
    """A stored value could not be decoded into a record."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Corrupt value under '{key}': {reason}")
        self.key = key
        self.reason = reason


class ClaimStoreError(PortalError):
    """Invalid request against the claims store."""


class ImmutableFieldError(ClaimStoreError):
    """An update tried to change a field fixed at creation."""

    def __init__(self, fields: list[str]):
        super().__init__(f"Immutable fields cannot be updated: {', '.join(sorted(fields))}")
        self.fields = fields


class ClaimValidationError(PortalError):
    """A submitted form failed field-level validation."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = errors


class UnknownActionError(PortalError):
    """The suggestion executor has no handler for the requested action."""

    def __init__(self, action: str):
        super().__init__(f"Unknown action: {action}")
        self.action = action


class BackendError(PortalError):
    """The portal backend failed or returned a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RiskAnalysisError(PortalError):
    """Claim risk analysis could not be completed."""
