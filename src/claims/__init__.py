"""
Claims domain: record schema, validation, role-conditional views and the
submission flow.

Only the schema is re-exported here; import ``views`` and ``submission``
from their modules (they depend on ``src.storage``).
"""

from .schema import (
    AuditEntry,
    ClaimDocument,
    ClaimDraft,
    ClaimNote,
    ClaimPriority,
    ClaimRecord,
    ClaimStatus,
    User,
    UserRole,
    priority_for_risk_score,
    status_for_risk_score,
)

__all__ = [
    "AuditEntry",
    "ClaimDocument",
    "ClaimDraft",
    "ClaimNote",
    "ClaimPriority",
    "ClaimRecord",
    "ClaimStatus",
    "User",
    "UserRole",
    "priority_for_risk_score",
    "status_for_risk_score",
]
