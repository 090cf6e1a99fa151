"""
Claim record schema for the claims portal.

Defines the Pydantic models persisted by the claims store. Attributes are
snake_case in Python and camelCase in the persisted JSON.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================


class ClaimStatus(str, Enum):
    """Processing status of a claim. No transition graph is enforced."""
    SUBMITTED = "Submitted"
    IN_REVIEW = "In Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CLOSED = "Closed"
    PENDING_INFO = "Pending Information"


class ClaimPriority(str, Enum):
    """Priority tier derived from the risk score."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class UserRole(str, Enum):
    """Portal roles."""
    SUPER_ADMIN = "Super Admin"
    POLICYHOLDER = "Policyholder"
    THIRD_PARTY = "Third Party"
    WITNESS = "Witness"
    RESPONDER = "Responder"
    INSURER_PARTY = "Insurer Party"
    INSURER_ADMIN = "Insurer Admin"
    INSURER_AGENT = "Insurer Agent"
    MEDICAL_PROFESSIONAL = "Medical Professional"
    LEGAL_PROFESSIONAL = "Legal Professional"
    GOVERNMENT_OFFICIAL = "Government Official"


INSURER_ROLES = frozenset({
    UserRole.SUPER_ADMIN,
    UserRole.INSURER_PARTY,
    UserRole.INSURER_ADMIN,
    UserRole.INSURER_AGENT,
})

HIGH_RISK_THRESHOLD = 70
MEDIUM_RISK_THRESHOLD = 40


def priority_for_risk_score(risk_score: int) -> ClaimPriority:
    """Map a 0-100 risk score onto a priority tier."""
    if risk_score > HIGH_RISK_THRESHOLD:
        return ClaimPriority.HIGH
    if risk_score > MEDIUM_RISK_THRESHOLD:
        return ClaimPriority.MEDIUM
    return ClaimPriority.LOW


def status_for_risk_score(risk_score: int) -> ClaimStatus:
    """Initial status chosen by the submission flow."""
    if risk_score > HIGH_RISK_THRESHOLD:
        return ClaimStatus.IN_REVIEW
    return ClaimStatus.SUBMITTED


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


# ============================================================================
# Users
# ============================================================================


class User(CamelModel):
    """An authenticated portal user."""
    id: str = Field(description="User identifier")
    name: str = Field(description="Display name")
    email: str = Field(default="", description="Email address")
    role: UserRole = Field(description="Portal role")
    avatar_url: Optional[str] = Field(None, description="Avatar image URL")

    @property
    def is_insurer(self) -> bool:
        return self.role in INSURER_ROLES


# ============================================================================
# Record Sections
# ============================================================================


class AuditEntry(CamelModel):
    """One event in a claim's audit trail."""
    timestamp: datetime = Field(default_factory=utcnow)
    event: str
    actor: str = Field(alias="user", description="Who caused the event")


class ClaimNote(CamelModel):
    """Free-text note attached to a claim."""
    id: str
    author: str
    author_role: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    content: str


class ClaimDocument(CamelModel):
    """Reference to an uploaded supporting document."""
    id: str
    name: str
    type: str = Field(default="PDF", description="Photo, Video, PDF or Audio")
    uploaded_at: datetime = Field(default_factory=utcnow)
    size: Optional[str] = None


# ============================================================================
# Claim Record
# ============================================================================


class ClaimDraft(CamelModel):
    """
    Caller-supplied fields for a new claim.

    Identity, claim number and timestamps are assigned by the store.
    Status and priority are derived from the risk score when omitted.
    """
    policyholder_name: str = Field(description="Name of the policyholder")
    claim_type: str = Field(description="e.g. Auto Accident, Property Damage")
    amount_claimed: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="Claimed amount")
    date_of_loss: Optional[str] = Field(None, description="ISO date of the loss")
    location: str = Field(default="", description="Where the loss happened")
    description: str = Field(default="", description="Free-text incident description")
    policy_number: Optional[str] = None
    risk_score: int = Field(default=0, ge=0, le=100, description="Risk score 0-100")
    status: Optional[ClaimStatus] = None
    priority: Optional[ClaimPriority] = None
    fraud_alerts: List[dict] = Field(default_factory=list)
    document_flags: List[dict] = Field(default_factory=list)
    verification_data: Optional[dict] = None
    is_insurance_claim: bool = True
    assigned_to: Optional[str] = None
    certificate_issued: bool = False

    @field_validator("policyholder_name", "claim_type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure required text fields are not empty."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class ClaimRecord(ClaimDraft):
    """A claim as persisted by the store."""
    id: str = Field(description="Opaque identity, immutable")
    claim_number: str = Field(description="Human-facing business key, immutable")
    status: ClaimStatus = ClaimStatus.SUBMITTED
    priority: ClaimPriority = ClaimPriority.LOW
    submitted_at: datetime
    last_activity: datetime
    audit_trail: List[AuditEntry] = Field(default_factory=list)
    notes: List[ClaimNote] = Field(default_factory=list)
    documents: List[ClaimDocument] = Field(default_factory=list)

    def to_storage(self) -> dict[str, Any]:
        """Dump in the persisted camelCase layout."""
        return self.model_dump(mode="json", by_alias=True)


IMMUTABLE_FIELDS = frozenset({"id", "claim_number", "submitted_at", "audit_trail"})
