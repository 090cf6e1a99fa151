"""
Data source interface and the payloads exchanged with the portal backend.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..claims.schema import CamelModel, ClaimDraft, User, UserRole


# =============================================================================
# Risk Analysis
# =============================================================================

CRITICAL_RISK_SCORE = 80
HIGH_RISK_SCORE = 60
MEDIUM_RISK_SCORE = 40

REJECT_SCORE = 80
REVIEW_SCORE = 50

# Used when analysis fails during submission
DEFAULT_RISK_SCORE = 25


def risk_level_for(score: int) -> str:
    if score >= CRITICAL_RISK_SCORE:
        return "CRITICAL"
    if score >= HIGH_RISK_SCORE:
        return "HIGH"
    if score >= MEDIUM_RISK_SCORE:
        return "MEDIUM"
    return "LOW"


def recommendation_for(score: int) -> str:
    if score >= REJECT_SCORE:
        return "REJECT"
    if score >= REVIEW_SCORE:
        return "REVIEW"
    return "APPROVE"


class ClaimHistory(CamelModel):
    """Claim history of the submitting user."""
    total_claims: int = 0
    recent_claims: int = 0
    rejected_claims: int = 0
    average_claim_amount: float = 0.0


class AnalysisRequest(CamelModel):
    """Claim facts sent for risk analysis."""
    description: str = ""
    claim_type: str = ""
    estimated_amount: float = Field(default=0.0, allow_inf_nan=False)
    location: str = ""
    incident_date: Optional[str] = None
    user_history: ClaimHistory = Field(default_factory=ClaimHistory)


class RiskAssessment(CamelModel):
    """Result of a claim risk analysis."""
    risk_score: int = Field(ge=0, le=100)
    risk_level: str
    recommendation: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    risk_factors: List[str] = Field(default_factory=list)
    analysis: str = ""

    @classmethod
    def from_score(cls, score: int, **kwargs) -> "RiskAssessment":
        """Build an assessment with level and recommendation derived from ``score``."""
        score = min(max(int(round(score)), 0), 100)
        return cls(
            risk_score=score,
            risk_level=risk_level_for(score),
            recommendation=recommendation_for(score),
            **kwargs,
        )


# =============================================================================
# Auth Payloads
# =============================================================================


class RegistrationRequest(CamelModel):
    email: str
    password: str
    name: str
    role: UserRole = UserRole.POLICYHOLDER
    phone: Optional[str] = None


class AuthResult(CamelModel):
    """Authenticated user and their session token."""
    user: User
    token: str


# =============================================================================
# Interface
# =============================================================================


class PortalDataSource(ABC):
    """Where authentication, claim submission and risk analysis are served from."""

    name: str = "base"

    @abstractmethod
    def login(self, email: str, password: str) -> AuthResult:
        pass

    @abstractmethod
    def register(self, request: RegistrationRequest) -> AuthResult:
        pass

    @abstractmethod
    def logout(self, token: str) -> None:
        pass

    @abstractmethod
    def verify(self, token: str) -> Optional[User]:
        """User for ``token``, or None when the token is not accepted."""
        pass

    @abstractmethod
    def submit_claim(self, draft: ClaimDraft, token: Optional[str] = None) -> Dict[str, Any]:
        """
        Submit a claim.

        Returns:
            Backend acknowledgement, containing at least ``claimId``
        """
        pass

    @abstractmethod
    def analyze_claim(self, request: AnalysisRequest, token: Optional[str] = None) -> RiskAssessment:
        pass

    def close(self) -> None:
        """Release held resources."""
