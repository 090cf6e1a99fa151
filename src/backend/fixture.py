"""
Local data source that fabricates demo users and scores claims in-process.
"""

import logging
import re
import time
from typing import Any, Dict, Optional

from ..auth.tokens import avatar_url_for, issue_token, verify_token
from ..claims.schema import ClaimDraft, User, UserRole
from .base import AnalysisRequest, AuthResult, PortalDataSource, RegistrationRequest, RiskAssessment
from .risk import RiskAnalyzer, RuleRiskAnalyzer

logger = logging.getLogger(__name__)


def display_name_from_email(email: str) -> str:
    """'jane.doe@example.com' -> 'Jane Doe'."""
    local = email.split("@")[0]
    words = re.sub(r"[^a-zA-Z]", " ", local).split()
    return " ".join(word.capitalize() for word in words) or email


class FixtureDataSource(PortalDataSource):
    """
    Demo data source.

    Any email/password pair logs in. Emails containing 'insurer' get the
    Insurer Party role, everything else is a Policyholder. Tokens are signed
    with the configured secret so they verify like live ones.
    """

    name = "fixture"

    def __init__(
        self,
        secret: str,
        analyzer: Optional[RiskAnalyzer] = None,
        token_ttl_seconds: int = 24 * 60 * 60,
    ):
        self.secret = secret
        self.analyzer = analyzer or RuleRiskAnalyzer()
        self.token_ttl_seconds = token_ttl_seconds

    def _authenticate(self, user: User) -> AuthResult:
        token = issue_token(user, self.secret, self.token_ttl_seconds)
        return AuthResult(user=user, token=token)

    def login(self, email: str, password: str) -> AuthResult:
        role = UserRole.INSURER_PARTY if "insurer" in email.lower() else UserRole.POLICYHOLDER
        user = User(
            id=f"usr_{int(time.time() * 1000)}",
            email=email,
            name=display_name_from_email(email),
            role=role,
            avatar_url=avatar_url_for(email),
        )
        logger.info(f"Fixture login for {email} as {role.value}")
        return self._authenticate(user)

    def register(self, request: RegistrationRequest) -> AuthResult:
        user = User(
            id=f"usr_{int(time.time() * 1000)}",
            email=request.email,
            name=request.name,
            role=request.role,
            avatar_url=avatar_url_for(request.name),
        )
        logger.info(f"Fixture registration for {request.email} as {request.role.value}")
        return self._authenticate(user)

    def logout(self, token: str) -> None:
        logger.debug("Fixture logout")

    def verify(self, token: str) -> Optional[User]:
        return verify_token(token, self.secret)

    def submit_claim(self, draft: ClaimDraft, token: Optional[str] = None) -> Dict[str, Any]:
        claim_id = f"fixture_{int(time.time() * 1000)}"
        logger.info(f"Fixture accepted claim {claim_id} for {draft.policyholder_name}")
        return {"success": True, "claimId": claim_id}

    def analyze_claim(self, request: AnalysisRequest, token: Optional[str] = None) -> RiskAssessment:
        return self.analyzer.analyze(request)
