"""
Claim risk analyzers used by the fixture data source.

The rule analyzer scores amount bands, late reporting and claim history.
The OpenAI analyzer adds a text-suspicion score from an LLM on top of the
same rules.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, List, Optional

from openai import OpenAI, OpenAIError

from ..utils.errors import RiskAnalysisError
from .base import AnalysisRequest, RiskAssessment

logger = logging.getLogger(__name__)

HIGH_AMOUNT = 100_000
LATE_REPORTING_DAYS = 30
MAX_RECENT_CLAIMS = 3


class RiskAnalyzer(ABC):
    """Scores a claim 0-100."""

    @abstractmethod
    def analyze(self, request: AnalysisRequest) -> RiskAssessment:
        pass


class RuleRiskAnalyzer(RiskAnalyzer):
    """Deterministic scoring from amount, reporting delay and history."""

    confidence = 0.8

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def risk_factors(self, request: AnalysisRequest) -> List[str]:
        factors = []
        if request.estimated_amount > HIGH_AMOUNT:
            factors.append("High claim amount (>R100,000)")
        if request.user_history.recent_claims > MAX_RECENT_CLAIMS:
            factors.append("Multiple recent claims")
        if request.user_history.rejected_claims > 0:
            factors.append("Previous rejected claims")

        days_since_loss = self._days_since_loss(request.incident_date)
        if days_since_loss is not None and days_since_loss > LATE_REPORTING_DAYS:
            factors.append(f"Late claim reporting (>{LATE_REPORTING_DAYS} days)")
        return factors

    def _days_since_loss(self, incident_date: Optional[str]) -> Optional[int]:
        if not incident_date:
            return None
        try:
            loss_date = date.fromisoformat(incident_date[:10])
        except ValueError:
            logger.debug(f"Unparseable incident date '{incident_date}'")
            return None
        return (self._today() - loss_date).days

    def score(self, request: AnalysisRequest, factors: List[str], sentiment: float = 0.0) -> float:
        """
        Combine the scoring components.

        Args:
            request: Claim facts
            factors: Rule-based risk factors for the claim
            sentiment: Text suspicion 0-1

        Returns:
            Unclamped score
        """
        amount = request.estimated_amount
        score = 0.0
        if amount > 100_000:
            score += 25
        elif amount > 50_000:
            score += 15
        elif amount > 20_000:
            score += 10

        score += sentiment * 30
        score += len(factors) * 10
        score += request.user_history.rejected_claims * 15
        score += min(request.user_history.recent_claims * 5, 20)
        return score

    def analyze(self, request: AnalysisRequest) -> RiskAssessment:
        factors = self.risk_factors(request)
        assessment = RiskAssessment.from_score(
            self.score(request, factors),
            confidence=self.confidence,
            risk_factors=factors,
        )
        assessment.analysis = (
            f"Rule-based assessment: {assessment.risk_level.lower()} risk "
            f"with {len(factors)} risk factor(s)."
        )
        return assessment


class OpenAIRiskAnalyzer(RuleRiskAnalyzer):
    """Rule scoring plus an LLM read of the incident description."""

    confidence = 0.9

    SYSTEM_PROMPT = """You are a fraud detection analyst for an insurance company.
Analyze the insurance claim description for potential fraud indicators.

Respond with JSON only:
{
    "sentiment": 0.0-1.0 (1 is most suspicious),
    "inconsistencies": ["list of inconsistencies found"],
    "suspicious_patterns": ["list of suspicious patterns"],
    "recommendation": "one paragraph for the claims adjuster"
}

Be objective. Most claims are legitimate. Only flag genuine concerns."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: str = "gpt-4o-mini",
        today: Callable[[], date] = date.today,
    ):
        super().__init__(today=today)
        self.client = client or OpenAI()
        self.model = model

    def _read_description(self, request: AnalysisRequest) -> dict:
        user_prompt = f"""Analyze this claim:

Claim Type: {request.claim_type or 'not provided'}
Amount: R{request.estimated_amount:,.2f}
Date of Loss: {request.incident_date or 'not provided'}
Location: {request.location or 'not provided'}
Description: {request.description or 'not provided'}
"""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0,
                max_tokens=500,
            )
            result = json.loads(response.choices[0].message.content or "{}")
        except (OpenAIError, json.JSONDecodeError) as e:
            logger.error(f"Claim text analysis failed: {e}")
            raise RiskAnalysisError(f"Claim text analysis failed: {e}") from e

        if not isinstance(result, dict):
            raise RiskAnalysisError("Claim text analysis returned a non-object response")
        return result

    def analyze(self, request: AnalysisRequest) -> RiskAssessment:
        text = self._read_description(request)
        try:
            sentiment = min(max(float(text.get("sentiment", 0.0)), 0.0), 1.0)
        except (TypeError, ValueError) as e:
            raise RiskAnalysisError(f"Invalid sentiment in analysis: {text.get('sentiment')!r}") from e

        factors = self.risk_factors(request)
        patterns = [str(p) for p in text.get("suspicious_patterns") or []]
        assessment = RiskAssessment.from_score(
            self.score(request, factors, sentiment),
            confidence=self.confidence,
            risk_factors=factors + patterns,
            analysis=str(text.get("recommendation") or ""),
        )
        logger.info(
            f"LLM analysis: sentiment={sentiment:.2f} "
            f"patterns={len(patterns)} score={assessment.risk_score}"
        )
        return assessment


def create_risk_analyzer(kind: str = "rules", api_key: Optional[str] = None, model: str = "gpt-4o-mini") -> RiskAnalyzer:
    """
    Create a risk analyzer.

    Args:
        kind: "rules" or "openai"
        api_key: OpenAI API key (falls back to OPENAI_API_KEY)
        model: Chat model for the openai analyzer
    """
    if kind == "openai":
        return OpenAIRiskAnalyzer(client=OpenAI(api_key=api_key) if api_key else None, model=model)
    if kind == "rules":
        return RuleRiskAnalyzer()
    raise ValueError(f"Unknown risk analyzer: {kind}")
