"""
Portal data sources.

Exactly one source is chosen at startup: ``live`` talks to the portal
backend over HTTP, ``fixture`` fabricates demo data locally.
"""

from ..utils.config import Settings
from .base import (
    AnalysisRequest,
    AuthResult,
    ClaimHistory,
    PortalDataSource,
    RegistrationRequest,
    RiskAssessment,
)
from .fixture import FixtureDataSource
from .live import HttpDataSource
from .risk import OpenAIRiskAnalyzer, RiskAnalyzer, RuleRiskAnalyzer, create_risk_analyzer


def create_data_source(settings: Settings) -> PortalDataSource:
    """
    Create the data source selected by settings.

    Args:
        settings: Application settings

    Returns:
        HttpDataSource for 'live', FixtureDataSource for 'fixture'
    """
    if settings.data_source == "live":
        return HttpDataSource(settings.api_base_url, timeout=settings.api_timeout_seconds)

    analyzer = create_risk_analyzer(
        settings.risk_analyzer,
        api_key=settings.openai_api_key,
        model=settings.openai_risk_model,
    )
    return FixtureDataSource(
        secret=settings.token_secret,
        analyzer=analyzer,
        token_ttl_seconds=settings.token_ttl_seconds,
    )


__all__ = [
    "AnalysisRequest",
    "AuthResult",
    "ClaimHistory",
    "FixtureDataSource",
    "HttpDataSource",
    "OpenAIRiskAnalyzer",
    "PortalDataSource",
    "RegistrationRequest",
    "RiskAnalyzer",
    "RiskAssessment",
    "RuleRiskAnalyzer",
    "create_data_source",
    "create_risk_analyzer",
]
