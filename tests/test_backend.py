"""
Tests for the data sources and risk analyzers.

The live source is exercised against httpx.MockTransport; the OpenAI
analyzer gets a stand-in client with the same ``chat.completions.create``
shape.
"""

import json
from datetime import date
from types import SimpleNamespace

import httpx
import pytest
from openai import OpenAIError

from src.auth.tokens import verify_token
from src.backend import (
    AnalysisRequest,
    ClaimHistory,
    FixtureDataSource,
    HttpDataSource,
    OpenAIRiskAnalyzer,
    RegistrationRequest,
    RiskAssessment,
    RuleRiskAnalyzer,
    create_data_source,
)
from src.backend.base import recommendation_for, risk_level_for
from src.backend.fixture import display_name_from_email
from src.claims.schema import ClaimDraft, UserRole
from src.utils.config import Settings
from src.utils.errors import BackendError, RiskAnalysisError

SECRET = "test-secret"
TODAY = date(2025, 3, 1)


# ============================================================================
# Risk Scoring
# ============================================================================


@pytest.mark.parametrize("score,level,recommendation", [
    (0, "LOW", "APPROVE"),
    (39, "LOW", "APPROVE"),
    (40, "MEDIUM", "APPROVE"),
    (50, "MEDIUM", "REVIEW"),
    (60, "HIGH", "REVIEW"),
    (79, "HIGH", "REVIEW"),
    (80, "CRITICAL", "REJECT"),
    (100, "CRITICAL", "REJECT"),
])
def test_risk_bands(score, level, recommendation):
    assert risk_level_for(score) == level
    assert recommendation_for(score) == recommendation


def test_assessment_from_score_clamps():
    assert RiskAssessment.from_score(140).risk_score == 100
    assert RiskAssessment.from_score(-3).risk_score == 0


def test_rule_analyzer_low_risk_claim():
    analyzer = RuleRiskAnalyzer(today=lambda: TODAY)
    result = analyzer.analyze(AnalysisRequest(estimated_amount=5000, incident_date="2025-02-25"))

    assert result.risk_score == 0
    assert result.risk_level == "LOW"
    assert result.recommendation == "APPROVE"
    assert result.risk_factors == []


@pytest.mark.parametrize("amount,expected", [(20_000, 0), (20_001, 10), (50_001, 15)])
def test_rule_analyzer_amount_bands(amount, expected):
    analyzer = RuleRiskAnalyzer(today=lambda: TODAY)
    assert analyzer.analyze(AnalysisRequest(estimated_amount=amount)).risk_score == expected


def test_rule_analyzer_high_amount_adds_band_and_factor():
    analyzer = RuleRiskAnalyzer(today=lambda: TODAY)
    result = analyzer.analyze(AnalysisRequest(estimated_amount=150_000))
    assert result.risk_score == 35
    assert result.risk_factors == ["High claim amount (>R100,000)"]


def test_rule_analyzer_late_reporting():
    analyzer = RuleRiskAnalyzer(today=lambda: TODAY)
    result = analyzer.analyze(AnalysisRequest(estimated_amount=1000, incident_date="2025-01-01"))
    assert result.risk_factors == ["Late claim reporting (>30 days)"]
    assert result.risk_score == 10


def test_rule_analyzer_history_is_capped_and_clamped():
    analyzer = RuleRiskAnalyzer(today=lambda: TODAY)
    request = AnalysisRequest(
        estimated_amount=150_000,
        incident_date="2024-12-01",
        user_history=ClaimHistory(recent_claims=6, rejected_claims=2),
    )
    result = analyzer.analyze(request)

    assert len(result.risk_factors) == 4
    assert result.risk_score == 100
    assert result.risk_level == "CRITICAL"
    assert result.recommendation == "REJECT"


def test_rule_analyzer_ignores_unparseable_date():
    analyzer = RuleRiskAnalyzer(today=lambda: TODAY)
    assert analyzer.analyze(AnalysisRequest(incident_date="last week")).risk_factors == []


# ============================================================================
# OpenAI Analyzer
# ============================================================================


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_openai_analyzer_adds_text_score():
    completions = FakeCompletions(json.dumps({
        "sentiment": 1.0,
        "inconsistencies": [],
        "suspicious_patterns": ["Vague description of events"],
        "recommendation": "Request a police report before approval.",
    }))
    analyzer = OpenAIRiskAnalyzer(client=fake_client(completions), model="gpt-4o-mini", today=lambda: TODAY)

    result = analyzer.analyze(AnalysisRequest(description="It broke", estimated_amount=60_000))

    assert result.risk_score == 45
    assert result.risk_level == "MEDIUM"
    assert result.risk_factors == ["Vague description of events"]
    assert result.analysis == "Request a police report before approval."
    assert completions.calls[0]["model"] == "gpt-4o-mini"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}


def test_openai_analyzer_clamps_sentiment():
    completions = FakeCompletions(json.dumps({"sentiment": 7}))
    analyzer = OpenAIRiskAnalyzer(client=fake_client(completions), today=lambda: TODAY)
    assert analyzer.analyze(AnalysisRequest()).risk_score == 30


def test_openai_analyzer_api_error():
    completions = FakeCompletions(error=OpenAIError("rate limited"))
    analyzer = OpenAIRiskAnalyzer(client=fake_client(completions))
    with pytest.raises(RiskAnalysisError):
        analyzer.analyze(AnalysisRequest())


def test_openai_analyzer_invalid_json():
    analyzer = OpenAIRiskAnalyzer(client=fake_client(FakeCompletions("not json")))
    with pytest.raises(RiskAnalysisError):
        analyzer.analyze(AnalysisRequest())


def test_openai_analyzer_invalid_sentiment():
    analyzer = OpenAIRiskAnalyzer(client=fake_client(FakeCompletions('{"sentiment": "very"}')))
    with pytest.raises(RiskAnalysisError):
        analyzer.analyze(AnalysisRequest())


# ============================================================================
# Fixture Data Source
# ============================================================================


def test_display_name_from_email():
    assert display_name_from_email("jane.doe@example.com") == "Jane Doe"
    assert display_name_from_email("thabo_m2@example.com") == "Thabo M"


def test_fixture_login_roles():
    source = FixtureDataSource(secret=SECRET)

    policyholder = source.login("jane.doe@example.com", "whatever")
    insurer = source.login("insurer.agent@detachd.systems", "whatever")

    assert policyholder.user.role == UserRole.POLICYHOLDER
    assert policyholder.user.name == "Jane Doe"
    assert insurer.user.role == UserRole.INSURER_PARTY


def test_fixture_tokens_verify_with_secret():
    source = FixtureDataSource(secret=SECRET)
    auth = source.login("jane.doe@example.com", "whatever")

    assert source.verify(auth.token).id == auth.user.id
    assert verify_token(auth.token, SECRET).email == "jane.doe@example.com"
    assert source.verify("nonsense") is None


def test_fixture_register_keeps_requested_role():
    source = FixtureDataSource(secret=SECRET)
    auth = source.register(RegistrationRequest(
        email="dr.naidoo@clinic.co.za",
        password="Str0ng!Pass",
        name="Priya Naidoo",
        role=UserRole.MEDICAL_PROFESSIONAL,
    ))
    assert auth.user.name == "Priya Naidoo"
    assert auth.user.role == UserRole.MEDICAL_PROFESSIONAL


def test_fixture_submit_and_analyze():
    source = FixtureDataSource(secret=SECRET, analyzer=RuleRiskAnalyzer(today=lambda: TODAY))
    ack = source.submit_claim(ClaimDraft(policyholder_name="Jane Doe", claim_type="Theft"))
    assessment = source.analyze_claim(AnalysisRequest(estimated_amount=30_000))

    assert ack["claimId"].startswith("fixture_")
    assert assessment.risk_score == 10


# ============================================================================
# Live Data Source
# ============================================================================


USER_JSON = {"id": "usr_7", "name": "Jane Doe", "email": "jane@example.com", "role": "Policyholder"}


def live_source(handler) -> HttpDataSource:
    return HttpDataSource("http://backend.test/api", timeout=2.0, transport=httpx.MockTransport(handler))


def test_live_login_posts_credentials():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"user": USER_JSON, "token": "tok_123"})

    auth = live_source(handler).login("jane@example.com", "secret1")

    assert seen["path"] == "/api/auth/login"
    assert seen["body"] == {"email": "jane@example.com", "password": "secret1"}
    assert auth.token == "tok_123"
    assert auth.user.id == "usr_7"


def test_live_login_failure_raises_with_backend_message():
    def handler(request):
        return httpx.Response(401, json={"error": "Invalid credentials"})

    with pytest.raises(BackendError) as exc_info:
        live_source(handler).login("jane@example.com", "wrong")
    assert exc_info.value.status_code == 401
    assert str(exc_info.value) == "Invalid credentials"


def test_live_register_sends_camel_case_payload():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"user": USER_JSON, "token": "tok_new"})

    live_source(handler).register(RegistrationRequest(
        email="jane@example.com", password="Str0ng!Pass", name="Jane Doe",
    ))
    assert seen["body"] == {
        "email": "jane@example.com",
        "password": "Str0ng!Pass",
        "name": "Jane Doe",
        "role": "Policyholder",
    }


def test_live_verify():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer tok_123"
        assert request.method == "GET"
        return httpx.Response(200, json={"user": USER_JSON})

    assert live_source(handler).verify("tok_123").name == "Jane Doe"


def test_live_verify_rejected_token_returns_none():
    assert live_source(lambda request: httpx.Response(401, json={"error": "expired"})).verify("old") is None


def test_live_verify_server_error_raises():
    with pytest.raises(BackendError) as exc_info:
        live_source(lambda request: httpx.Response(500)).verify("tok")
    assert exc_info.value.status_code == 500
    assert "HTTP 500" in str(exc_info.value)


def test_live_logout_sends_token():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        seen["path"] = request.url.path
        return httpx.Response(204)

    live_source(handler).logout("tok_123")
    assert seen == {"auth": "Bearer tok_123", "path": "/api/auth/logout"}


def test_live_submit_claim():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(201, json={"success": True, "claimId": "clm_remote_1"})

    draft = ClaimDraft(policyholder_name="Jane Doe", claim_type="Theft", amount_claimed=900, risk_score=25)
    ack = live_source(handler).submit_claim(draft, token="tok_123")

    assert ack["claimId"] == "clm_remote_1"
    assert seen["auth"] == "Bearer tok_123"
    assert seen["body"]["policyholderName"] == "Jane Doe"
    assert seen["body"]["amountClaimed"] == 900
    assert "status" not in seen["body"]


def test_live_submit_without_claim_id_raises():
    with pytest.raises(BackendError):
        live_source(lambda request: httpx.Response(200, json={"success": True})).submit_claim(
            ClaimDraft(policyholder_name="Jane Doe", claim_type="Theft")
        )


def test_live_analyze_claim():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"riskScore": 72, "analysis": "AI analysis completed"})

    result = live_source(handler).analyze_claim(
        AnalysisRequest(description="Car stolen", claim_type="Theft", estimated_amount=90_000, incident_date="2025-02-01")
    )

    assert seen["path"] == "/api/ai/analyze-claim"
    assert seen["body"]["estimatedAmount"] == 90_000
    assert seen["body"]["incidentDate"] == "2025-02-01"
    assert result.risk_score == 72
    assert result.risk_level == "HIGH"
    assert result.recommendation == "REVIEW"
    assert result.analysis == "AI analysis completed"


def test_live_analyze_without_score_raises():
    with pytest.raises(BackendError):
        live_source(lambda request: httpx.Response(200, json={"analysis": "?"})).analyze_claim(AnalysisRequest())


def test_live_transport_error_raises_backend_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendError) as exc_info:
        live_source(handler).login("jane@example.com", "secret1")
    assert exc_info.value.status_code is None


def test_live_non_json_body_raises():
    with pytest.raises(BackendError):
        live_source(lambda request: httpx.Response(200, text="<html>")).login("a@b.co", "secret1")


# ============================================================================
# Factory
# ============================================================================


def test_create_data_source_live():
    source = create_data_source(Settings(data_source="live", api_base_url="http://backend.test/api"))
    assert isinstance(source, HttpDataSource)
    assert source.base_url == "http://backend.test/api"
    source.close()


def test_create_data_source_fixture():
    source = create_data_source(Settings(data_source="fixture", risk_analyzer="rules", token_secret=SECRET))
    assert isinstance(source, FixtureDataSource)
    assert isinstance(source.analyzer, RuleRiskAnalyzer)
    assert source.secret == SECRET
