"""
HTTP data source for the portal backend.

Every request carries JSON, an optional bearer token and the configured
timeout. Transport failures and non-success responses raise BackendError;
there is no silent fallback to fixture data.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from ..claims.schema import ClaimDraft, User
from ..utils.errors import BackendError
from .base import AnalysisRequest, AuthResult, PortalDataSource, RegistrationRequest, RiskAssessment

logger = logging.getLogger(__name__)


class HttpDataSource(PortalDataSource):
    """Talks to the portal backend over HTTP."""

    name = "live"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            base_url: Backend root, e.g. http://localhost:7071/api
            timeout: Seconds allowed per request
            transport: Optional transport (tests pass httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = self._client.request(method, path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise BackendError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned invalid JSON", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise BackendError(f"{method} {path} returned a non-object body", status_code=response.status_code)
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"Backend returned HTTP {response.status_code}"

    @staticmethod
    def _auth_result(data: Dict[str, Any]) -> AuthResult:
        try:
            return AuthResult.model_validate(data)
        except ValidationError as e:
            raise BackendError(f"Unexpected auth response: {e}") from e

    # =========================================================================
    # Operations
    # =========================================================================

    def login(self, email: str, password: str) -> AuthResult:
        data = self._request("POST", "/auth/login", payload={"email": email, "password": password})
        return self._auth_result(data)

    def register(self, request: RegistrationRequest) -> AuthResult:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = self._request("POST", "/auth/register", payload=payload)
        return self._auth_result(data)

    def logout(self, token: str) -> None:
        self._request("POST", "/auth/logout", token=token)

    def verify(self, token: str) -> Optional[User]:
        """Returns None when the backend answers 401; other failures raise."""
        try:
            data = self._request("GET", "/auth/verify", token=token)
        except BackendError as e:
            if e.status_code == 401:
                return None
            raise
        try:
            return User.model_validate(data.get("user", data))
        except ValidationError as e:
            raise BackendError(f"Unexpected verify response: {e}") from e

    def submit_claim(self, draft: ClaimDraft, token: Optional[str] = None) -> Dict[str, Any]:
        payload = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = self._request("POST", "/claims", token=token, payload=payload)
        if "claimId" not in data:
            raise BackendError("Claim submission response has no claimId")
        return data

    def analyze_claim(self, request: AnalysisRequest, token: Optional[str] = None) -> RiskAssessment:
        payload = request.model_dump(mode="json", by_alias=True)
        data = self._request("POST", "/ai/analyze-claim", token=token, payload=payload)
        try:
            score = int(data["riskScore"])
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(f"Analysis response has no usable riskScore: {e}") from e

        return RiskAssessment.from_score(
            score,
            confidence=float(data.get("confidence") or 0.0),
            risk_factors=[str(f) for f in data.get("riskFactors") or []],
            analysis=str(data.get("analysis") or ""),
        )

    def close(self) -> None:
        self._client.close()
