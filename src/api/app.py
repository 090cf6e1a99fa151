"""
FastAPI application for the claims portal.

Provides:
- Health check endpoints
- Auth endpoints backed by the configured data source (rate limited)
- Role-composed claim listing, claim submission and claim detail actions
- Assistant suggestions and action execution
"""

# Configure noisy library loggers before they are imported
import logging

logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("openai._base_client").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..agent.suggestions import AgentContext, ClaimContext, execute_action, get_suggestions
from ..auth.rate_limit import RateLimiter
from ..auth.session import resolve_user
from ..backend import AuthResult, PortalDataSource, RegistrationRequest, create_data_source
from ..claims.schema import ClaimPriority, ClaimRecord, ClaimStatus, User, UserRole
from ..claims.submission import (
    ClaimSubmissionForm,
    add_note,
    attach_document,
    change_status,
    submit_claim,
)
from ..claims.validation import validate_login_form, validate_registration_form
from ..claims.views import ClaimQuery, SortField, compose_claims_view, summarize_claims, visible_claims
from ..storage import ClaimStore, get_claim_store
from ..utils.config import Settings, get_settings
from ..utils.errors import (
    BackendError,
    ClaimStoreError,
    ClaimValidationError,
    CorruptRecordError,
    StorageUnavailableError,
    UnknownActionError,
)

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Dependencies
# =============================================================================


def get_store() -> ClaimStore:
    return get_claim_store()


@lru_cache
def get_data_source() -> PortalDataSource:
    """Data source chosen once from settings."""
    return create_data_source(get_settings())


def get_rate_limiter(store: ClaimStore = Depends(get_store)) -> RateLimiter:
    return RateLimiter(store.kv)


def get_token(authorization: Optional[str] = Header(default=None)) -> str:
    """Bearer token from the Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return authorization[len("Bearer "):].strip()


def get_current_user(
    token: str = Depends(get_token),
    settings: Settings = Depends(get_settings),
    data_source: PortalDataSource = Depends(get_data_source),
) -> User:
    """Locally signed tokens verify offline; others are checked with the data source."""
    user = resolve_user(token, settings.token_secret, data_source)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_insurer(user: User = Depends(get_current_user)) -> User:
    if not user.is_insurer:
        raise HTTPException(status_code=403, detail=f"Role {user.role.value} cannot perform this action")
    return user


# =============================================================================
# Request Bodies
# =============================================================================


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RegistrationForm(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    phone: Optional[str] = None
    role: UserRole = UserRole.POLICYHOLDER


class NoteRequest(BaseModel):
    content: str


class DocumentRequest(BaseModel):
    name: str
    type: str = "PDF"
    size: Optional[str] = None


class StatusRequest(BaseModel):
    status: ClaimStatus


class SuggestionRequest(BaseModel):
    current_page: str = ""
    session_id: Optional[str] = None
    claim_context: Optional[ClaimContext] = None


# =============================================================================
# App
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting claims portal API...")
    logger.info(f"Storage: {settings.storage_backend} | Data source: {settings.data_source}")
    yield
    logger.info("Shutting down claims portal API...")
    get_data_source().close()


app = FastAPI(
    title="Detachd Claims Portal",
    description="Claims storage, role-based views and assistant suggestions",
    version="1.0.0",
    lifespan=lifespan,
)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.exception_handler(ClaimValidationError)
async def handle_validation_error(request: Request, exc: ClaimValidationError):
    return _error(422, "Validation failed", errors=exc.errors)


@app.exception_handler(ClaimStoreError)
async def handle_store_error(request: Request, exc: ClaimStoreError):
    return _error(422, str(exc))


@app.exception_handler(UnknownActionError)
async def handle_unknown_action(request: Request, exc: UnknownActionError):
    return _error(404, str(exc))


@app.exception_handler(BackendError)
async def handle_backend_error(request: Request, exc: BackendError):
    # Upstream auth rejections pass through unchanged
    if exc.status_code in (401, 403):
        return _error(exc.status_code, str(exc))
    logger.error(f"Backend failure on {request.url.path}: {exc}")
    return _error(502, str(exc), upstream_status=exc.status_code)


@app.exception_handler(StorageUnavailableError)
async def handle_storage_unavailable(request: Request, exc: StorageUnavailableError):
    logger.error(f"Storage unavailable on {request.url.path}: {exc}")
    return _error(503, "Storage unavailable")


@app.exception_handler(CorruptRecordError)
async def handle_corrupt_record(request: Request, exc: CorruptRecordError):
    logger.error(f"Corrupt record on {request.url.path}: {exc}")
    return _error(500, "Stored claim data is corrupt", key=exc.key)


def _dump(record: ClaimRecord) -> Dict[str, Any]:
    return record.to_storage()


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "service": "Detachd Claims Portal",
        "status": "running",
    }


@app.get("/health")
def health_check(
    settings: Settings = Depends(get_settings),
    data_source: PortalDataSource = Depends(get_data_source),
):
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "config": {
            "storage_backend": settings.storage_backend,
            "data_source": data_source.name,
            "risk_analyzer": settings.risk_analyzer,
        },
    }


# =============================================================================
# Auth Endpoints
# =============================================================================


@app.post("/auth/login")
def login(
    body: LoginRequest,
    settings: Settings = Depends(get_settings),
    data_source: PortalDataSource = Depends(get_data_source),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Log in through the data source. Throttled per email address."""
    result = validate_login_form(body.email, body.password)
    if not result.is_valid:
        raise ClaimValidationError(result.errors)

    limit_key = f"login_{body.email.lower()}"
    if not limiter.check(limit_key, settings.login_max_attempts, settings.login_window_seconds):
        return _error(429, "Too many login attempts. Please try again later.")

    auth: AuthResult = data_source.login(body.email, body.password)
    limiter.clear(limit_key)
    return auth.model_dump(mode="json", by_alias=True)


@app.post("/auth/register", status_code=201)
def register(
    body: RegistrationForm,
    settings: Settings = Depends(get_settings),
    data_source: PortalDataSource = Depends(get_data_source),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Register through the data source. Throttled per email address."""
    result = validate_registration_form(body.model_dump())
    if not result.is_valid:
        raise ClaimValidationError(result.errors)

    limit_key = f"register_{body.email.lower()}"
    if not limiter.check(limit_key, settings.register_max_attempts, settings.register_window_seconds):
        return _error(429, "Too many registration attempts. Please try again later.")

    auth = data_source.register(RegistrationRequest(
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        phone=body.phone,
    ))
    limiter.clear(limit_key)
    return auth.model_dump(mode="json", by_alias=True)


@app.post("/auth/logout")
def logout(
    token: str = Depends(get_token),
    data_source: PortalDataSource = Depends(get_data_source),
):
    data_source.logout(token)
    return {"success": True}


@app.get("/auth/me")
def me(user: User = Depends(get_current_user)):
    return user.model_dump(mode="json", by_alias=True)


# =============================================================================
# Claims Endpoints
# =============================================================================


@app.get("/claims")
def list_claims(
    search: str = "",
    status: Optional[ClaimStatus] = None,
    priority: Optional[ClaimPriority] = None,
    sort_by: SortField = "submitted_at",
    descending: bool = True,
    user: User = Depends(get_current_user),
    store: ClaimStore = Depends(get_store),
):
    """Claims visible to the caller, filtered and sorted."""
    query = ClaimQuery(search=search, status=status, priority=priority, sort_by=sort_by, descending=descending)
    claims = compose_claims_view(store, user, query)
    return {
        "claims": [_dump(claim) for claim in claims],
        "summary": summarize_claims(claims).model_dump(),
    }


@app.post("/claims", status_code=201)
def create_claim(
    form: ClaimSubmissionForm,
    user: User = Depends(get_current_user),
    token: str = Depends(get_token),
    store: ClaimStore = Depends(get_store),
    data_source: PortalDataSource = Depends(get_data_source),
):
    """Run the submission flow for a new claim."""
    result = submit_claim(form, user, store, data_source, token=token)
    return {
        "claim": _dump(result.record),
        "notice": result.notice,
        "assessment": result.assessment.model_dump(mode="json", by_alias=True),
        "backendClaimId": result.backend_claim_id,
    }


@app.get("/claims/stats")
def claim_stats(
    user: User = Depends(require_insurer),
    store: ClaimStore = Depends(get_store),
):
    """Aggregate statistics over all stored claims."""
    return store.stats().model_dump()


def _visible_claim(store: ClaimStore, user: User, claim_id: str) -> ClaimRecord:
    """Stored claim the caller may see, or 404."""
    record = store.get(claim_id)
    if record is None and user.is_insurer:
        # Demo claims live only in the insurer view
        record = next((c for c in store.insurer_view() if c.id == claim_id), None)
    if record is None:
        raise HTTPException(status_code=404, detail="Claim not found")
    if not user.is_insurer and claim_id not in {c.id for c in visible_claims(store, user)}:
        raise HTTPException(status_code=404, detail="Claim not found")
    return record


@app.get("/claims/{claim_id}")
def get_claim(
    claim_id: str,
    user: User = Depends(get_current_user),
    store: ClaimStore = Depends(get_store),
):
    return _dump(_visible_claim(store, user, claim_id))


@app.patch("/claims/{claim_id}")
def update_claim(
    claim_id: str,
    fields: Dict[str, Any],
    user: User = Depends(require_insurer),
    store: ClaimStore = Depends(get_store),
):
    """Merge fields into a stored claim."""
    updated = store.update(
        claim_id,
        fields,
        audit_event=f"Claim updated: {', '.join(sorted(fields))}",
        actor=user.name,
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Claim not found")
    return _dump(updated)


@app.post("/claims/{claim_id}/notes")
def create_note(
    claim_id: str,
    body: NoteRequest,
    user: User = Depends(get_current_user),
    store: ClaimStore = Depends(get_store),
):
    _visible_claim(store, user, claim_id)
    updated = add_note(store, claim_id, body.content, user)
    if updated is None:
        raise HTTPException(status_code=404, detail="Claim not found")
    return _dump(updated)


@app.post("/claims/{claim_id}/documents")
def create_document(
    claim_id: str,
    body: DocumentRequest,
    user: User = Depends(get_current_user),
    store: ClaimStore = Depends(get_store),
):
    _visible_claim(store, user, claim_id)
    updated = attach_document(store, claim_id, body.name, user, doc_type=body.type, size=body.size)
    if updated is None:
        raise HTTPException(status_code=404, detail="Claim not found")
    return _dump(updated)


@app.post("/claims/{claim_id}/status")
def set_status(
    claim_id: str,
    body: StatusRequest,
    user: User = Depends(require_insurer),
    store: ClaimStore = Depends(get_store),
):
    updated = change_status(store, claim_id, body.status, user)
    if updated is None:
        raise HTTPException(status_code=404, detail="Claim not found")
    return _dump(updated)


# =============================================================================
# Assistant Endpoints
# =============================================================================


@app.post("/agent/suggestions")
def suggestions(
    body: SuggestionRequest,
    user: User = Depends(get_current_user),
):
    """Suggestions for the caller's role and current page."""
    context = AgentContext(
        user_id=user.id,
        user_role=user.role,
        current_page=body.current_page,
        session_id=body.session_id,
        claim_context=body.claim_context,
    )
    return {"suggestions": [r.model_dump(mode="json") for r in get_suggestions(context)]}


@app.post("/agent/actions/{action}")
def run_action(
    action: str,
    data: Optional[Dict[str, Any]] = None,
    user: User = Depends(get_current_user),
):
    logger.info(f"User {user.id} executing assistant action {action}")
    return execute_action(action, data)


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
