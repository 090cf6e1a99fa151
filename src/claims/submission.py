"""
Claim submission flow and claim detail actions.

Submission validates the form, sanitises it, asks the data source for a
risk assessment, submits the claim and finally stores it with a status
chosen from the risk score. Detail actions (notes, documents, status
changes) write the change and its audit entry through one
``ClaimStore.update`` batch.
"""

import logging
import time
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from ..backend.base import DEFAULT_RISK_SCORE, AnalysisRequest, ClaimHistory, PortalDataSource, RiskAssessment
from ..storage.claim_store import ClaimStore
from ..utils.errors import BackendError, ClaimValidationError, RiskAnalysisError
from .schema import (
    HIGH_RISK_THRESHOLD,
    MEDIUM_RISK_THRESHOLD,
    CamelModel,
    ClaimDocument,
    ClaimDraft,
    ClaimNote,
    ClaimRecord,
    ClaimStatus,
    User,
    priority_for_risk_score,
    status_for_risk_score,
)
from .validation import sanitize_form_data, sanitize_html, validate_claim_form

logger = logging.getLogger(__name__)


class ClaimSubmissionForm(CamelModel):
    """New-claim form as entered by the policyholder."""
    full_name: str = ""
    policy_number: str = ""
    claim_type: str = ""
    date_of_loss: str = ""
    incident_description: str = ""
    estimated_amount: Union[float, str] = ""
    location: str = ""


class SubmissionResult(BaseModel):
    """Stored claim plus the message shown to the submitter."""
    record: ClaimRecord
    assessment: RiskAssessment
    backend_claim_id: Optional[str] = None
    notice: Optional[str] = Field(None, description="Flagged or standard-processing message")


def notice_for_risk_score(risk_score: int) -> Optional[str]:
    if risk_score > HIGH_RISK_THRESHOLD:
        return (
            f"Claim flagged for review (Risk Score: {risk_score}%). "
            "Additional verification may be required."
        )
    if risk_score > MEDIUM_RISK_THRESHOLD:
        return f"Standard processing (Risk Score: {risk_score}%). Your claim will be reviewed shortly."
    return None


def _assess(
    data_source: PortalDataSource,
    request: AnalysisRequest,
    token: Optional[str],
) -> RiskAssessment:
    """Risk assessment, or the default low score when analysis fails."""
    try:
        return data_source.analyze_claim(request, token=token)
    except (BackendError, RiskAnalysisError) as e:
        logger.warning(f"Risk analysis unavailable, using default score {DEFAULT_RISK_SCORE}: {e}")
        return RiskAssessment.from_score(
            DEFAULT_RISK_SCORE,
            analysis="Standard claim processing",
        )


def submit_claim(
    form: ClaimSubmissionForm,
    user: User,
    store: ClaimStore,
    data_source: PortalDataSource,
    token: Optional[str] = None,
    history: Optional[ClaimHistory] = None,
) -> SubmissionResult:
    """
    Run the full submission flow for one claim.

    Args:
        form: The submitted form
        user: Submitting user; the claim is indexed under their id
        store: Claims store
        data_source: Source used for risk analysis and submission
        token: Bearer token forwarded to the data source
        history: The submitter's claim history, if known

    Returns:
        SubmissionResult with the stored record

    Raises:
        ClaimValidationError: the form failed validation
        BackendError: the data source rejected the submission (nothing is stored)
    """
    result = validate_claim_form(form.model_dump())
    if not result.is_valid:
        logger.info(f"Claim form rejected for {user.id}: {', '.join(sorted(result.errors))}")
        raise ClaimValidationError(result.errors)

    clean: Dict[str, Any] = sanitize_form_data(form.model_dump())
    amount = float(clean["estimated_amount"])

    assessment = _assess(
        data_source,
        AnalysisRequest(
            description=clean["incident_description"],
            claim_type=clean["claim_type"],
            estimated_amount=amount,
            location=clean["location"],
            incident_date=clean["date_of_loss"],
            user_history=history or ClaimHistory(),
        ),
        token,
    )
    risk_score = assessment.risk_score

    draft = ClaimDraft(
        policyholder_name=clean["full_name"],
        claim_type=clean["claim_type"],
        amount_claimed=amount,
        date_of_loss=clean["date_of_loss"],
        location=clean["location"],
        description=clean["incident_description"],
        policy_number=clean["policy_number"],
        risk_score=risk_score,
        status=status_for_risk_score(risk_score),
        priority=priority_for_risk_score(risk_score),
        fraud_alerts=[
            {"message": factor, "severity": assessment.risk_level}
            for factor in assessment.risk_factors
        ],
        verification_data={
            "riskLevel": assessment.risk_level,
            "recommendation": assessment.recommendation,
            "analysis": assessment.analysis,
        },
    )

    ack = data_source.submit_claim(draft, token=token)
    record = store.create(draft, user_id=user.id)
    logger.info(
        f"Claim {record.claim_number} submitted by {user.id} "
        f"(risk={risk_score}, status={record.status.value})"
    )

    return SubmissionResult(
        record=record,
        assessment=assessment,
        backend_claim_id=ack.get("claimId"),
        notice=notice_for_risk_score(risk_score),
    )


# =============================================================================
# Claim Detail Actions
# =============================================================================


def _new_id(prefix: str) -> str:
    return f"{prefix}_{time.time_ns() // 1000}"


def add_note(store: ClaimStore, claim_id: str, content: str, author: User) -> Optional[ClaimRecord]:
    """
    Append a note to a claim.

    Returns:
        The updated record, or None if the claim does not exist

    Raises:
        ClaimValidationError: the note is empty
    """
    text = sanitize_html(content)
    if not text:
        raise ClaimValidationError({"content": "Note cannot be empty"})

    existing = store.get(claim_id)
    if existing is None:
        return None

    note = ClaimNote(id=_new_id("note"), author=author.name, author_role=author.role.value, content=text)
    return store.update(
        claim_id,
        {"notes": list(existing.notes) + [note]},
        audit_event="Note added",
        actor=author.name,
    )


def attach_document(
    store: ClaimStore,
    claim_id: str,
    name: str,
    uploaded_by: User,
    doc_type: str = "PDF",
    size: Optional[str] = None,
) -> Optional[ClaimRecord]:
    """Record an uploaded document against a claim."""
    clean_name = sanitize_html(name)
    if not clean_name:
        raise ClaimValidationError({"name": "Document name is required"})

    existing = store.get(claim_id)
    if existing is None:
        return None

    document = ClaimDocument(id=_new_id("doc"), name=clean_name, type=doc_type, size=size)
    return store.update(
        claim_id,
        {"documents": list(existing.documents) + [document]},
        audit_event=f"Document uploaded: {clean_name}",
        actor=uploaded_by.name,
    )


def change_status(
    store: ClaimStore,
    claim_id: str,
    status: ClaimStatus,
    changed_by: User,
) -> Optional[ClaimRecord]:
    """Set a claim's status. Any status may follow any other."""
    existing = store.get(claim_id)
    if existing is None:
        return None

    return store.update(
        claim_id,
        {"status": status},
        audit_event=f"Status changed from {existing.status.value} to {status.value}",
        actor=changed_by.name,
    )
