"""
Suggestion rule table for the portal's assistant panel.

A pure function from (role, current page, optional claim context) to a list
of canned suggestion payloads. Every rule is an independent predicate and
template; nothing is learned and no state is kept between calls. Executing
a suggested action returns a static payload.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..claims.schema import HIGH_RISK_THRESHOLD, UserRole
from ..utils.errors import UnknownActionError


# =============================================================================
# Enums and Models
# =============================================================================


class AgentCategory(str, Enum):
    """Capability categories."""
    WORKFLOW_AUTOMATION = "WORKFLOW_AUTOMATION"
    USER_GUIDANCE = "USER_GUIDANCE"
    ANALYSIS_DETECTION = "ANALYSIS_DETECTION"
    COMMUNICATION_SUPPORT = "COMMUNICATION_SUPPORT"
    COMPLIANCE_SECURITY = "COMPLIANCE_SECURITY"


class ResponseType(str, Enum):
    GUIDANCE = "GUIDANCE"
    AUTOMATION = "AUTOMATION"
    ALERT = "ALERT"
    SUGGESTION = "SUGGESTION"
    COMPLETION = "COMPLETION"


class ActionType(str, Enum):
    BUTTON = "BUTTON"
    LINK = "LINK"
    MODAL = "MODAL"
    REDIRECT = "REDIRECT"
    API_CALL = "API_CALL"


class ResponsePriority(str, Enum):
    """Ordering weight of a suggestion."""
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


PRIORITY_ORDER = {
    ResponsePriority.URGENT: 4,
    ResponsePriority.HIGH: 3,
    ResponsePriority.MEDIUM: 2,
    ResponsePriority.LOW: 1,
}


class AgentCapability(BaseModel):
    id: str
    name: str
    description: str
    category: AgentCategory
    supported_roles: List[UserRole]
    priority: str = Field(description="LOW, MEDIUM, HIGH or CRITICAL")
    enabled: bool = True


class ClaimContext(BaseModel):
    """Claim the user is currently looking at, if any."""
    claim_id: Optional[str] = None
    claim_type: Optional[str] = None
    claim_status: Optional[str] = None
    document_count: Optional[int] = None
    risk_score: Optional[int] = None
    assigned_agent: Optional[str] = None


class AgentContext(BaseModel):
    """Everything a rule may look at."""
    user_id: str = ""
    user_role: UserRole
    current_page: str = ""
    session_id: Optional[str] = None
    claim_context: Optional[ClaimContext] = None


class AgentAction(BaseModel):
    id: str
    label: str
    type: ActionType
    action: str
    data: Optional[Dict[str, Any]] = None


class AgentResponse(BaseModel):
    agent_id: str
    type: ResponseType
    message: str
    actions: List[AgentAction] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    priority: ResponsePriority


# =============================================================================
# Capability Table
# =============================================================================

ALL_ROLES = list(UserRole)

CAPABILITIES: List[AgentCapability] = [
    # Policyholder guidance
    AgentCapability(
        id="claim-guidance",
        name="Claim Submission Guidance",
        description="Step-by-step guidance for claim submission process",
        category=AgentCategory.USER_GUIDANCE,
        supported_roles=[UserRole.POLICYHOLDER],
        priority="HIGH",
    ),
    AgentCapability(
        id="document-assistant",
        name="Document Upload Assistant",
        description="Smart document categorization and upload guidance",
        category=AgentCategory.USER_GUIDANCE,
        supported_roles=[UserRole.POLICYHOLDER, UserRole.THIRD_PARTY, UserRole.WITNESS],
        priority="HIGH",
    ),
    AgentCapability(
        id="form-completion",
        name="Smart Form Completion",
        description="Auto-fill forms based on previous submissions and context",
        category=AgentCategory.WORKFLOW_AUTOMATION,
        supported_roles=[UserRole.POLICYHOLDER, UserRole.MEDICAL_PROFESSIONAL],
        priority="MEDIUM",
    ),
    # Fraud detection
    AgentCapability(
        id="fraud-detection",
        name="Real-time Fraud Detection",
        description="Fraud pattern detection and risk scoring",
        category=AgentCategory.ANALYSIS_DETECTION,
        supported_roles=[UserRole.INSURER_ADMIN, UserRole.INSURER_AGENT, UserRole.SUPER_ADMIN],
        priority="CRITICAL",
    ),
    AgentCapability(
        id="anomaly-detection",
        name="Claim Anomaly Detection",
        description="Detect unusual patterns in claim submissions",
        category=AgentCategory.ANALYSIS_DETECTION,
        supported_roles=[UserRole.INSURER_ADMIN, UserRole.INSURER_AGENT],
        priority="HIGH",
    ),
    # Workflow automation
    AgentCapability(
        id="bulk-processing",
        name="Bulk Claim Processing",
        description="Automated processing of similar claims in batches",
        category=AgentCategory.WORKFLOW_AUTOMATION,
        supported_roles=[UserRole.INSURER_ADMIN, UserRole.SUPER_ADMIN],
        priority="HIGH",
    ),
    AgentCapability(
        id="auto-assignment",
        name="Intelligent Claim Assignment",
        description="Assign claims based on adjuster expertise and workload",
        category=AgentCategory.WORKFLOW_AUTOMATION,
        supported_roles=[UserRole.INSURER_ADMIN],
        priority="HIGH",
    ),
    # Communication support
    AgentCapability(
        id="chat-support",
        name="24/7 Chat Support",
        description="Chat assistance for common queries",
        category=AgentCategory.COMMUNICATION_SUPPORT,
        supported_roles=ALL_ROLES,
        priority="MEDIUM",
    ),
    AgentCapability(
        id="status-updates",
        name="Automated Status Updates",
        description="Proactive notifications about claim status changes",
        category=AgentCategory.COMMUNICATION_SUPPORT,
        supported_roles=[UserRole.POLICYHOLDER, UserRole.THIRD_PARTY, UserRole.WITNESS],
        priority="MEDIUM",
    ),
    # Professional integration
    AgentCapability(
        id="medical-integration",
        name="Medical Report Integration",
        description="Streamlined medical report generation and submission",
        category=AgentCategory.WORKFLOW_AUTOMATION,
        supported_roles=[UserRole.MEDICAL_PROFESSIONAL],
        priority="HIGH",
    ),
    AgentCapability(
        id="legal-compliance",
        name="Legal Compliance Checker",
        description="Legal document review and compliance verification",
        category=AgentCategory.COMPLIANCE_SECURITY,
        supported_roles=[UserRole.LEGAL_PROFESSIONAL, UserRole.INSURER_ADMIN],
        priority="HIGH",
    ),
    # Security and compliance
    AgentCapability(
        id="access-control",
        name="Dynamic Access Control",
        description="Role-based access enforcement and monitoring",
        category=AgentCategory.COMPLIANCE_SECURITY,
        supported_roles=[UserRole.SUPER_ADMIN, UserRole.GOVERNMENT_OFFICIAL],
        priority="CRITICAL",
    ),
    AgentCapability(
        id="audit-monitor",
        name="Audit Trail Monitor",
        description="Audit logging and compliance monitoring",
        category=AgentCategory.COMPLIANCE_SECURITY,
        supported_roles=[UserRole.SUPER_ADMIN, UserRole.GOVERNMENT_OFFICIAL],
        priority="HIGH",
    ),
]


def applicable_capabilities(role: UserRole) -> List[AgentCapability]:
    """Enabled capabilities that support ``role``."""
    return [cap for cap in CAPABILITIES if cap.enabled and role in cap.supported_roles]


# =============================================================================
# Rules
# =============================================================================


def _claim_guidance(context: AgentContext) -> Optional[AgentResponse]:
    if "/claims/new" not in context.current_page:
        return None
    return AgentResponse(
        agent_id="claim-guidance",
        type=ResponseType.GUIDANCE,
        message="I'm here to help you through the claim submission process. Let me guide you step by step.",
        actions=[
            AgentAction(id="show-checklist", label="Show Document Checklist",
                        type=ActionType.MODAL, action="showDocumentChecklist"),
            AgentAction(id="fill-assistance", label="Help Fill Forms",
                        type=ActionType.BUTTON, action="enableFormAssistance"),
        ],
        confidence=0.9,
        priority=ResponsePriority.HIGH,
    )


def _document_assistant(context: AgentContext) -> Optional[AgentResponse]:
    if "/upload-documents" not in context.current_page:
        return None
    return AgentResponse(
        agent_id="document-assistant",
        type=ResponseType.GUIDANCE,
        message="I can help organize your documents automatically. Drop your files and I'll categorize them.",
        actions=[
            AgentAction(id="auto-categorize", label="Auto-Categorize Documents",
                        type=ActionType.BUTTON, action="enableAutoCategorization"),
            AgentAction(id="scan-quality", label="Check Document Quality",
                        type=ActionType.BUTTON, action="checkDocumentQuality"),
        ],
        confidence=0.85,
        priority=ResponsePriority.MEDIUM,
    )


def _fraud_detection(context: AgentContext) -> Optional[AgentResponse]:
    claim = context.claim_context
    if claim is None or not claim.risk_score or claim.risk_score <= HIGH_RISK_THRESHOLD:
        return None
    return AgentResponse(
        agent_id="fraud-detection",
        type=ResponseType.ALERT,
        message=(
            f"High-risk claim detected (Risk Score: {claim.risk_score}%). "
            "Recommended for detailed review."
        ),
        actions=[
            AgentAction(id="detailed-review", label="Start Detailed Review",
                        type=ActionType.BUTTON, action="initiateDetailedReview",
                        data={"claimId": claim.claim_id}),
            AgentAction(id="flag-for-investigation", label="Flag for Investigation",
                        type=ActionType.BUTTON, action="flagForInvestigation"),
        ],
        confidence=0.95,
        priority=ResponsePriority.URGENT,
    )


def _bulk_processing(context: AgentContext) -> Optional[AgentResponse]:
    if "/claims" not in context.current_page or context.user_role != UserRole.INSURER_ADMIN:
        return None
    return AgentResponse(
        agent_id="bulk-processing",
        type=ResponseType.SUGGESTION,
        message="I noticed you have multiple similar claims. Would you like me to process them in bulk?",
        actions=[
            AgentAction(id="bulk-approve", label="Bulk Approve Similar Claims",
                        type=ActionType.BUTTON, action="initiateBulkProcessing"),
            AgentAction(id="create-template", label="Create Processing Template",
                        type=ActionType.BUTTON, action="createProcessingTemplate"),
        ],
        confidence=0.75,
        priority=ResponsePriority.MEDIUM,
    )


def _chat_support(context: AgentContext) -> Optional[AgentResponse]:
    priority = ResponsePriority.MEDIUM if context.user_role == UserRole.POLICYHOLDER else ResponsePriority.LOW
    return AgentResponse(
        agent_id="chat-support",
        type=ResponseType.SUGGESTION,
        message="Need help? I'm here 24/7 to assist you with any questions.",
        actions=[
            AgentAction(id="open-chat", label="Ask a Question",
                        type=ActionType.MODAL, action="openChatModal"),
            AgentAction(id="show-faq", label="Browse FAQ",
                        type=ActionType.MODAL, action="showFAQ"),
        ],
        confidence=0.7,
        priority=priority,
    )


def _medical_integration(context: AgentContext) -> Optional[AgentResponse]:
    if context.user_role != UserRole.MEDICAL_PROFESSIONAL:
        return None
    return AgentResponse(
        agent_id="medical-integration",
        type=ResponseType.AUTOMATION,
        message="I can streamline your medical report generation. Connect your EHR system for automatic data entry.",
        actions=[
            AgentAction(id="connect-ehr", label="Connect EHR System",
                        type=ActionType.MODAL, action="connectEHRSystem"),
            AgentAction(id="generate-template", label="Generate Report Template",
                        type=ActionType.BUTTON, action="generateMedicalTemplate"),
        ],
        confidence=0.8,
        priority=ResponsePriority.HIGH,
    )


def _legal_compliance(context: AgentContext) -> Optional[AgentResponse]:
    admin_on_claims = context.user_role == UserRole.INSURER_ADMIN and "/claims" in context.current_page
    if context.user_role != UserRole.LEGAL_PROFESSIONAL and not admin_on_claims:
        return None
    return AgentResponse(
        agent_id="legal-compliance",
        type=ResponseType.AUTOMATION,
        message="I can automatically check legal compliance and flag potential issues.",
        actions=[
            AgentAction(id="compliance-check", label="Run Compliance Check",
                        type=ActionType.BUTTON, action="runComplianceCheck"),
            AgentAction(id="legal-review", label="Request Legal Review",
                        type=ActionType.BUTTON, action="requestLegalReview"),
        ],
        confidence=0.85,
        priority=ResponsePriority.HIGH,
    )


# Capabilities without an entry here never produce a suggestion
RULES: Dict[str, Callable[[AgentContext], Optional[AgentResponse]]] = {
    "claim-guidance": _claim_guidance,
    "document-assistant": _document_assistant,
    "fraud-detection": _fraud_detection,
    "bulk-processing": _bulk_processing,
    "chat-support": _chat_support,
    "medical-integration": _medical_integration,
    "legal-compliance": _legal_compliance,
}


def get_suggestions(context: AgentContext) -> List[AgentResponse]:
    """
    Evaluate every applicable rule for ``context``.

    Returns:
        Suggestions ordered by priority (URGENT first), then confidence
    """
    responses = []
    for capability in applicable_capabilities(context.user_role):
        rule = RULES.get(capability.id)
        response = rule(context) if rule else None
        if response is not None:
            responses.append(response)
    return sorted(
        responses,
        key=lambda r: (PRIORITY_ORDER[r.priority], r.confidence),
        reverse=True,
    )


# =============================================================================
# Action Executor
# =============================================================================


def _stamp() -> int:
    return int(time.time() * 1000)


def execute_action(action: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Run a suggested action. Every handler returns a fixed payload.

    Raises:
        UnknownActionError: no handler exists for ``action``
    """
    data = data or {}

    if action == "showDocumentChecklist":
        return {
            "title": "Document Checklist",
            "items": [
                {"name": "Police Report", "required": True, "uploaded": False},
                {"name": "Photos of Damage", "required": True, "uploaded": False},
                {"name": "Medical Records", "required": False, "uploaded": False},
                {"name": "Witness Statements", "required": False, "uploaded": False},
            ],
        }

    elif action == "enableFormAssistance":
        return {
            "success": True,
            "message": "Form assistance enabled. I'll help you fill out forms automatically.",
            "features": ["auto-complete", "field-validation", "smart-suggestions"],
        }

    elif action == "enableAutoCategorization":
        return {
            "success": True,
            "message": "Document auto-categorization enabled. Upload files and I'll organize them.",
            "categories": ["police-report", "medical-record", "photo-evidence", "correspondence"],
        }

    elif action == "initiateDetailedReview":
        return {
            "success": True,
            "message": "Detailed review initiated for high-risk claim.",
            "reviewId": f"review_{_stamp()}",
            "claimId": data.get("claimId"),
            "assignedTo": "fraud-investigation-team",
        }

    elif action == "initiateBulkProcessing":
        return {
            "success": True,
            "message": "Bulk processing workflow started.",
            "batchId": f"batch_{_stamp()}",
            "estimatedCompletion": "15 minutes",
        }

    elif action == "openChatModal":
        return {
            "success": True,
            "chatSession": f"chat_{_stamp()}",
            "availableTopics": ["claim-status", "document-upload", "payment-issues", "general-inquiry"],
        }

    elif action == "connectEHRSystem":
        return {
            "success": True,
            "message": "EHR integration wizard started.",
            "supportedSystems": ["Epic", "Cerner", "AllScripts", "NextGen"],
        }

    elif action == "runComplianceCheck":
        return {
            "success": True,
            "message": "Compliance check completed.",
            "results": {
                "overallScore": 92,
                "issues": [],
                "recommendations": ["Update privacy policy link", "Add GDPR consent clause"],
            },
        }

    raise UnknownActionError(action)
