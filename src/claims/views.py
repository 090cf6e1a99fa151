"""
Role-conditional read paths over the claims store.

Policyholders see their own claims; insurer roles see the merged
stored + demo view. Search, filters and sorting are linear scans over the
full result set.
"""

import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..storage.claim_store import ClaimStore
from .schema import ClaimPriority, ClaimRecord, ClaimStatus, User, UserRole, HIGH_RISK_THRESHOLD

logger = logging.getLogger(__name__)

SortField = Literal["submitted_at", "last_activity", "risk_score", "amount_claimed"]


class ClaimQuery(BaseModel):
    """Client-side search, filter and sort options."""
    search: str = Field(default="", description="Substring matched across number, name, type and description")
    status: Optional[ClaimStatus] = None
    priority: Optional[ClaimPriority] = None
    sort_by: SortField = "submitted_at"
    descending: bool = True


class ClaimsSummary(BaseModel):
    """Dashboard counters for a list of claims."""
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    high_risk: int = 0
    total_amount: float = 0.0


def _matches_search(claim: ClaimRecord, term: str) -> bool:
    haystacks = (claim.claim_number, claim.policyholder_name, claim.claim_type, claim.description)
    return any(term in (text or "").lower() for text in haystacks)


def filter_claims(claims: List[ClaimRecord], query: ClaimQuery) -> List[ClaimRecord]:
    """Apply search and equality filters, preserving order."""
    term = query.search.strip().lower()
    result = []
    for claim in claims:
        if term and not _matches_search(claim, term):
            continue
        if query.status is not None and claim.status != query.status:
            continue
        if query.priority is not None and claim.priority != query.priority:
            continue
        result.append(claim)
    return result


def sort_claims(claims: List[ClaimRecord], sort_by: SortField, descending: bool = True) -> List[ClaimRecord]:
    """Stable sort on one record attribute."""
    return sorted(claims, key=lambda claim: getattr(claim, sort_by), reverse=descending)


def visible_claims(store: ClaimStore, user: User) -> List[ClaimRecord]:
    """The slice of store data ``user`` may see, before filtering."""
    if user.role == UserRole.POLICYHOLDER:
        return store.list_for_user(user)
    if user.is_insurer:
        return store.insurer_view()
    logger.debug(f"Role {user.role.value} has no claims view")
    return []


def compose_claims_view(
    store: ClaimStore,
    user: User,
    query: Optional[ClaimQuery] = None,
) -> List[ClaimRecord]:
    """
    Build the claims list shown to ``user``.

    Args:
        store: Claims store to read from
        user: The caller (role decides the read path)
        query: Optional search/filter/sort options

    Returns:
        Filtered and sorted claims
    """
    query = query or ClaimQuery()
    claims = filter_claims(visible_claims(store, user), query)
    return sort_claims(claims, query.sort_by, query.descending)


def summarize_claims(claims: List[ClaimRecord]) -> ClaimsSummary:
    """Counters for dashboard tiles."""
    summary = ClaimsSummary(
        total=len(claims),
        by_status={status.value: 0 for status in ClaimStatus},
        by_priority={priority.value: 0 for priority in ClaimPriority},
    )
    for claim in claims:
        summary.by_status[claim.status.value] += 1
        summary.by_priority[claim.priority.value] += 1
        summary.total_amount += claim.amount_claimed
        if claim.risk_score > HIGH_RISK_THRESHOLD:
            summary.high_risk += 1
    return summary
