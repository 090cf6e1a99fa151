"""
Demo claims merged into the insurer view.
"""

from datetime import datetime, timezone

from ..claims.schema import AuditEntry, ClaimPriority, ClaimRecord, ClaimStatus


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def demo_claims() -> list[ClaimRecord]:
    """Return fresh copies of the seed records shown to insurers."""
    return [
        ClaimRecord(
            id="clm_mock_001",
            claim_number="DET-001",
            policyholder_name="John Smith",
            date_of_loss="2024-07-15",
            claim_type="Auto Accident",
            status=ClaimStatus.IN_REVIEW,
            amount_claimed=25000,
            location="Main St & Oak Ave, Cape Town",
            description="Intersection collision during peak traffic",
            policy_number="POL-12345",
            submitted_at=_ts("2024-07-16T10:30:00"),
            risk_score=75,
            assigned_to="Sarah Johnson",
            priority=ClaimPriority.HIGH,
            last_activity=_ts("2024-07-16T15:22:00"),
            audit_trail=[AuditEntry(
                timestamp=_ts("2024-07-16T10:30:00"),
                event="Claim submitted by John Smith",
                actor="John Smith",
            )],
        ),
        ClaimRecord(
            id="clm_mock_002",
            claim_number="DET-002",
            policyholder_name="Jane Doe",
            date_of_loss="2024-06-20",
            claim_type="Property Damage",
            status=ClaimStatus.SUBMITTED,
            amount_claimed=12000,
            location="123 Beach Road, Cape Town",
            description="Water damage from burst pipe",
            policy_number="POL-67890",
            submitted_at=_ts("2024-06-21T09:15:00"),
            risk_score=30,
            assigned_to="Mike Wilson",
            priority=ClaimPriority.MEDIUM,
            last_activity=_ts("2024-07-14T11:45:00"),
            audit_trail=[AuditEntry(
                timestamp=_ts("2024-06-21T09:15:00"),
                event="Claim submitted by Jane Doe",
                actor="Jane Doe",
            )],
        ),
        ClaimRecord(
            id="clm_mock_003",
            claim_number="DET-003",
            policyholder_name="Bob Johnson",
            date_of_loss="2024-05-01",
            claim_type="Theft",
            status=ClaimStatus.APPROVED,
            amount_claimed=8000,
            location="456 Garden Street, Cape Town",
            description="Laptop and electronics stolen from home",
            policy_number="POL-11111",
            submitted_at=_ts("2024-05-02T14:20:00"),
            risk_score=20,
            assigned_to="Lisa Chen",
            priority=ClaimPriority.LOW,
            last_activity=_ts("2024-07-10T16:30:00"),
            audit_trail=[AuditEntry(
                timestamp=_ts("2024-05-02T14:20:00"),
                event="Claim submitted by Bob Johnson",
                actor="Bob Johnson",
            )],
        ),
    ]
