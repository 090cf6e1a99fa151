"""
Tests for the key-value backed claims store.

Verifies that ClaimStore:
- Assigns identity, claim number, timestamps and the initial audit entry
- Derives status and priority from the risk score
- Keeps the global list and per-user indices in step with each record
- Rejects updates to immutable fields
- Degrades reads to None / [] when the medium is unavailable
"""

import json
import re
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.claims.schema import ClaimDraft, ClaimPriority, ClaimStatus, User, UserRole
from src.storage.claim_store import ClaimStore
from src.storage.codec import CLAIMS_LIST_KEY, claim_key, user_claims_key
from src.storage.kv import MemoryKeyValueStore, SQLiteKeyValueStore
from src.utils.errors import (
    ClaimStoreError,
    CorruptRecordError,
    ImmutableFieldError,
    StorageUnavailableError,
)


# ============================================================================
# Helpers
# ============================================================================


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingKeyValueStore(MemoryKeyValueStore):
    """Memory store that remembers every batch it applied."""

    def __init__(self):
        super().__init__()
        self.batches = []

    def write_batch(self, sets, removes=()):
        self.batches.append((dict(sets), list(removes)))
        super().write_batch(sets, removes)


class UnavailableKeyValueStore(MemoryKeyValueStore):
    def get(self, key):
        raise StorageUnavailableError("medium offline")

    def keys(self, prefix=""):
        raise StorageUnavailableError("medium offline")

    def write_batch(self, sets, removes=()):
        raise StorageUnavailableError("medium offline")


START = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_draft(**overrides) -> dict:
    data = {
        "policyholder_name": "John Smith",
        "claim_type": "Auto Accident",
        "amount_claimed": 25000,
        "date_of_loss": "2025-02-20",
        "location": "Main St & Oak Ave, Cape Town",
        "description": "Rear-ended at a traffic light",
        "policy_number": "POL-12345",
        "risk_score": 30,
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def kv():
    return RecordingKeyValueStore()


@pytest.fixture
def store(kv, clock):
    return ClaimStore(kv, clock=clock)


# ============================================================================
# Create / Get
# ============================================================================


def test_create_then_get_returns_input_plus_assigned_fields(store):
    record = store.create(make_draft())
    fetched = store.get(record.id)

    assert fetched == record
    assert fetched.policyholder_name == "John Smith"
    assert fetched.claim_type == "Auto Accident"
    assert fetched.amount_claimed == 25000
    assert fetched.submitted_at == START
    assert fetched.last_activity == START
    assert len(fetched.audit_trail) == 1
    assert fetched.audit_trail[0].event == "Claim submitted by John Smith"
    assert fetched.audit_trail[0].actor == "John Smith"


def test_claim_id_format(store):
    record = store.create(make_draft())
    assert re.fullmatch(r"clm_\d+_[a-z0-9]{9}", record.id)


def test_claim_number_format(store):
    record = store.create(make_draft())
    assert re.fullmatch(r"DET-2025-\d{6}-\d{3}", record.claim_number)


def test_create_accepts_camel_case_and_draft_models(store):
    from_alias = store.create({"policyholderName": "Jane Doe", "claimType": "Theft", "amountClaimed": 800})
    from_model = store.create(ClaimDraft(policyholder_name="Bob Johnson", claim_type="Theft"))
    assert from_alias.policyholder_name == "Jane Doe"
    assert from_alias.amount_claimed == 800
    assert from_model.policyholder_name == "Bob Johnson"


def test_high_risk_claim_starts_in_review(store):
    record = store.create(make_draft(risk_score=75))
    assert record.status == ClaimStatus.IN_REVIEW
    assert record.priority == ClaimPriority.HIGH


@pytest.mark.parametrize("risk_score,priority", [
    (0, ClaimPriority.LOW),
    (40, ClaimPriority.LOW),
    (41, ClaimPriority.MEDIUM),
    (70, ClaimPriority.MEDIUM),
])
def test_non_high_risk_claim_is_submitted(store, risk_score, priority):
    record = store.create(make_draft(risk_score=risk_score))
    assert record.status == ClaimStatus.SUBMITTED
    assert record.priority == priority


def test_explicit_status_is_kept(store):
    record = store.create(make_draft(risk_score=10, status="Pending Information"))
    assert record.status == ClaimStatus.PENDING_INFO


def test_persisted_layout_is_camel_case(store, kv):
    record = store.create(make_draft())
    stored = json.loads(kv.get(claim_key(record.id)))
    assert stored["claimNumber"] == record.claim_number
    assert stored["policyholderName"] == "John Smith"
    assert stored["auditTrail"][0]["user"] == "John Smith"
    assert stored["status"] == "Submitted"


def test_create_writes_record_and_indices_in_one_batch(store, kv):
    record = store.create(make_draft(), user_id="usr_1")

    assert len(kv.batches) == 1
    sets, removes = kv.batches[0]
    assert set(sets) == {claim_key(record.id), CLAIMS_LIST_KEY, user_claims_key("usr_1")}
    assert removes == []


def test_create_without_user_does_not_touch_user_index(store, kv):
    store.create(make_draft())
    assert kv.keys("user_claims_") == []


def test_get_missing_claim(store):
    assert store.get("clm_missing") is None


def test_invalid_draft_is_rejected(store):
    with pytest.raises(ValueError):
        store.create(make_draft(policyholder_name="   "))


# ============================================================================
# Update
# ============================================================================


def test_update_status_persists_with_later_last_activity(store, clock):
    record = store.create(make_draft())
    clock.advance(60)

    updated = store.update(record.id, {"status": ClaimStatus.APPROVED})
    fetched = store.get(record.id)

    assert updated.status == ClaimStatus.APPROVED
    assert fetched.status == ClaimStatus.APPROVED
    assert fetched.last_activity > record.last_activity


def test_last_activity_strictly_increases_with_frozen_clock(store):
    record = store.create(make_draft())
    first = store.update(record.id, {"assigned_to": "Sarah Johnson"})
    second = store.update(record.id, {"assigned_to": "Mike Wilson"})

    assert first.last_activity > record.last_activity
    assert second.last_activity > first.last_activity


def test_sequential_disjoint_updates_both_persist(store):
    record = store.create(make_draft())
    store.update(record.id, {"status": "In Review"})
    store.update(record.id, {"assignedTo": "Sarah Johnson"})

    fetched = store.get(record.id)
    assert fetched.status == ClaimStatus.IN_REVIEW
    assert fetched.assigned_to == "Sarah Johnson"


def test_any_status_may_follow_any_other(store):
    record = store.create(make_draft())
    store.update(record.id, {"status": ClaimStatus.CLOSED})
    reopened = store.update(record.id, {"status": ClaimStatus.SUBMITTED})
    assert reopened.status == ClaimStatus.SUBMITTED


def test_update_refreshes_global_list(store):
    record = store.create(make_draft())
    store.update(record.id, {"status": ClaimStatus.REJECTED})
    assert store.list_all()[0].status == ClaimStatus.REJECTED


def test_update_refreshes_user_index(store):
    record = store.create(make_draft(), user_id="usr_1")
    store.update(record.id, {"status": ClaimStatus.APPROVED})

    user = User(id="usr_1", name="Someone Else", role=UserRole.POLICYHOLDER)
    assert [c.status for c in store.list_for_user(user)] == [ClaimStatus.APPROVED]


def test_update_writes_one_batch(store, kv):
    record = store.create(make_draft(), user_id="usr_1")
    kv.batches.clear()

    store.update(record.id, {"status": ClaimStatus.APPROVED})

    assert len(kv.batches) == 1
    assert set(kv.batches[0][0]) == {claim_key(record.id), CLAIMS_LIST_KEY, user_claims_key("usr_1")}


@pytest.mark.parametrize("field", ["id", "claim_number", "claimNumber", "submitted_at", "audit_trail"])
def test_update_rejects_immutable_fields(store, field):
    record = store.create(make_draft())
    with pytest.raises(ImmutableFieldError):
        store.update(record.id, {field: "changed"})
    assert store.get(record.id) == record


def test_update_rejects_unknown_fields(store):
    record = store.create(make_draft())
    with pytest.raises(ClaimStoreError):
        store.update(record.id, {"colour": "blue"})


def test_update_rejects_invalid_values(store):
    record = store.create(make_draft())
    with pytest.raises(ClaimStoreError):
        store.update(record.id, {"risk_score": 150})


def test_update_missing_claim_returns_none(store):
    assert store.update("clm_missing", {"status": ClaimStatus.APPROVED}) is None


def test_update_with_audit_event_writes_one_batch(store, kv, clock):
    record = store.create(make_draft(), user_id="usr_1")
    kv.batches.clear()
    clock.advance(60)

    updated = store.update(record.id, {"status": ClaimStatus.APPROVED}, audit_event="Approved", actor="Sarah Nel")

    assert len(kv.batches) == 1
    assert updated.status == ClaimStatus.APPROVED
    assert [e.event for e in updated.audit_trail] == ["Approved", record.audit_trail[0].event]
    assert updated.audit_trail[0].actor == "Sarah Nel"
    assert updated.audit_trail[0].timestamp == clock.now
    assert store.get(record.id) == updated


def test_audit_event_on_missing_claim_writes_nothing(store, kv):
    kv.batches.clear()
    assert store.update("clm_missing", {"status": ClaimStatus.APPROVED}, audit_event="Approved") is None
    assert kv.batches == []


@pytest.mark.parametrize("amount", [float("inf"), float("-inf"), float("nan"), "Infinity"])
def test_update_rejects_non_finite_amount(store, amount):
    record = store.create(make_draft())
    with pytest.raises(ClaimStoreError):
        store.update(record.id, {"amount_claimed": amount})
    assert store.get(record.id) == record


def test_create_rejects_non_finite_amount(store):
    with pytest.raises(ValidationError):
        store.create(make_draft(amount_claimed=float("inf")))
    assert store.list_all() == []


def test_add_audit_entry_prepends(store, clock):
    record = store.create(make_draft())
    clock.advance(5)

    assert store.add_audit_entry(record.id, "Assigned to adjuster", "Sarah Johnson") is True

    trail = store.get(record.id).audit_trail
    assert len(trail) == 2
    assert trail[0].event == "Assigned to adjuster"
    assert trail[0].actor == "Sarah Johnson"
    assert trail[1].event == "Claim submitted by John Smith"


def test_add_audit_entry_missing_claim(store):
    assert store.add_audit_entry("clm_missing", "event", "user") is False


# ============================================================================
# Listing
# ============================================================================


def test_list_all_length_equals_number_of_creates(store):
    for i in range(4):
        store.create(make_draft(description=f"claim {i}"))
    assert len(store.list_all()) == 4


def test_list_all_is_newest_first(store, clock):
    first = store.create(make_draft())
    clock.advance(1)
    second = store.create(make_draft())
    assert [c.id for c in store.list_all()] == [second.id, first.id]


def test_list_all_empty(store):
    assert store.list_all() == []


def test_list_for_user_reads_per_user_index(store):
    mine = store.create(make_draft(policyholder_name="Thabo Mthembu"), user_id="usr_1")
    store.create(make_draft(policyholder_name="Thabo Nkosi"), user_id="usr_2")

    user = User(id="usr_1", name="Thabo Mthembu", role=UserRole.POLICYHOLDER)
    assert [c.id for c in store.list_for_user(user)] == [mine.id]


def test_list_for_user_without_index_matches_first_name(store):
    john = store.create(make_draft(policyholder_name="John Smith"))
    other_john = store.create(make_draft(policyholder_name="John Doe"))
    store.create(make_draft(policyholder_name="Jane Doe"))

    user = User(id="usr_9", name="John Smith", role=UserRole.POLICYHOLDER)
    matched = {c.id for c in store.list_for_user(user)}

    # The name heuristic over-matches: every "John" claim is returned
    assert matched == {john.id, other_john.id}


def test_list_for_user_heuristic_is_case_insensitive(store):
    record = store.create(make_draft(policyholder_name="JANE Doe"))
    user = User(id="usr_9", name="jane d.", role=UserRole.POLICYHOLDER)
    assert [c.id for c in store.list_for_user(user)] == [record.id]


def test_list_for_user_without_id(store):
    store.create(make_draft())
    assert store.list_for_user(User(id="", name="John Smith", role=UserRole.POLICYHOLDER)) == []


def test_insurer_view_appends_untaken_seed_claims(store):
    record = store.create(make_draft())
    view = store.insurer_view()

    assert view[0].id == record.id
    assert [c.claim_number for c in view[1:]] == ["DET-001", "DET-002", "DET-003"]


def test_insurer_view_skips_seed_with_taken_claim_number(kv, clock):
    seeds = []
    store = ClaimStore(kv, clock=clock, seed_claims=lambda: list(seeds))
    record = store.create(make_draft())
    seeds.append(record.model_copy(update={"id": "clm_seed"}))

    assert [c.id for c in store.insurer_view()] == [record.id]


def test_insurer_view_without_seeds(kv):
    store = ClaimStore(kv, seed_claims=None)
    assert store.insurer_view() == []


def test_stats(store):
    store.create(make_draft(amount_claimed=1000, risk_score=20))
    store.create(make_draft(amount_claimed=3000, risk_score=80))

    stats = store.stats()
    assert stats.total == 2
    assert stats.by_status["Submitted"] == 1
    assert stats.by_status["In Review"] == 1
    assert stats.total_amount == pytest.approx(4000)
    assert stats.avg_risk_score == pytest.approx(50)


def test_stats_empty(store):
    stats = store.stats()
    assert stats.total == 0
    assert stats.avg_risk_score == 0.0


def test_clear_all_removes_records_and_indices(store, kv):
    store.create(make_draft(), user_id="usr_1")
    store.create(make_draft(), user_id="usr_2")
    kv.set("detachd_token", "keep-me")

    store.clear_all()

    assert store.list_all() == []
    assert kv.keys("claim_") == []
    assert kv.keys("user_claims_") == []
    assert kv.get("detachd_token") == "keep-me"


# ============================================================================
# Failure Modes
# ============================================================================


def test_corrupt_record_raises(store, kv):
    kv.set(claim_key("clm_bad"), "{not json")
    with pytest.raises(CorruptRecordError) as exc_info:
        store.get("clm_bad")
    assert exc_info.value.key == "claim_clm_bad"


def test_corrupt_list_raises(store, kv):
    kv.set(CLAIMS_LIST_KEY, '{"not": "a list"}')
    with pytest.raises(CorruptRecordError):
        store.list_all()


def test_reads_degrade_when_storage_unavailable():
    store = ClaimStore(UnavailableKeyValueStore())
    user = User(id="usr_1", name="John Smith", role=UserRole.POLICYHOLDER)

    assert store.get("clm_1") is None
    assert store.list_all() == []
    assert store.list_for_user(user) == []
    assert store.update("clm_1", {"status": ClaimStatus.APPROVED}) is None
    assert store.add_audit_entry("clm_1", "event", "user") is False


def test_create_raises_when_storage_unavailable():
    store = ClaimStore(UnavailableKeyValueStore())
    with pytest.raises(StorageUnavailableError):
        store.create(make_draft())


def test_sqlite_backed_store_round_trip(tmp_path, clock):
    path = tmp_path / "portal.db"
    record = ClaimStore(SQLiteKeyValueStore(path), clock=clock).create(make_draft(), user_id="usr_1")
    clock.advance(1)

    reopened = ClaimStore(SQLiteKeyValueStore(path), clock=clock)
    updated = reopened.update(record.id, {"status": ClaimStatus.APPROVED})

    assert reopened.get(record.id) == updated
    assert reopened.list_all()[0].status == ClaimStatus.APPROVED
