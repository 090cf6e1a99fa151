"""
Key-value backed claim storage.

Stores each claim under ``claim_<id>`` and keeps two derived indices:
the global newest-first list under ``detachd_claims`` and optional
per-user lists under ``user_claims_<userId>``. Record and index writes for
one operation go through a single atomic batch.
"""

import logging
import random
import string
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..claims.schema import (
    IMMUTABLE_FIELDS,
    AuditEntry,
    ClaimDraft,
    ClaimRecord,
    ClaimStatus,
    User,
    priority_for_risk_score,
    status_for_risk_score,
    utcnow,
)
from ..utils.config import get_settings
from ..utils.errors import ClaimStoreError, ImmutableFieldError, StorageUnavailableError
from .codec import (
    CLAIM_KEY_PREFIX,
    CLAIMS_LIST_KEY,
    USER_CLAIMS_KEY_PREFIX,
    claim_key,
    decode_record,
    decode_records,
    encode_record,
    encode_records,
    user_claims_key,
)
from .kv import KeyValueStore, create_kv_store
from .seed import demo_claims

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ClaimStats(BaseModel):
    """Aggregate figures over every stored claim."""
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    total_amount: float = 0.0
    avg_risk_score: float = 0.0


class ClaimStore:
    """
    Storage for insurance claim records over an injected key-value medium.

    Usage:
        store = ClaimStore(MemoryKeyValueStore())

        # Create a claim
        record = store.create({"policyholder_name": "Thabo Mthembu", "claim_type": "Theft"})

        # Retrieve
        store.get(record.id)

        # Update fields (read-merge-write)
        store.update(record.id, {"status": ClaimStatus.APPROVED})

        # List all, newest first
        store.list_all()
    """

    def __init__(
        self,
        kv: KeyValueStore,
        clock: Callable[[], datetime] = utcnow,
        seed_claims: Optional[Callable[[], List[ClaimRecord]]] = demo_claims,
    ):
        """Initialize the claim store."""
        self.kv = kv
        self._clock = clock
        self._seed_claims = seed_claims or (lambda: [])

    # =========================================================================
    # Identity
    # =========================================================================

    def _generate_claim_id(self, now: datetime) -> str:
        """Generate an opaque claim ID."""
        millis = int(now.timestamp() * 1000)
        suffix = "".join(random.choices(_ID_ALPHABET, k=9))
        return f"clm_{millis}_{suffix}"

    def _generate_claim_number(self, now: datetime) -> str:
        """Generate the human-facing claim number. Uniqueness is not checked."""
        millis = str(int(now.timestamp() * 1000))
        return f"DET-{now.year}-{millis[-6:]}-{random.randint(100, 999)}"

    def _next_activity(self, previous: datetime) -> datetime:
        """Current time, nudged forward so it is strictly after ``previous``."""
        now = self._clock()
        if now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    # =========================================================================
    # Index helpers
    # =========================================================================

    def _read_list(self, key: str) -> List[ClaimRecord]:
        raw = self.kv.get(key)
        return decode_records(raw, key) if raw else []

    @staticmethod
    def _replace_in(records: List[ClaimRecord], updated: ClaimRecord) -> bool:
        for index, record in enumerate(records):
            if record.id == updated.id:
                records[index] = updated
                return True
        return False

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        claim_data: Union[ClaimDraft, Dict[str, Any]],
        user_id: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Store a new claim.

        Args:
            claim_data: ClaimDraft or dict of draft fields (snake_case or camelCase)
            user_id: Optional owner; the claim is also prepended to that user's index

        Returns:
            The stored ClaimRecord

        Raises:
            StorageUnavailableError: the medium rejected the write
        """
        draft = claim_data if isinstance(claim_data, ClaimDraft) else ClaimDraft.model_validate(claim_data)
        now = self._clock()

        fields = draft.model_dump(exclude={"status", "priority"})
        record = ClaimRecord(
            **fields,
            id=self._generate_claim_id(now),
            claim_number=self._generate_claim_number(now),
            status=draft.status or status_for_risk_score(draft.risk_score),
            priority=draft.priority or priority_for_risk_score(draft.risk_score),
            submitted_at=now,
            last_activity=now,
            audit_trail=[AuditEntry(
                timestamp=now,
                event=f"Claim submitted by {draft.policyholder_name}",
                actor=draft.policyholder_name,
            )],
        )

        sets = {claim_key(record.id): encode_record(record)}
        claims = self._read_list(CLAIMS_LIST_KEY)
        claims.insert(0, record)
        sets[CLAIMS_LIST_KEY] = encode_records(claims)
        if user_id:
            user_key = user_claims_key(user_id)
            user_claims = self._read_list(user_key)
            user_claims.insert(0, record)
            sets[user_key] = encode_records(user_claims)

        self.kv.write_batch(sets)
        logger.info(f"Stored claim {record.id} ({record.claim_number}) status={record.status.value}")
        return record

    def get(self, claim_id: str) -> Optional[ClaimRecord]:
        """
        Retrieve a claim by ID.

        Returns:
            ClaimRecord or None if not found or storage is unavailable
        """
        key = claim_key(claim_id)
        try:
            raw = self.kv.get(key)
        except StorageUnavailableError as e:
            logger.error(f"Error retrieving claim {claim_id}: {e}")
            return None
        return decode_record(raw, key) if raw else None

    def _normalise_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Accept attribute names or persisted aliases; reject unknown keys."""
        by_alias = {
            info.alias: name
            for name, info in ClaimRecord.model_fields.items()
            if info.alias
        }
        normalised = {}
        for key, value in fields.items():
            name = key if key in ClaimRecord.model_fields else by_alias.get(key)
            if name is None:
                raise ClaimStoreError(f"Unknown claim field: {key}")
            normalised[name] = value
        return normalised

    def _write_updated(self, existing: ClaimRecord, changes: Dict[str, Any]) -> ClaimRecord:
        merged = existing.model_dump()
        merged.update(changes)
        merged["last_activity"] = self._next_activity(existing.last_activity)
        try:
            updated = ClaimRecord.model_validate(merged)
        except ValidationError as e:
            raise ClaimStoreError(f"Invalid update for claim {existing.id}: {e}") from e

        sets = {claim_key(updated.id): encode_record(updated)}
        claims = self._read_list(CLAIMS_LIST_KEY)
        if self._replace_in(claims, updated):
            sets[CLAIMS_LIST_KEY] = encode_records(claims)
        for user_key in self.kv.keys(USER_CLAIMS_KEY_PREFIX):
            user_claims = self._read_list(user_key)
            if self._replace_in(user_claims, updated):
                sets[user_key] = encode_records(user_claims)

        self.kv.write_batch(sets)
        return updated

    def update(
        self,
        claim_id: str,
        fields: Dict[str, Any],
        audit_event: Optional[str] = None,
        actor: str = "",
    ) -> Optional[ClaimRecord]:
        """
        Merge ``fields`` into a stored claim (field-level last-writer-wins).

        Status is free-form: any ClaimStatus may be set at any time.

        Args:
            claim_id: Claim to update
            fields: Attribute names or persisted aliases mapped to new values
            audit_event: Optional audit entry written in the same batch as the change
            actor: Who caused ``audit_event``

        Returns:
            The updated ClaimRecord, or None if not found or storage is unavailable

        Raises:
            ImmutableFieldError: fields contain id, claim number, submission time or audit trail
            ClaimStoreError: unknown field names or values failing validation
        """
        changes = self._normalise_fields(fields)
        immutable = [name for name in changes if name in IMMUTABLE_FIELDS]
        if immutable:
            raise ImmutableFieldError(immutable)

        try:
            existing = self.get(claim_id)
            if existing is None:
                return None
            if audit_event:
                entry = AuditEntry(timestamp=self._clock(), event=audit_event, actor=actor)
                changes["audit_trail"] = [entry] + list(existing.audit_trail)
            updated = self._write_updated(existing, changes)
        except StorageUnavailableError as e:
            logger.error(f"Error updating claim {claim_id}: {e}")
            return None

        logger.info(f"Updated claim {claim_id}: {', '.join(sorted(changes)) or 'touch'}")
        return updated

    def add_audit_entry(self, claim_id: str, event: str, user: str) -> bool:
        """
        Prepend an audit entry to a claim.

        Returns:
            True if stored, False if the claim is missing or storage is unavailable
        """
        try:
            existing = self.get(claim_id)
            if existing is None:
                return False
            entry = AuditEntry(timestamp=self._clock(), event=event, actor=user)
            self._write_updated(existing, {"audit_trail": [entry] + list(existing.audit_trail)})
        except StorageUnavailableError as e:
            logger.error(f"Error adding audit entry to claim {claim_id}: {e}")
            return False
        return True

    # =========================================================================
    # Listing
    # =========================================================================

    def list_all(self) -> List[ClaimRecord]:
        """All stored claims, newest first. No pagination."""
        try:
            return self._read_list(CLAIMS_LIST_KEY)
        except StorageUnavailableError as e:
            logger.error(f"Error retrieving claims: {e}")
            return []

    @staticmethod
    def _name_matches(display_name: str, policyholder_name: str) -> bool:
        """Heuristic join: policyholder's first name occurs in the display name."""
        parts = policyholder_name.split()
        if not parts:
            return False
        return parts[0].lower() in display_name.lower()

    def list_for_user(self, user: User) -> List[ClaimRecord]:
        """
        Claims belonging to ``user``.

        Reads the per-user index when one exists. Otherwise falls back to a
        name-matching heuristic over every claim, which can both over- and
        under-match; it is not an identity join.
        """
        if not user.id:
            return []
        try:
            raw = self.kv.get(user_claims_key(user.id))
            if raw is not None:
                return decode_records(raw, user_claims_key(user.id))
            claims = self._read_list(CLAIMS_LIST_KEY)
        except StorageUnavailableError as e:
            logger.error(f"Error retrieving claims for user {user.id}: {e}")
            return []

        logger.debug(f"No claim index for user {user.id}; matching by name '{user.name}'")
        return [claim for claim in claims if self._name_matches(user.name, claim.policyholder_name)]

    def insurer_view(self) -> List[ClaimRecord]:
        """Stored claims first, then seed claims whose claim number is not taken."""
        real = self.list_all()
        taken = {claim.claim_number for claim in real}
        return real + [seed for seed in self._seed_claims() if seed.claim_number not in taken]

    def stats(self) -> ClaimStats:
        """Count claims by status and aggregate amounts and risk."""
        claims = self.list_all()
        by_status = {status.value: 0 for status in ClaimStatus}
        for claim in claims:
            by_status[claim.status.value] += 1
        return ClaimStats(
            total=len(claims),
            by_status=by_status,
            total_amount=sum(claim.amount_claimed for claim in claims),
            avg_risk_score=(
                sum(claim.risk_score for claim in claims) / len(claims) if claims else 0.0
            ),
        )

    def clear_all(self) -> None:
        """Remove every claim, list and per-user index (demo reset)."""
        keys = [CLAIMS_LIST_KEY]
        keys += self.kv.keys(CLAIM_KEY_PREFIX)
        keys += self.kv.keys(USER_CLAIMS_KEY_PREFIX)
        self.kv.write_batch({}, removes=keys)
        logger.info(f"Cleared {len(keys)} claim key(s)")


# =============================================================================
# Convenience Functions
# =============================================================================

@lru_cache
def get_claim_store() -> ClaimStore:
    """Get the default claim store (singleton) built from settings."""
    settings = get_settings()
    kv = create_kv_store(settings.storage_backend, settings.storage_path)
    return ClaimStore(kv)
