"""
Record codec: key naming and JSON (de)serialisation of claim records.
"""

import json
from typing import List

from pydantic import ValidationError

from ..claims.schema import ClaimRecord
from ..utils.errors import CorruptRecordError

CLAIMS_LIST_KEY = "detachd_claims"
CLAIM_KEY_PREFIX = "claim_"
USER_CLAIMS_KEY_PREFIX = "user_claims_"
TOKEN_KEY = "detachd_token"
USER_KEY = "detachd_user"
RATE_LIMIT_KEY_PREFIX = "rate_limit_"


def claim_key(claim_id: str) -> str:
    return f"{CLAIM_KEY_PREFIX}{claim_id}"


def user_claims_key(user_id: str) -> str:
    return f"{USER_CLAIMS_KEY_PREFIX}{user_id}"


def rate_limit_key(key: str) -> str:
    return f"{RATE_LIMIT_KEY_PREFIX}{key}"


def encode_record(record: ClaimRecord) -> str:
    """Serialise one record in the persisted camelCase layout."""
    return json.dumps(record.to_storage())


def encode_records(records: List[ClaimRecord]) -> str:
    """Serialise a list index."""
    return json.dumps([record.to_storage() for record in records])


def decode_record(raw: str, key: str = "<record>") -> ClaimRecord:
    """
    Parse one stored record.

    Raises:
        CorruptRecordError: the value is not JSON or does not match the schema
    """
    try:
        return ClaimRecord.model_validate_json(raw)
    except ValidationError as e:
        raise CorruptRecordError(key, str(e)) from e


def decode_records(raw: str, key: str = "<index>") -> List[ClaimRecord]:
    """Parse a list index (global or per-user)."""
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptRecordError(key, str(e)) from e
    if not isinstance(items, list):
        raise CorruptRecordError(key, f"expected a JSON array, got {type(items).__name__}")
    try:
        return [ClaimRecord.model_validate(item) for item in items]
    except ValidationError as e:
        raise CorruptRecordError(key, str(e)) from e
