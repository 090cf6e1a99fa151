"""
Input validation and sanitisation for portal forms.

Validators return a ValidationResult mapping field names to the first
message for that field. Nothing here raises; callers decide what an
invalid result means.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field


EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
# South African numbers: +27 or 0, then nine digits not starting with 0
PHONE_PATTERN = re.compile(r"^(\+27|0)[1-9][0-9]{8}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
SPECIAL_CHARACTERS = set("!@#$%^&*()_+-=[]{};':\"\\|,.<>/?")

MIN_PASSWORD_LENGTH = 8
MIN_LOGIN_PASSWORD_LENGTH = 6
MIN_POLICY_NUMBER_LENGTH = 5
MIN_DESCRIPTION_LENGTH = 20
MIN_LOCATION_LENGTH = 5


class ValidationResult(BaseModel):
    """Outcome of validating one form."""
    is_valid: bool = True
    errors: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_errors(cls, errors: Dict[str, str]) -> "ValidationResult":
        return cls(is_valid=not errors, errors=errors)


# =============================================================================
# Field Validators
# =============================================================================


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_phone_number(phone: str) -> bool:
    """Validate a South African phone number; whitespace is ignored."""
    return bool(PHONE_PATTERN.match(re.sub(r"\s+", "", phone)))


def validate_password(password: str) -> List[str]:
    """
    Check password strength.

    Returns:
        List of failed requirements, empty when the password is acceptable
    """
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c.islower() for c in password):
        errors.append("Password must contain at least one lowercase letter")
    if not any(c.isupper() for c in password):
        errors.append("Password must contain at least one uppercase letter")
    if not any(c.isdigit() for c in password):
        errors.append("Password must contain at least one number")
    if not any(c in SPECIAL_CHARACTERS for c in password):
        errors.append("Password must contain at least one special character")
    return errors


def sanitize_html(value: Any) -> str:
    """Escape markup characters and trim. Non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return (
        value.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
        .replace("/", "&#x2F;")
        .strip()
    )


def is_valid_name(name: Optional[str]) -> bool:
    """Letters, spaces, hyphens and apostrophes; 2 to 100 characters."""
    if not name:
        return False
    name = name.strip()
    if len(name) < 2 or len(name) > 100:
        return False
    return bool(NAME_PATTERN.match(name))


def _parse_date(value: str) -> Optional[date]:
    try:
        return datetime.fromisoformat(value.strip()).date()
    except ValueError:
        return None


def _parse_amount(value: Any) -> Optional[float]:
    """Finite amount, or None. Rejects "inf" and "nan", which float() accepts."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if math.isfinite(amount) else None


# =============================================================================
# Form Validators
# =============================================================================


def validate_login_form(email: str, password: str) -> ValidationResult:
    errors = {}

    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Please enter a valid email address"

    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_LOGIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_LOGIN_PASSWORD_LENGTH} characters"

    return ValidationResult.from_errors(errors)


def validate_registration_form(form_data: Mapping[str, Any]) -> ValidationResult:
    """
    Validate a registration form.

    Args:
        form_data: name, email, password, confirm_password and optional phone

    Returns:
        ValidationResult with at most one message per field
    """
    errors = {}
    name = form_data.get("name") or ""
    email = form_data.get("email") or ""
    password = form_data.get("password") or ""
    confirm = form_data.get("confirm_password") or ""
    phone = form_data.get("phone")

    if not name:
        errors["name"] = "Full name is required"
    elif not is_valid_name(name):
        errors["name"] = "Please enter a valid name"

    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Please enter a valid email address"

    if not password:
        errors["password"] = "Password is required"
    else:
        problems = validate_password(password)
        if problems:
            errors["password"] = problems[0]

    if not confirm:
        errors["confirm_password"] = "Please confirm your password"
    elif password != confirm:
        errors["confirm_password"] = "Passwords do not match"

    if phone and not is_valid_phone_number(phone):
        errors["phone"] = "Please enter a valid South African phone number"

    return ValidationResult.from_errors(errors)


def validate_claim_form(form_data: Mapping[str, Any], today: Optional[date] = None) -> ValidationResult:
    """
    Validate a new-claim form.

    Args:
        form_data: full_name, policy_number, claim_type, date_of_loss,
            incident_description, estimated_amount and location
        today: Reference date for the future-date check (defaults to today)

    Returns:
        ValidationResult keyed by the offending form field
    """
    today = today or date.today()
    errors = {}

    if not is_valid_name(form_data.get("full_name")):
        errors["full_name"] = "Please enter a valid full name"

    policy_number = form_data.get("policy_number") or ""
    if len(policy_number.strip()) < MIN_POLICY_NUMBER_LENGTH:
        errors["policy_number"] = f"Policy number must be at least {MIN_POLICY_NUMBER_LENGTH} characters"

    if not form_data.get("claim_type"):
        errors["claim_type"] = "Please select a claim type"

    date_of_loss = form_data.get("date_of_loss") or ""
    if not date_of_loss:
        errors["date_of_loss"] = "Date of loss is required"
    else:
        loss_date = _parse_date(date_of_loss)
        if loss_date is None:
            errors["date_of_loss"] = "Please enter a valid date"
        elif loss_date > today:
            errors["date_of_loss"] = "Date of loss cannot be in the future"

    description = form_data.get("incident_description") or ""
    if len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        errors["incident_description"] = (
            f"Incident description must be at least {MIN_DESCRIPTION_LENGTH} characters"
        )

    amount = _parse_amount(form_data.get("estimated_amount"))
    if amount is None or not amount > 0:
        errors["estimated_amount"] = "Please enter a valid estimated amount"

    location = form_data.get("location") or ""
    if len(location.strip()) < MIN_LOCATION_LENGTH:
        errors["location"] = "Please provide a detailed location"

    return ValidationResult.from_errors(errors)


def sanitize_form_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``data`` with every string value passed through sanitize_html."""
    return {
        key: sanitize_html(value) if isinstance(value, str) else value
        for key, value in data.items()
    }
