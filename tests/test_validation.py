"""
Tests for form validation and sanitisation.
"""

from datetime import date

import pytest

from src.claims.validation import (
    is_valid_email,
    is_valid_name,
    is_valid_phone_number,
    sanitize_form_data,
    sanitize_html,
    validate_claim_form,
    validate_login_form,
    validate_password,
    validate_registration_form,
)


TODAY = date(2025, 3, 1)


def valid_claim_form(**overrides) -> dict:
    data = {
        "full_name": "Thabo Mthembu",
        "policy_number": "POL-12345",
        "claim_type": "Auto Accident",
        "date_of_loss": "2025-02-20",
        "incident_description": "Rear-ended at the N1 off-ramp during peak traffic",
        "estimated_amount": "25000",
        "location": "N1 off-ramp, Cape Town",
    }
    data.update(overrides)
    return data


# ============================================================================
# Field validators
# ============================================================================


@pytest.mark.parametrize("email", ["jane@example.com", "  jane.doe+claims@detachd.systems  ", "a@b"])
def test_valid_emails(email):
    assert is_valid_email(email)


@pytest.mark.parametrize("email", ["", "jane", "jane@", "@example.com", "jane@-example.com", "ja ne@example.com"])
def test_invalid_emails(email):
    assert not is_valid_email(email)


@pytest.mark.parametrize("phone", ["0821234567", "082 123 4567", "+27821234567", "+27 82 123 4567"])
def test_valid_phone_numbers(phone):
    assert is_valid_phone_number(phone)


@pytest.mark.parametrize("phone", ["0021234567", "082123456", "+1821234567", "08212345678", "phone"])
def test_invalid_phone_numbers(phone):
    assert not is_valid_phone_number(phone)


def test_strong_password_has_no_errors():
    assert validate_password("Str0ng!Pass") == []


def test_weak_password_lists_every_failure():
    errors = validate_password("abc")
    assert errors == [
        "Password must be at least 8 characters long",
        "Password must contain at least one uppercase letter",
        "Password must contain at least one number",
        "Password must contain at least one special character",
    ]


def test_sanitize_html_escapes_markup():
    assert sanitize_html("  <script>alert('x')</script> ") == (
        "&lt;script&gt;alert(&#x27;x&#x27;)&lt;&#x2F;script&gt;"
    )


def test_sanitize_html_non_string():
    assert sanitize_html(None) == ""
    assert sanitize_html(42) == ""


@pytest.mark.parametrize("name,expected", [
    ("Thabo Mthembu", True),
    ("Mary-Jane O'Neil", True),
    ("J", False),
    ("", False),
    (None, False),
    ("R2-D2", False),
    ("x" * 101, False),
])
def test_is_valid_name(name, expected):
    assert is_valid_name(name) is expected


# ============================================================================
# Form validators
# ============================================================================


def test_login_form():
    assert validate_login_form("jane@example.com", "secret1").is_valid
    result = validate_login_form("", "123")
    assert result.errors == {
        "email": "Email is required",
        "password": "Password must be at least 6 characters",
    }


def test_registration_form_valid():
    result = validate_registration_form({
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "Str0ng!Pass",
        "confirm_password": "Str0ng!Pass",
        "phone": "082 123 4567",
    })
    assert result.is_valid
    assert result.errors == {}


def test_registration_form_reports_first_password_problem():
    result = validate_registration_form({
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "short",
        "confirm_password": "different",
        "phone": "123",
    })
    assert not result.is_valid
    assert result.errors["password"] == "Password must be at least 8 characters long"
    assert result.errors["confirm_password"] == "Passwords do not match"
    assert result.errors["phone"] == "Please enter a valid South African phone number"


def test_registration_form_missing_fields():
    result = validate_registration_form({})
    assert set(result.errors) == {"name", "email", "password", "confirm_password"}


def test_claim_form_valid():
    assert validate_claim_form(valid_claim_form(), today=TODAY).is_valid


def test_claim_form_date_of_loss_today_is_allowed():
    assert validate_claim_form(valid_claim_form(date_of_loss="2025-03-01"), today=TODAY).is_valid


@pytest.mark.parametrize("field,value,message", [
    ("full_name", "X", "Please enter a valid full name"),
    ("policy_number", "P1", "Policy number must be at least 5 characters"),
    ("claim_type", "", "Please select a claim type"),
    ("date_of_loss", "", "Date of loss is required"),
    ("date_of_loss", "2025-03-02", "Date of loss cannot be in the future"),
    ("date_of_loss", "yesterday", "Please enter a valid date"),
    ("incident_description", "Too short", "Incident description must be at least 20 characters"),
    ("estimated_amount", "0", "Please enter a valid estimated amount"),
    ("estimated_amount", "-5", "Please enter a valid estimated amount"),
    ("estimated_amount", "lots", "Please enter a valid estimated amount"),
    ("estimated_amount", "inf", "Please enter a valid estimated amount"),
    ("estimated_amount", "-inf", "Please enter a valid estimated amount"),
    ("estimated_amount", "nan", "Please enter a valid estimated amount"),
    ("estimated_amount", float("inf"), "Please enter a valid estimated amount"),
    ("location", "CPT", "Please provide a detailed location"),
])
def test_claim_form_field_errors(field, value, message):
    result = validate_claim_form(valid_claim_form(**{field: value}), today=TODAY)
    assert not result.is_valid
    assert result.errors == {field: message}


def test_claim_form_accepts_numeric_amount():
    assert validate_claim_form(valid_claim_form(estimated_amount=1250.5), today=TODAY).is_valid


def test_sanitize_form_data_only_touches_strings():
    data = {"name": " <b>Jane</b> ", "amount": 100, "tags": ["<x>"]}
    assert sanitize_form_data(data) == {
        "name": "&lt;b&gt;Jane&lt;&#x2F;b&gt;",
        "amount": 100,
        "tags": ["<x>"],
    }
