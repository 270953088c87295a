"""
Account input validators: framework-agnostic, pure functions.

The ``validate_*`` helpers raise ``ValidationError`` naming the offending
field; ``password_strength_issues`` just reports.
"""

from __future__ import annotations

import re

from errors import ValidationError

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARS = "@$!%*?&"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    """Trim and lower-case *email*; emails are unique case-insensitively."""
    return email.strip().lower()


def password_strength_issues(password: str) -> list[str]:
    """Return a list of the password rules *password* does not satisfy.

    Rules:
    - At least 8 characters
    - Contains a lowercase letter
    - Contains an uppercase letter
    - Contains a digit
    - Contains one of ``@$!%*?&``
    """
    missing: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append(f"at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[a-z]", password):
        missing.append("a lowercase letter")
    if not re.search(r"[A-Z]", password):
        missing.append("an uppercase letter")
    if not re.search(r"\d", password):
        missing.append("a number")
    if not any(ch in PASSWORD_SPECIAL_CHARS for ch in password):
        missing.append(f"a special character ({PASSWORD_SPECIAL_CHARS})")
    return missing


def validate_password(password: str, *, field: str = "password") -> None:
    missing = password_strength_issues(password)
    if missing:
        raise ValidationError(
            "Password must contain " + ", ".join(missing),
            field=field,
            details={"missing": missing},
        )


def validate_name(name: str) -> str:
    """Return the trimmed *name*, or raise if its length is out of range."""
    trimmed = name.strip()
    if not NAME_MIN_LENGTH <= len(trimmed) <= NAME_MAX_LENGTH:
        raise ValidationError(
            f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
            field="name",
        )
    return trimmed


def validate_email(email: str) -> str:
    """Return the normalized *email*, or raise if it is not an address."""
    normalized = normalize_email(email)
    if not _EMAIL_RE.match(normalized):
        raise ValidationError("Please provide a valid email address", field="email")
    return normalized


def validate_consents(privacy_consent: bool, terms_accepted: bool) -> None:
    if not privacy_consent:
        raise ValidationError("Privacy policy consent is required", field="privacy_consent")
    if not terms_accepted:
        raise ValidationError("Terms and conditions must be accepted", field="terms_accepted")
