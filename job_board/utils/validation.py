"""Registration input checks applied at the CLI boundary."""

import re
from dataclasses import dataclass

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")

MIN_PASSWORD_LENGTH = 6
MIN_PHONE_DIGITS = 10


@dataclass
class ValidationResult:
    is_valid: bool
    error_message: str = ""


def validate_username(username: str) -> ValidationResult:
    """Letters, digits and underscores; must start with a letter. A leading '@' is ignored."""
    if not username:
        return ValidationResult(False, "Username must not be empty")

    clean = username.removeprefix("@")

    if not USERNAME_PATTERN.match(clean):
        return ValidationResult(False, "Username may only contain letters, digits and underscores")

    if clean.startswith("_") or clean[0].isdigit():
        return ValidationResult(False, "Username must not start with an underscore or a digit")

    if not any(ch.isalpha() for ch in clean):
        return ValidationResult(False, "Username must contain at least one letter")

    return ValidationResult(True)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_phone(phone: str) -> bool:
    digits = [ch for ch in phone if ch.isdigit()]
    return len(digits) >= MIN_PHONE_DIGITS


def is_valid_password(password: str) -> bool:
    return len(password) >= MIN_PASSWORD_LENGTH


def validate_registration(email: str, username: str, phone: str, password: str) -> list[str]:
    """Return a list of problems with registration input (empty = OK)."""
    errors = []
    if not is_valid_email(email):
        errors.append("Invalid email address")
    result = validate_username(username)
    if not result.is_valid:
        errors.append(result.error_message)
    if not is_valid_phone(phone):
        errors.append(f"Phone number must contain at least {MIN_PHONE_DIGITS} digits")
    if not is_valid_password(password):
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return errors
