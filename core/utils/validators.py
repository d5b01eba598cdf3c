"""Validation utilities for user-supplied fields."""

import re
from typing import Optional
from email_validator import validate_email as _validate_email, EmailNotValidError


RESUME_EXTENSIONS = {"pdf", "doc", "docx"}


def validate_email(email: str) -> tuple[bool, Optional[str]]:
    """
    Validate email address format.

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, normalized lowercase email or error_message)
    """
    try:
        validation = _validate_email(email, check_deliverability=False)
        return True, validation.normalized.lower()
    except EmailNotValidError as e:
        return False, str(e)


def validate_phone(phone: str) -> tuple[bool, Optional[str]]:
    """
    Validate phone number format (basic validation).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone:
        return False, "Phone number is required"

    cleaned = re.sub(r'[\s\-\(\)\.\+]', '', phone)
    if not cleaned.isdigit():
        return False, "Phone number may only contain digits and separators"

    if len(cleaned) < 7 or len(cleaned) > 15:
        return False, "Phone number must be between 7 and 15 digits"

    return True, None


_URL_PATTERN = re.compile(
    r'^https?://'
    r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'
    r'localhost|'
    r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'
    r'(?::\d+)?'
    r'(?:/?|[/?]\S+)$',
    re.IGNORECASE,
)


def validate_url(url: str) -> tuple[bool, Optional[str]]:
    """
    Validate an http(s) URL (company websites, social links).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url:
        return False, "URL is required"
    if not _URL_PATTERN.match(url):
        return False, "Invalid URL format"
    return True, None


def validate_password_strength(password: str) -> tuple[bool, list[str]]:
    """
    Check a sign-up password.

    Returns:
        Tuple of (is_valid, list of problems)
    """
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not re.search(r'[A-Za-z]', password):
        problems.append("Password must contain a letter")
    if not re.search(r'\d', password):
        problems.append("Password must contain a digit")
    return len(problems) == 0, problems


def resume_extension(filename: str) -> Optional[str]:
    """Lowercase extension of an accepted resume file, or None."""
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[1].lower()
    return ext if ext in RESUME_EXTENSIONS else None
