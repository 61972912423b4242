"""
Email address validation.

Two levels:
- Loose: syntax check via email-validator (the library behind pydantic's EmailStr).
- Strict: loose, plus a shape the ticketing system is known to accept:
  localpart@domain.tld with an alphabetic TLD of two or more letters and a
  local part without leading, trailing or consecutive dots.
"""

import re

from email_validator import EmailNotValidError, validate_email

_STRICT_SHAPE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_email(email: str) -> bool:
    """Ordinary syntax check, no DNS lookups."""
    if not email:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_strictly_valid_email(email: str) -> bool:
    """
    Strict check for addresses that will be handed to the ticketing system.

    Examples:
        a@b.com     -> True
        a..b@c.com  -> False (consecutive dots)
        .a@b.com    -> False (leading dot)
        a.@b.com    -> False (trailing dot)
        a@b         -> False (no TLD)
    """
    if not _STRICT_SHAPE.match(email):
        return False

    local, _, domain = email.partition("@")
    if not local or not domain:
        return False
    if ".." in local or local.startswith(".") or local.endswith("."):
        return False

    return is_valid_email(email)


def emails_match(first: str, second: str) -> bool:
    """Case-insensitive address equality."""
    return first.casefold() == second.casefold()


def mask_email(email: str | None) -> str:
    """
    Render an address for logs: first character of the local part and the domain.

    alice@example.org -> a***@example.org
    """
    if not email:
        return ""
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"
