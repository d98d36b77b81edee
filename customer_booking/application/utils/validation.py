from __future__ import annotations

import re
from enum import Enum

from customer_booking.application.exceptions import ValidationError

INVALID_EMAIL_MESSAGE = "Please enter a valid email address"

# local-part, then two or more lowercase labels. Repeated dots between labels
# are accepted on purpose; this is a product rule, not RFC validation.
STRICT_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._-]+@[a-z]+(?:\.+[a-z]+)+")


class EmailRule(str, Enum):
    STRICT = "strict"  # 6-box OTP flow
    LENIENT = "lenient"  # legacy generate/verify flow: non-blank and contains "@"


def is_valid_email(email: str, rule: EmailRule = EmailRule.STRICT) -> bool:
    if rule is EmailRule.LENIENT:
        value = email.strip()
        return bool(value) and "@" in value
    return STRICT_EMAIL_PATTERN.fullmatch(email) is not None


def require_valid_email(email: str, rule: EmailRule = EmailRule.STRICT) -> str:
    if not is_valid_email(email, rule):
        raise ValidationError(INVALID_EMAIL_MESSAGE)
    return email.strip() if rule is EmailRule.LENIENT else email


def normalize_digit(value: str) -> str | None:
    """
    Reduce keypad input to what one OTP box may hold.

    Returns "" for empty input, the first character if it is a digit, and
    None when the input must be ignored.
    """
    if not value:
        return ""
    first = value[0]
    if first.isdigit():
        return first
    return None
