"""
Utilities Module

This module provides money and identifier helpers shared by the roomie
expense splitter.

Features:
    - Currency rounding to cents (half away from zero)
    - Display formatting of money amounts
    - Parsing of free-text amounts using either "," or "." as decimal separator
    - Random identifiers and invite codes

Functions:
    round_money: Round a float amount to 2 decimal places.
    format_money: Format an amount with its currency label.
    parse_amount: Parse a free-text amount into a float.
    create_id: Generate a unique identifier for records.
    create_invite_code: Generate an upper-case group invite code.
    now_ms: Current time as epoch milliseconds.
    validate_non_empty_string: Validate a required string field.
"""

import math
import re
import secrets
import sys
import time


EPSILON = sys.float_info.epsilon
# Amounts of this many cents or more are returned as they are; rounding
# them to the cent would no longer be stable
MAX_EXACT_CENTS = 2 ** 48

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def round_money(value: float) -> float:
    """
    Round an amount to 2 decimal places.

    Computes floor((|value| + epsilon) * 100 + 0.5) / 100 and restores the
    sign, so halves round away from zero. The epsilon pushes values such as
    0.145 and 1.005, stored just below the half, over it.

    Args:
        value: Amount to round.

    Returns:
        float: Rounded amount. Non-finite values and amounts of
        MAX_EXACT_CENTS or more are returned unchanged, and negative zero
        is normalized to 0.0.
    """
    if not math.isfinite(value):
        return value
    cents = (abs(value) + EPSILON) * 100
    if cents >= MAX_EXACT_CENTS:
        return value + 0.0
    return math.copysign(math.floor(cents + 0.5) / 100, value) + 0.0


def format_money(amount: float, currency: str) -> str:
    """
    Format a monetary amount with its currency label.

    Args:
        amount: The amount to format.
        currency: Currency label (e.g. "USD", "CLP").

    Returns:
        str: Formatted string like "USD 12.50".
    """
    return f"{currency} {amount:.2f}"


def parse_amount(value: str) -> float:
    """
    Parse a free-text amount typed by a user.

    Both "," and "." are accepted as decimal or grouping separators:
        - when both appear, the last one is the decimal separator
        - a single separator followed by 1-2 digits is decimal ("12,5")
        - a single separator followed by 3+ digits is grouping ("1.250")
        - a separator that appears more than once is grouping ("1.250.000")

    Args:
        value: Raw user input.

    Returns:
        float: Parsed amount, or 0.0 if the input cannot be parsed.
    """
    cleaned = re.sub(r"[^0-9.,-]", "", value or "")
    has_comma = "," in cleaned
    has_dot = "." in cleaned
    normalized = cleaned

    if has_comma and has_dot:
        decimal_index = max(cleaned.rfind(","), cleaned.rfind("."))
        integer_part = re.sub(r"[.,]", "", cleaned[:decimal_index])
        normalized = f"{integer_part}.{cleaned[decimal_index + 1:]}"
    elif has_comma or has_dot:
        parts = cleaned.split("," if has_comma else ".")
        if len(parts) > 2:
            normalized = "".join(parts)
        else:
            int_part, dec_part = parts
            if 0 < len(dec_part) <= 2:
                normalized = f"{int_part}.{dec_part}"
            else:
                normalized = f"{int_part}{dec_part}"

    try:
        parsed = float(normalized)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def create_id() -> str:
    """
    Generate a unique identifier.

    Returns:
        str: Base-36 timestamp and random suffix, like "lx3k2a1b-9f0c2d".
    """
    return f"{_to_base36(now_ms())}-{_random_base36(6)}"


def create_invite_code() -> str:
    """
    Generate an invite code for a group.

    Returns:
        str: Upper-case base-36 timestamp followed by 6 random characters.
    """
    return f"{_to_base36(now_ms())}{_random_base36(6)}".upper()


def validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Args:
        value: String to validate.
        field_name: Name of the field for error messages.

    Returns:
        bool: True if valid.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True
