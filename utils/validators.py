"""
Input validation helper functions.
Provides validation for common input types.
"""

import re


def validate_license_plate(plate: str) -> bool:
    """
    Validate vehicle license plate format.
    Accepts letters (including Hangul), digits, spaces and hyphens.

    Args:
        plate: License plate to validate

    Returns:
        True if valid plate format
    """
    if not plate or not plate.strip():
        return False

    return bool(re.match(r'^[0-9A-Za-z가-힣][0-9A-Za-z가-힣 \-]{1,19}$', plate.strip()))


def validate_positive_int(value, minimum: int = 1) -> bool:
    """
    Validate a whole number >= minimum. Booleans and floats with a
    fractional part are rejected.

    Args:
        value: Value to check
        minimum: Smallest accepted value

    Returns:
        True if valid
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        if not value.is_integer():
            return False
        value = int(value)
    if isinstance(value, str):
        if not value.strip().isdigit():
            return False
        value = int(value.strip())
    if not isinstance(value, int):
        return False
    return value >= minimum


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    # Strip whitespace
    sanitized = str(text).strip()

    # Limit length if specified
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
