"""
Input Sanitization Module

Normalizes loosely-typed form/JSON input (strings, numbers, booleans,
ids) into clean Python values before validation.
"""

import re

from constants import TRUE_VALUES, FALSE_VALUES


def clean_text(value, max_length=None):
    """
    Coerce a value to a stripped string.

    Args:
        value: Any input value (None becomes '')
        max_length: Optional maximum length; longer text is truncated

    Returns:
        Stripped string with control characters removed
    """
    if value is None:
        return ''

    if not isinstance(value, str):
        value = str(value)

    # Remove control characters but keep newlines and tabs
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', value).strip()

    if max_length is not None and len(text) > max_length:
        text = text[:max_length].rstrip()

    return text


def clean_optional_text(value, max_length=None):
    """Like clean_text, but returns None for empty input."""
    return clean_text(value, max_length) or None


def to_slug(value):
    """
    Build a URL slug from free text.

    "Mum's Apple Pie!" -> "mums-apple-pie"
    """
    text = clean_text(value).lower()
    text = re.sub(r'["\']', '', text)
    text = re.sub(r'[^a-z0-9]+', '-', text)
    return text.strip('-')


def parse_number(value):
    """Parse a number, returning None for empty or non-numeric input."""
    if value is None or value == '' or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float('inf'), float('-inf')):
        return None
    return int(number) if number.is_integer() else number


def parse_bool(value, default=False):
    """Parse true/1/on and false/0/off (strings, ints or bools)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return default


def parse_id(value):
    """Parse a positive integer id, returning None when invalid."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def escape_like(value):
    """Escape LIKE wildcards so user input matches literally (escape char: backslash)."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
