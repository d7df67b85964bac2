"""Shared parsing helpers for configuration and CLI value normalization."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation


_TRUE_BOOLEAN_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_BOOLEAN_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_BOOLEAN_TOKENS:
        return True
    if token in _FALSE_BOOLEAN_TOKENS:
        return False
    return None


def parse_optional_decimal(value: object) -> Decimal | None:
    """Parse a decimal amount, returning `None` for blank or invalid tokens.

    Floats are routed through `str` so `0.015` stays `Decimal("0.015")`.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    normalized = normalize_optional_string(value)
    if normalized is None:
        return None
    try:
        parsed = Decimal(normalized)
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_delay_sequence(value: object) -> tuple[float, ...] | None:
    """Parse a comma-separated or list-like sequence of non-negative delays."""

    if isinstance(value, (list, tuple)):
        raw_items = [str(item) for item in value]
    else:
        normalized = normalize_optional_string(value)
        if normalized is None:
            return None
        raw_items = normalized.split(",")

    delays: list[float] = []
    for raw_item in raw_items:
        token = raw_item.strip()
        if not token:
            continue
        try:
            delay = float(token)
        except ValueError:
            return None
        if delay < 0:
            return None
        delays.append(delay)
    return tuple(delays)
