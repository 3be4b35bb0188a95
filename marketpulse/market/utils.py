"""Shared market-data helpers used by every adapter and by the cache."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from marketpulse.market.errors import InvalidArgument

# Exceptions a mapper raises on a payload of the wrong shape: missing keys,
# wrong container types, non-numeric values, out-of-range epochs
MALFORMED_PAYLOAD_ERRORS: tuple[type[Exception], ...] = (
    KeyError,
    IndexError,
    TypeError,
    ValueError,
    AttributeError,
    OverflowError,
    OSError,
)


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert a JSON number or string to Decimal safely.

    For string values: Decimal(str_value) directly.
    For float values: Decimal(str(float_value)) to avoid IEEE 754
    precision issues.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(value if isinstance(value, str) else str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def optional_decimal(value: float | int | str | Decimal | None) -> Decimal | None:
    """Like to_decimal, but passes None through."""
    if value is None:
        return None
    return to_decimal(value)


def normalize_symbol(symbol: str) -> str:
    """Strip and uppercase a ticker; reject empty input."""
    if not isinstance(symbol, str):
        raise InvalidArgument(f"Symbol must be a string, got {type(symbol).__name__}")
    cleaned = symbol.strip().upper()
    if not cleaned:
        raise InvalidArgument("Symbol must not be empty")
    return cleaned


def validate_lookback(lookback_days: int) -> int:
    """Reject non-positive or non-integer lookback windows."""
    if isinstance(lookback_days, bool) or not isinstance(lookback_days, int):
        raise InvalidArgument(
            f"lookback_days must be an integer, got {lookback_days!r}"
        )
    if lookback_days < 1:
        raise InvalidArgument(f"lookback_days must be >= 1, got {lookback_days}")
    return lookback_days
