"""Minor-unit arithmetic for order totals.

Amounts are stored and summed as int minor units (cents). The only place a
decimal major-unit value enters the system is `to_minor_units`, which applies one
rule to every input type: parse as Decimal, scale by 100, round half-up.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.so_common.errors import InvalidAmountError, InvalidCurrencyError

MINOR_UNITS_PER_MAJOR = 100

# orders.price is NUMERIC(10, 2): 99,999,999.99
MAX_MINOR_UNITS = 10**10 - 1

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


def to_minor_units(value: object) -> int:
    """Convert a major-unit price ("12.50", 12.5, 12, Decimal) to int minor units.

    "12.50" -> 1250, 12 -> 1200, "0.005" -> 1 (half-up).
    Anything whose magnitude exceeds MAX_MINOR_UNITS raises InvalidAmountError.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value)
    if isinstance(value, str):
        value = value.strip()
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(value) from exc
    if not amount.is_finite():
        raise InvalidAmountError(value)
    try:
        scaled = (amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidAmountError(value) from exc
    return check_minor_units(int(scaled), value)


def check_minor_units(minor: int, value: object = None) -> int:
    """Return `minor` unchanged, or raise InvalidAmountError when it cannot be stored."""
    if abs(minor) > MAX_MINOR_UNITS:
        raise InvalidAmountError(minor_to_decimal_str(minor) if value is None else value)
    return minor


def minor_to_decimal_str(minor: int) -> str:
    """Format minor units as a plain two-digit decimal: 2500 -> '25.00', -5 -> '-0.05'."""
    if minor < 0:
        return f"-{-minor // 100}.{-minor % 100:02d}"
    return f"{minor // 100}.{minor % 100:02d}"


def percentage_of(amount: int, percentage: Decimal) -> int:
    """Return `amount * percentage / 100` in minor units, rounded half-up.

    10000 cents at 21% -> 2100; 999 cents at 21% -> 210 (209.79).
    """
    try:
        result = (Decimal(amount) * percentage / 100).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    except InvalidOperation as exc:
        raise InvalidAmountError(percentage) from exc
    return int(result)


def normalize_currency(code: object) -> str:
    """Validate an ISO 4217 alpha code and return it upper-cased."""
    if not isinstance(code, str) or not _CURRENCY_RE.match(code.strip()):
        raise InvalidCurrencyError(code)
    return code.strip().upper()


def parse_rate(value: object) -> Decimal:
    """Parse a tax percentage (21, "21", "9.5") into a Decimal."""
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value)
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(value) from exc
    if not rate.is_finite():
        raise InvalidAmountError(value)
    return rate


def format_rate(rate: Decimal) -> str:
    """Canonical string key for a tax rate: Decimal('21.00') -> '21', Decimal('9.50') -> '9.5'."""
    normalized = rate.normalize()
    # normalize() turns 20 into 2E+1
    return format(normalized, "f")
