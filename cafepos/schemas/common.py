from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")
MILLI = Decimal("0.001")

Number = Union[Decimal, int, float, str]


def money(value: Number) -> Decimal:
    """Rounds a monetary amount to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def quantity(value: Number) -> Decimal:
    """Rounds a stock quantity to the stored precision (3 dp)."""
    return Decimal(str(value)).quantize(MILLI, rounding=ROUND_HALF_UP)


def name_key(name: str) -> str:
    """Normalized lookup key for case-insensitive name uniqueness."""
    return " ".join(name.split()).casefold()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
