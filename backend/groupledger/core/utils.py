"""
Utility functions for the application.
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
import secrets
import string

from groupledger.core.config import settings

ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase

CENT = Decimal("0.01")
# Largest difference between two money totals still treated as equal
MONEY_TOLERANCE = Decimal("0.01")
PERCENTAGE_TOLERANCE = Decimal("0.1")
# Largest value a Numeric(15, 2) money column holds
MAX_MONEY = Decimal("9999999999999.99")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way the database stores it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_id(length: int = None) -> str:
    """Generate a random public identifier from a 62-character alphabet."""
    length = length or settings.ID_LENGTH
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def to_money(value) -> Decimal:
    """Round a value half-up to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_money(value: Decimal) -> Decimal:
    """Truncate a positive value to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_DOWN)
