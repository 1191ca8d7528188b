# app/core/helpers.py

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


def utcnow() -> datetime:
    # Timezone-naive UTC, the format every table stores
    return datetime.now(timezone.utc).replace(tzinfo=None)


def round_half_up(value) -> int:
    """Round to the nearest integer, .5 always going up (66.5 -> 67)."""
    if not isinstance(value, Decimal):
        # str() keeps the shortest repr so 57.5 stays 57.5, not 57.4999...
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part: int, total: int) -> int:
    """part/total*100 rounded half-up in exact arithmetic; a zero total is 0%."""
    if not total:
        return 0
    return round_half_up(Decimal(part) * 100 / Decimal(total))
