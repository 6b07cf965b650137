import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def round_coins(value: float) -> int:
    """Round a coin amount half-up to a whole coin.

    Python's round() uses banker's rounding (round(2.5) == 2); coin amounts
    shown to players always round .5 upwards.
    """
    return int(math.floor(value + 0.5))


def camel_alias(name: str) -> str:
    """snake_case attribute -> legacy camelCase storage key (set1_score -> set1Score)."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)
