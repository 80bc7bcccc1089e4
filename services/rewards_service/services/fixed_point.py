"""Fixed-point integer helpers for credit and token amounts.

All money is held as Python ints in micro-units:

    1 credit = 1_000 micro      (CREDIT_MICRO)
    1 token  = 1_000_000 micro  (TOKEN_MICRO)

Floats are rejected everywhere; rounding is always floor and is explicit at
the call site.
"""

from __future__ import annotations

from typing import Mapping, TypeVar

from services.rewards_service.errors import InvalidAmount

CREDIT_MICRO: int = 1_000
TOKEN_MICRO: int = 1_000_000
BPS_BASE: int = 10_000

K = TypeVar("K")


def _require_int(value: object, name: str = "amount") -> int:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")
    return value


def credits_to_micro(credits: int) -> int:
    return _require_int(credits, "credits") * CREDIT_MICRO


def tokens_to_micro(tokens: int) -> int:
    return _require_int(tokens, "tokens") * TOKEN_MICRO


def mul_bps(amount: int, bps: int) -> int:
    """``amount * bps / 10000``, floored."""
    _require_int(amount)
    _require_int(bps, "bps")
    if not 0 <= bps <= BPS_BASE:
        raise InvalidAmount(f"bps out of range: {bps}")
    return amount * bps // BPS_BASE


def format_micro(amount: int, unit: int = CREDIT_MICRO) -> str:
    """Exact decimal rendering, e.g. ``format_micro(16_500) == "16.5"``."""
    _require_int(amount)
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), unit)
    if not frac:
        return f"{sign}{whole}"
    width = len(str(unit)) - 1
    return f"{sign}{whole}.{str(frac).rjust(width, '0').rstrip('0')}"


def pro_rata(pool: int, weights: Mapping[K, int]) -> dict[K, int]:
    """Split ``pool`` proportionally to ``weights`` with floor rounding.

    Keys with non-positive weight get nothing. The sum of the result never
    exceeds ``pool``; the floor dust stays unallocated.
    """
    _require_int(pool, "pool")
    total = sum(w for w in weights.values() if w > 0)
    if pool <= 0 or total <= 0:
        return {}
    return {key: pool * w // total for key, w in weights.items() if w > 0}
