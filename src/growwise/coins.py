"""Utilities for working with coin amounts in GrowWise."""

from __future__ import annotations

from numbers import Integral

from .exceptions import ValidationError


def to_coins(value: object) -> int:
    """Return ``value`` as a coin amount, rejecting anything but whole integers.

    Booleans and floats are refused even when they hold an integral value so a
    stray ``True`` or ``2.0`` never lands in the ledger.
    """

    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ValidationError(f"Coin amounts must be integers, got {value!r}.")
    return int(value)


def require_non_negative(amount: int, *, name: str = "amount") -> int:
    """Ensure ``amount`` is zero or greater."""

    if amount < 0:
        raise ValidationError(f"{name} must be zero or greater.")
    return amount


def format_coins(amount: int) -> str:
    """Return ``amount`` formatted for display (e.g. ``5,000 coins``)."""

    unit = "coin" if abs(amount) == 1 else "coins"
    return f"{amount:,} {unit}"
