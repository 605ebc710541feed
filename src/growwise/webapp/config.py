"""Configuration constants for the GrowWise web surface."""
from __future__ import annotations

import os

from dotenv import load_dotenv

from ..models import DEFAULT_ACTIVITY_COINS, DEFAULT_CALENDAR_COINS, REFERRAL_BONUS_COINS

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


SQLITE_FILE_NAME = os.environ.get("GROWWISE_SQLITE", "growwise.db")
LOG_PATH = os.environ.get("GROWWISE_LOG_PATH") or None
REFERRAL_BONUS = _int_env("GROWWISE_REFERRAL_BONUS", REFERRAL_BONUS_COINS)
ACTIVITY_COINS = _int_env("GROWWISE_ACTIVITY_COINS", DEFAULT_ACTIVITY_COINS)
CALENDAR_COINS = _int_env("GROWWISE_CALENDAR_COINS", DEFAULT_CALENDAR_COINS)

__all__ = [
    "SQLITE_FILE_NAME",
    "LOG_PATH",
    "REFERRAL_BONUS",
    "ACTIVITY_COINS",
    "CALENDAR_COINS",
]
