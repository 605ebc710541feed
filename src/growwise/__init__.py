"""GrowWise package: coin ledger, milestones and daily earning caps for students."""

from .coins import format_coins, to_coins
from .daily_cap import DailyEarningCap, calendar_day
from .exceptions import EntryNotFoundError, GrowWiseError, StoreUnavailableError, ValidationError
from .ledger import InMemoryLedgerStore, Ledger, LedgerStore
from .milestones import MilestoneTracker, milestone_status
from .models import (
    DEFAULT_GAMES,
    DEFAULT_MILESTONES,
    Activity,
    ActivityStatus,
    CalendarEvent,
    DailyCapRule,
    Denied,
    EarnResult,
    EntryFilter,
    FamilyReport,
    Game,
    GameOutcome,
    Granted,
    LedgerEntry,
    LedgerEntryInput,
    MilestoneDefinition,
    MilestoneStatus,
    Referral,
    Reward,
    SourceKind,
    SubjectReport,
    validate_milestones,
)
from .ops import StructuredLogger
from .service import GrowWise, coins_for_score

__all__ = [
    "Activity",
    "ActivityStatus",
    "CalendarEvent",
    "DEFAULT_GAMES",
    "DEFAULT_MILESTONES",
    "DailyCapRule",
    "DailyEarningCap",
    "Denied",
    "EarnResult",
    "EntryFilter",
    "EntryNotFoundError",
    "FamilyReport",
    "Game",
    "GameOutcome",
    "Granted",
    "GrowWise",
    "GrowWiseError",
    "InMemoryLedgerStore",
    "Ledger",
    "LedgerEntry",
    "LedgerEntryInput",
    "LedgerStore",
    "MilestoneDefinition",
    "MilestoneStatus",
    "MilestoneTracker",
    "Referral",
    "Reward",
    "SourceKind",
    "StoreUnavailableError",
    "StructuredLogger",
    "SubjectReport",
    "ValidationError",
    "calendar_day",
    "coins_for_score",
    "format_coins",
    "milestone_status",
    "to_coins",
    "validate_milestones",
]
