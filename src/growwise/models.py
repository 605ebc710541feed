"""Domain models used by the GrowWise package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple, Union

from .coins import require_non_negative, to_coins
from .exceptions import ValidationError

DEFAULT_ACTIVITY_COINS = 15
DEFAULT_CALENDAR_COINS = 5
REFERRAL_BONUS_COINS = 300
REFERRAL_REQUIRED_ACTIVITIES = 3
SCORE_PER_GAME_COIN = 25
MAX_GAME_COINS_PER_SESSION = 3


def local_time(moment: datetime) -> datetime:
    """Return ``moment`` as a naive local datetime.

    Aware values are converted to the local zone first, so every timestamp in
    the ledger compares against every other.
    """

    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


class SourceKind(str, Enum):
    """Enumerates the events that can move coins in or out of a ledger."""

    TASK = "task"
    CALENDAR = "calendar"
    GAME = "game"
    BONUS = "bonus"
    REFERRAL = "referral"

    @classmethod
    def parse(cls, value: Union["SourceKind", str]) -> "SourceKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            raise ValidationError(f"Unrecognised source kind: {value!r}.") from exc


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One immutable, already persisted coin-affecting event."""

    id: str
    subject_id: str
    amount: int
    source_kind: SourceKind
    description: str
    occurred_at: datetime
    source_ref: Optional[str] = None
    source_id: Optional[str] = None
    reverses: Optional[str] = None

    @property
    def day(self) -> date:
        """Local calendar day the entry counts towards."""

        return self.occurred_at.date()


@dataclass(slots=True)
class LedgerEntryInput:
    """Caller supplied data for :meth:`growwise.ledger.Ledger.append`."""

    subject_id: str
    amount: int
    source_kind: Union[SourceKind, str]
    description: str = ""
    source_ref: Optional[str] = None
    source_id: Optional[str] = None
    id: Optional[str] = None
    occurred_at: Optional[datetime] = None
    reverses: Optional[str] = None


@dataclass(frozen=True, slots=True)
class EntryFilter:
    """Criteria for :meth:`growwise.ledger.Ledger.entries_of` (bounds inclusive)."""

    source_kinds: Optional[Tuple[SourceKind, ...]] = None
    source_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.source_kinds is not None:
            kinds = tuple(SourceKind.parse(kind) for kind in self.source_kinds)
            object.__setattr__(self, "source_kinds", kinds)
        for bound in ("start", "end"):
            value = getattr(self, bound)
            if isinstance(value, datetime):
                object.__setattr__(self, bound, local_time(value))

    def matches(self, entry: LedgerEntry) -> bool:
        if self.source_kinds and entry.source_kind not in self.source_kinds:
            return False
        if self.source_id is not None and entry.source_id != self.source_id:
            return False
        if self.start and entry.occurred_at < self.start:
            return False
        if self.end and entry.occurred_at > self.end:
            return False
        return True


@dataclass(frozen=True, slots=True)
class MilestoneDefinition:
    """A fixed coin threshold that unlocks a recognition or reward."""

    threshold_coins: int
    label: str
    description: str = ""

    def __post_init__(self) -> None:
        threshold = to_coins(self.threshold_coins)
        if threshold <= 0:
            raise ValidationError("Milestone thresholds must be greater than zero.")
        object.__setattr__(self, "threshold_coins", threshold)


@dataclass(frozen=True, slots=True)
class MilestoneStatus:
    """Progress snapshot of one milestone for one subject."""

    definition: MilestoneDefinition
    achieved: bool
    achieved_coins: int
    percent: float

    @property
    def coins_to_go(self) -> int:
        return max(0, self.definition.threshold_coins - self.achieved_coins)


@dataclass(frozen=True, slots=True)
class DailyCapRule:
    """Maximum coins a subject may earn from one source per calendar day."""

    source_kind: SourceKind
    source_id: str
    max_coins_per_day: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_kind", SourceKind.parse(self.source_kind))
        limit = require_non_negative(to_coins(self.max_coins_per_day), name="max_coins_per_day")
        object.__setattr__(self, "max_coins_per_day", limit)


@dataclass(frozen=True, slots=True)
class Granted:
    """The cap allows ``amount`` coins to be earned."""

    amount: int

    @property
    def granted(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Denied:
    """The cap is exhausted for the day."""

    @property
    def granted(self) -> bool:
        return False


EarnResult = Union[Granted, Denied]


class ActivityStatus(str, Enum):
    """Review lifecycle for an activity a student submits."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(slots=True)
class Activity:
    """An activity logged by a student and awaiting parent review."""

    id: str
    student_id: str
    title: str
    coin_value: int = DEFAULT_ACTIVITY_COINS
    description: str = ""
    status: ActivityStatus = ActivityStatus.PENDING
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None


@dataclass(slots=True)
class CalendarEvent:
    """A calendar item a student can mark as complete."""

    id: str
    student_id: str
    title: str
    event_date: date
    coin_reward: int = DEFAULT_CALENDAR_COINS
    is_completed: bool = False


@dataclass(slots=True)
class Referral:
    """A referral code shared by a parent."""

    id: str
    referrer_id: str
    referral_code: str
    referee_id: Optional[str] = None
    coins_awarded: int = 0
    is_completed: bool = False
    completed_at: Optional[datetime] = None


@dataclass(slots=True)
class Reward:
    """A parent-set reward a student can save coins towards."""

    id: str
    title: str
    coin_cost: int
    description: str = ""
    is_redeemed: bool = False

    def __post_init__(self) -> None:
        self.coin_cost = require_non_negative(to_coins(self.coin_cost), name="coin_cost")

    def affordable(self, balance: int) -> bool:
        return not self.is_redeemed and balance >= self.coin_cost


@dataclass(frozen=True, slots=True)
class Game:
    """A mini-game and its daily earning allowance."""

    id: str
    title: str
    max_coins_per_day: int
    category: str = ""

    def cap_rule(self) -> DailyCapRule:
        return DailyCapRule(SourceKind.GAME, self.id, self.max_coins_per_day)


@dataclass(frozen=True, slots=True)
class GameOutcome:
    """Result of scoring a game session against the ledger."""

    game_id: str
    score: int
    result: EarnResult
    entry: Optional[LedgerEntry] = None

    @property
    def coins_earned(self) -> int:
        return self.entry.amount if self.entry else 0


@dataclass(frozen=True, slots=True)
class SubjectReport:
    """Per-student section of a family report."""

    subject_id: str
    balance: int
    earned_in_period: int
    entries: Tuple[LedgerEntry, ...]
    milestones: Tuple[MilestoneStatus, ...]
    by_source: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FamilyReport:
    """Monthly family report data; formatting is left to the caller."""

    month: date
    subjects: Tuple[SubjectReport, ...]

    @property
    def total_coins(self) -> int:
        return sum(subject.earned_in_period for subject in self.subjects)

    @property
    def total_entries(self) -> int:
        return sum(len(subject.entries) for subject in self.subjects)


DEFAULT_MILESTONES: Tuple[MilestoneDefinition, ...] = (
    MilestoneDefinition(5_000, "First Milestone!", "Basic Reward Zone"),
    MilestoneDefinition(50_000, "Major Achievement!", "Major Gift Zone (parent decides)"),
)

DEFAULT_GAMES: Tuple[Game, ...] = (
    Game("flag-quiz", "Flag Quiz", 3, "Geography"),
    Game("vocabulary-builder", "Vocabulary Builder", 3, "Language"),
    Game("typing-practice", "Typing Practice", 2, "Skills"),
    Game("memory-match", "Memory Match", 3, "Memory"),
)


def validate_milestones(milestones: Sequence[MilestoneDefinition]) -> Tuple[MilestoneDefinition, ...]:
    """Return ``milestones`` as a tuple, ensuring thresholds strictly increase."""

    ordered = tuple(milestones)
    for previous, current in zip(ordered, ordered[1:]):
        if current.threshold_coins <= previous.threshold_coins:
            raise ValidationError(
                "Milestone thresholds must strictly increase: "
                f"{previous.threshold_coins} then {current.threshold_coins}."
            )
    return ordered
