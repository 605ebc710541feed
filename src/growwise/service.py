"""High level service wiring the ledger to GrowWise's coin-earning workflows."""

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, datetime, time
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .coins import require_non_negative, to_coins
from .daily_cap import DailyEarningCap
from .exceptions import ValidationError
from .ledger import Ledger, LedgerStore
from .milestones import MilestoneTracker
from .models import (
    DEFAULT_GAMES,
    DEFAULT_MILESTONES,
    MAX_GAME_COINS_PER_SESSION,
    REFERRAL_BONUS_COINS,
    REFERRAL_REQUIRED_ACTIVITIES,
    SCORE_PER_GAME_COIN,
    Activity,
    ActivityStatus,
    CalendarEvent,
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


def coins_for_score(score: int) -> int:
    """Coins a game session is worth before the daily cap is applied."""

    value = require_non_negative(to_coins(score), name="score")
    return min(value // SCORE_PER_GAME_COIN, MAX_GAME_COINS_PER_SESSION)


class GrowWise:
    """Coordinate activities, calendar events, games and referrals for a family."""

    __slots__ = (
        "_ledger",
        "_milestones",
        "_cap",
        "_tracker",
        "_games",
        "_referral_bonus",
        "_logger",
    )

    def __init__(
        self,
        *,
        store: LedgerStore | None = None,
        milestones: Sequence[MilestoneDefinition] = DEFAULT_MILESTONES,
        games: Iterable[Game] = DEFAULT_GAMES,
        referral_bonus: int = REFERRAL_BONUS_COINS,
        clock: Callable[[], datetime] = datetime.now,
        logger: StructuredLogger | None = None,
    ) -> None:
        self._logger = logger or StructuredLogger()
        self._ledger = Ledger(store, clock=clock, logger=self._logger)
        self._milestones = validate_milestones(milestones)
        self._cap = DailyEarningCap(self._ledger)
        self._tracker = MilestoneTracker(self._ledger)
        self._games: Dict[str, Game] = {game.id: game for game in games}
        self._referral_bonus = require_non_negative(to_coins(referral_bonus), name="referral_bonus")

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def tracker(self) -> MilestoneTracker:
        return self._tracker

    @property
    def daily_cap(self) -> DailyEarningCap:
        return self._cap

    @property
    def milestones(self) -> Tuple[MilestoneDefinition, ...]:
        return self._milestones

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    def games(self) -> Tuple[Game, ...]:
        return tuple(self._games.values())

    def get_game(self, game_id: str) -> Game:
        try:
            return self._games[game_id]
        except KeyError as exc:
            raise ValidationError(f"Game '{game_id}' does not exist.") from exc

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------
    def approve_activity(self, activity: Activity, *, reviewer: str | None = None) -> LedgerEntry:
        with self._ledger.transaction((SourceKind.TASK, activity.id)):
            self._review(activity, ActivityStatus.APPROVED, reviewer)
            entry = self._ledger.append(
                LedgerEntryInput(
                    subject_id=activity.student_id,
                    amount=activity.coin_value,
                    source_kind=SourceKind.TASK,
                    description=f"Reward for: {activity.title}",
                    source_ref=activity.id,
                )
            )
        self._logger.log("activity_approved", activity=activity.id, subject=activity.student_id, coins=entry.amount)
        return entry

    def reject_activity(self, activity: Activity, *, reviewer: str | None = None) -> Activity:
        with self._ledger.transaction((SourceKind.TASK, activity.id)):
            self._review(activity, ActivityStatus.REJECTED, reviewer)
        self._logger.log("activity_rejected", activity=activity.id, subject=activity.student_id)
        return activity

    def _review(self, activity: Activity, status: ActivityStatus, reviewer: str | None) -> None:
        if activity.status is not ActivityStatus.PENDING:
            raise ValidationError(f"Activity '{activity.id}' was already {activity.status.value}.")
        to_coins(activity.coin_value)
        if self._already_credited(activity.student_id, SourceKind.TASK, activity.id):
            raise ValidationError(f"Activity '{activity.id}' has already been rewarded.")
        activity.status = status
        activity.reviewed_at = self._ledger.now()
        activity.reviewed_by = reviewer

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------
    def complete_calendar_event(self, event: CalendarEvent) -> LedgerEntry:
        with self._ledger.transaction((SourceKind.CALENDAR, event.id)):
            if event.is_completed or self._already_credited(event.student_id, SourceKind.CALENDAR, event.id):
                raise ValidationError(f"Calendar event '{event.id}' is already complete.")
            entry = self._ledger.append(
                LedgerEntryInput(
                    subject_id=event.student_id,
                    amount=event.coin_reward,
                    source_kind=SourceKind.CALENDAR,
                    description=f"Completed: {event.title}",
                    source_ref=event.id,
                )
            )
            event.is_completed = True
        self._logger.log("calendar_event_completed", event=event.id, subject=event.student_id, coins=entry.amount)
        return entry

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------
    def game_remaining_today(self, subject_id: str, game_id: str, *, as_of: date | None = None) -> int:
        game = self.get_game(game_id)
        moment = as_of or self._ledger.now()
        return self._cap.remaining_today(subject_id, SourceKind.GAME, game.id, game.cap_rule(), moment)

    def can_play_for_coins(self, subject_id: str, game_id: str, *, as_of: date | None = None) -> bool:
        return self.game_remaining_today(subject_id, game_id, as_of=as_of) > 0

    def complete_game_session(
        self,
        subject_id: str,
        game_id: str,
        score: int,
        *,
        session_id: str | None = None,
        at: datetime | None = None,
    ) -> GameOutcome:
        """Score a finished session and credit whatever the daily cap still allows."""

        game = self.get_game(game_id)
        wanted = coins_for_score(score)
        result, entry = self._cap.earn(
            subject_id,
            SourceKind.GAME,
            game.id,
            wanted,
            game.cap_rule(),
            description=f"{game.title} - Score: {score}",
            source_ref=session_id,
            at=at,
        )
        self._logger.log(
            "game_session_completed",
            subject=subject_id,
            game=game.id,
            score=score,
            coins=entry.amount if entry else 0,
            granted=isinstance(result, Granted),
        )
        return GameOutcome(game_id=game.id, score=score, result=result, entry=entry)

    # ------------------------------------------------------------------
    # Referrals and bonuses
    # ------------------------------------------------------------------
    def complete_referral(
        self,
        referral: Referral,
        subject_id: str,
        *,
        referee_activities: int = REFERRAL_REQUIRED_ACTIVITIES,
    ) -> LedgerEntry:
        """Credit the referral bonus once the referred child has done enough activities."""

        if referral.is_completed:
            raise ValidationError(f"Referral '{referral.referral_code}' has already been rewarded.")
        if referral.referee_id is None:
            raise ValidationError(f"Referral '{referral.referral_code}' has not been redeemed yet.")
        if referee_activities < REFERRAL_REQUIRED_ACTIVITIES:
            raise ValidationError(
                f"Referral '{referral.referral_code}' needs {REFERRAL_REQUIRED_ACTIVITIES} approved activities."
            )
        with self._ledger.transaction((SourceKind.REFERRAL, referral.id)):
            if self._already_credited(subject_id, SourceKind.REFERRAL, referral.id):
                raise ValidationError(f"Referral '{referral.referral_code}' has already been rewarded.")
            entry = self._ledger.append(
                LedgerEntryInput(
                    subject_id=subject_id,
                    amount=self._referral_bonus,
                    source_kind=SourceKind.REFERRAL,
                    description=f"Referral bonus: {referral.referral_code}",
                    source_ref=referral.id,
                )
            )
            referral.is_completed = True
        referral.coins_awarded = entry.amount
        referral.completed_at = entry.occurred_at
        self._logger.log("referral_completed", referral=referral.id, subject=subject_id, coins=entry.amount)
        return entry

    def award_bonus(self, subject_id: str, amount: int, description: str = "Bonus") -> LedgerEntry:
        return self._ledger.append(
            LedgerEntryInput(
                subject_id=subject_id,
                amount=amount,
                source_kind=SourceKind.BONUS,
                description=description,
            )
        )

    def correct(self, entry_id: str, reason: str) -> LedgerEntry:
        entry = self._ledger.reverse(entry_id, reason)
        self._logger.log("ledger_entry_reversed", entry_id=entry_id, subject=entry.subject_id, amount=entry.amount)
        return entry

    def _already_credited(self, subject_id: str, kind: SourceKind, source_ref: str) -> bool:
        entries = self._ledger.entries_of(subject_id, EntryFilter(source_kinds=(kind,)))
        return any(entry.source_ref == source_ref and entry.reverses is None for entry in entries)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    def balance(self, subject_id: str) -> int:
        return self._ledger.balance_of(subject_id)

    def progress(self, subject_id: str) -> Sequence[MilestoneStatus]:
        return self._tracker.progress(subject_id, self._milestones)

    def next_milestone(self, subject_id: str) -> Optional[MilestoneDefinition]:
        return self._tracker.next_milestone(subject_id, self._milestones)

    def affordable_rewards(self, subject_id: str, rewards: Iterable[Reward]) -> Tuple[Reward, ...]:
        """Return the unredeemed rewards the subject's balance already covers."""

        balance = self._ledger.balance_of(subject_id)
        return tuple(reward for reward in rewards if reward.affordable(balance))

    def family_report(self, subject_ids: Iterable[str], month: date | None = None) -> FamilyReport:
        """Collect each subject's ledger activity for the calendar month containing ``month``."""

        anchor = month or self._ledger.now().date()
        first = anchor.replace(day=1)
        last = anchor.replace(day=calendar.monthrange(anchor.year, anchor.month)[1])
        period = EntryFilter(start=datetime.combine(first, time.min), end=datetime.combine(last, time.max))
        sections = []
        for subject_id in subject_ids:
            entries = self._ledger.entries_of(subject_id, period)
            sections.append(
                SubjectReport(
                    subject_id=subject_id,
                    balance=self._ledger.balance_of(subject_id),
                    earned_in_period=sum(entry.amount for entry in entries),
                    entries=entries,
                    milestones=tuple(self.progress(subject_id)),
                    by_source=_totals_by_source(entries),
                )
            )
        return FamilyReport(month=first, subjects=tuple(sections))


def _totals_by_source(entries: Iterable[LedgerEntry]) -> Mapping[str, int]:
    totals: Dict[str, int] = defaultdict(int)
    for entry in entries:
        totals[entry.source_kind.value] += entry.amount
    return dict(totals)


__all__ = ["GrowWise", "coins_for_score"]
