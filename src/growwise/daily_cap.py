"""Per-source daily earning limits evaluated against the ledger."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Tuple, Union

from .coins import require_non_negative, to_coins
from .exceptions import ValidationError
from .ledger import Ledger
from .models import (
    DailyCapRule,
    Denied,
    EarnResult,
    EntryFilter,
    Granted,
    LedgerEntry,
    LedgerEntryInput,
    SourceKind,
    local_time,
)

DateLike = Union[date, datetime]


def calendar_day(moment: DateLike) -> date:
    """Return the local calendar day ``moment`` falls on."""

    if isinstance(moment, datetime):
        return local_time(moment).date()
    return moment


class DailyEarningCap:
    """Decide how many coins a source may still grant on a calendar day.

    Days run midnight to midnight in local time; entries from any other day
    are ignored, so the allowance resets at midnight rather than 24 hours
    after the last earn.
    """

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger

    def earned_on(
        self,
        subject_id: str,
        source_kind: SourceKind | str,
        source_id: str,
        day: DateLike,
    ) -> int:
        target = calendar_day(day)
        start = datetime.combine(target, time.min)
        end = datetime.combine(target, time.max)
        entries = self._ledger.entries_of(
            subject_id,
            EntryFilter(source_kinds=(SourceKind.parse(source_kind),), source_id=source_id, start=start, end=end),
        )
        return sum(entry.amount for entry in entries)

    def remaining_today(
        self,
        subject_id: str,
        source_kind: SourceKind | str,
        source_id: str,
        rule: DailyCapRule,
        as_of: DateLike,
    ) -> int:
        kind = self._check_rule(source_kind, source_id, rule)
        earned = self.earned_on(subject_id, kind, source_id, as_of)
        return max(0, rule.max_coins_per_day - earned)

    def try_earn(
        self,
        subject_id: str,
        source_kind: SourceKind | str,
        source_id: str,
        desired_amount: int,
        rule: DailyCapRule,
        as_of: DateLike,
    ) -> EarnResult:
        """Return the permissible grant without touching the ledger."""

        desired = require_non_negative(to_coins(desired_amount), name="desired_amount")
        remaining = self.remaining_today(subject_id, source_kind, source_id, rule, as_of)
        if remaining == 0:
            return Denied()
        return Granted(min(desired, remaining))

    def earn(
        self,
        subject_id: str,
        source_kind: SourceKind | str,
        source_id: str,
        desired_amount: int,
        rule: DailyCapRule,
        *,
        description: str = "",
        source_ref: str | None = None,
        at: datetime | None = None,
    ) -> Tuple[EarnResult, Optional[LedgerEntry]]:
        """Check the cap and append the granted amount as one atomic step.

        A zero grant is reported as :class:`Granted` but records nothing.
        """

        moment = local_time(at or self._ledger.now())
        kind = SourceKind.parse(source_kind)
        key = (subject_id, kind, source_id, calendar_day(moment))
        with self._ledger.transaction(key):
            result = self.try_earn(subject_id, kind, source_id, desired_amount, rule, moment)
            if not isinstance(result, Granted):
                self._ledger.logger.log(
                    "daily_cap_reached",
                    subject=subject_id,
                    source_kind=kind.value,
                    source_id=source_id,
                    limit=rule.max_coins_per_day,
                )
                return result, None
            if result.amount == 0:
                return result, None
            entry = self._ledger.append(
                LedgerEntryInput(
                    subject_id=subject_id,
                    amount=result.amount,
                    source_kind=kind,
                    description=description,
                    source_ref=source_ref,
                    source_id=source_id,
                    occurred_at=moment,
                )
            )
        return result, entry

    @staticmethod
    def _check_rule(source_kind: SourceKind | str, source_id: str, rule: DailyCapRule) -> SourceKind:
        kind = SourceKind.parse(source_kind)
        if rule.source_kind is not kind or rule.source_id != source_id:
            raise ValidationError(
                f"Cap rule for {rule.source_kind.value}/{rule.source_id} "
                f"does not apply to {kind.value}/{source_id}."
            )
        return kind


__all__ = ["DailyEarningCap", "calendar_day"]
