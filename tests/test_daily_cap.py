import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from growwise.daily_cap import DailyEarningCap, calendar_day
from growwise.exceptions import ValidationError
from growwise.models import DailyCapRule, Denied, Granted, LedgerEntryInput, SourceKind

FLAG_QUIZ = DailyCapRule(SourceKind.GAME, "flag-quiz", 3)


def record(ledger, amount: int, moment: datetime, source_id: str = "flag-quiz", subject: str = "ava"):
    return ledger.append(
        LedgerEntryInput(
            subject_id=subject,
            amount=amount,
            source_kind=SourceKind.GAME,
            source_id=source_id,
            occurred_at=moment,
        )
    )


def test_sequential_earns_stop_at_cap(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)
    today = clock.moment
    results = []

    for _ in range(3):
        result = cap.try_earn("ava", SourceKind.GAME, "flag-quiz", 2, FLAG_QUIZ, today)
        results.append(result)
        if isinstance(result, Granted):
            record(ledger, result.amount, today)

    assert results == [Granted(2), Granted(1), Denied()]
    assert cap.earned_on("ava", SourceKind.GAME, "flag-quiz", today) == 3


def test_try_earn_has_no_side_effects(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)

    assert cap.try_earn("ava", "game", "flag-quiz", 2, FLAG_QUIZ, clock.moment) == Granted(2)
    assert cap.try_earn("ava", "game", "flag-quiz", 2, FLAG_QUIZ, clock.moment) == Granted(2)
    assert ledger.balance_of("ava") == 0


def test_cap_resets_on_next_calendar_day(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)
    late_tonight = clock.moment.replace(hour=23, minute=59)
    record(ledger, 3, late_tonight)

    assert cap.remaining_today("ava", SourceKind.GAME, "flag-quiz", FLAG_QUIZ, late_tonight) == 0
    tomorrow = late_tonight + timedelta(minutes=2)
    assert cap.remaining_today("ava", SourceKind.GAME, "flag-quiz", FLAG_QUIZ, tomorrow) == 3
    assert cap.remaining_today("ava", SourceKind.GAME, "flag-quiz", FLAG_QUIZ, tomorrow.date()) == 3


def test_other_sources_and_subjects_do_not_count(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)
    record(ledger, 3, clock.moment, source_id="memory-match")
    record(ledger, 3, clock.moment, subject="ben")
    ledger.append(LedgerEntryInput(subject_id="ava", amount=50, source_kind=SourceKind.TASK))

    assert cap.remaining_today("ava", SourceKind.GAME, "flag-quiz", FLAG_QUIZ, clock.moment) == 3


def test_remaining_never_negative(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)
    record(ledger, 10, clock.moment)

    assert cap.remaining_today("ava", SourceKind.GAME, "flag-quiz", FLAG_QUIZ, clock.moment) == 0


def test_rule_must_match_source(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)

    with pytest.raises(ValidationError):
        cap.remaining_today("ava", SourceKind.GAME, "memory-match", FLAG_QUIZ, clock.moment)
    with pytest.raises(ValidationError):
        cap.try_earn("ava", SourceKind.GAME, "flag-quiz", -1, FLAG_QUIZ, clock.moment)


def test_earn_appends_granted_amount(ledger, clock) -> None:
    cap = DailyEarningCap(ledger)

    first, entry = cap.earn("ava", SourceKind.GAME, "flag-quiz", 2, FLAG_QUIZ, description="Flag Quiz")
    second, second_entry = cap.earn("ava", SourceKind.GAME, "flag-quiz", 2, FLAG_QUIZ)
    third, third_entry = cap.earn("ava", SourceKind.GAME, "flag-quiz", 2, FLAG_QUIZ)

    assert (first, second, third) == (Granted(2), Granted(1), Denied())
    assert entry is not None and entry.amount == 2 and entry.source_id == "flag-quiz"
    assert entry.occurred_at == clock.moment
    assert second_entry is not None and second_entry.amount == 1
    assert third_entry is None
    assert ledger.balance_of("ava") == 3
    assert ledger.logger.tail(event="daily_cap_reached")


def test_zero_grant_records_nothing(ledger) -> None:
    cap = DailyEarningCap(ledger)

    result, entry = cap.earn("ava", SourceKind.GAME, "flag-quiz", 0, FLAG_QUIZ)

    assert result == Granted(0)
    assert entry is None
    assert ledger.entries_of("ava") == ()


def test_concurrent_earns_never_exceed_cap(ledger) -> None:
    cap = DailyEarningCap(ledger)
    rule = DailyCapRule(SourceKind.GAME, "flag-quiz", 10)
    barrier = threading.Barrier(8)

    def play() -> None:
        barrier.wait()
        cap.earn("ava", SourceKind.GAME, "flag-quiz", 3, rule)

    threads = [threading.Thread(target=play) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert ledger.balance_of("ava") == 10


def test_calendar_day_accepts_dates_and_datetimes() -> None:
    aware = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
    assert calendar_day(aware) == aware.astimezone().date()
    assert calendar_day(datetime(2026, 10, 19, 23, 59)) == date(2026, 10, 19)
    assert calendar_day(date(2026, 10, 19)) == date(2026, 10, 19)


def test_cap_rule_validates_limit() -> None:
    with pytest.raises(ValidationError):
        DailyCapRule(SourceKind.GAME, "flag-quiz", -1)
    with pytest.raises(ValidationError):
        DailyCapRule("arcade", "flag-quiz", 3)
