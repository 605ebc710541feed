import pytest

from growwise.exceptions import ValidationError
from growwise.milestones import MilestoneTracker, milestone_status
from growwise.models import DEFAULT_MILESTONES, LedgerEntryInput, MilestoneDefinition, SourceKind

FIRST, MAJOR = DEFAULT_MILESTONES


def credit(ledger, amount: int, kind=SourceKind.TASK, subject: str = "ava"):
    return ledger.append(LedgerEntryInput(subject_id=subject, amount=amount, source_kind=kind))


def test_small_balance_reports_partial_progress(ledger) -> None:
    credit(ledger, 15)
    credit(ledger, 5, SourceKind.CALENDAR)
    credit(ledger, 20)
    tracker = MilestoneTracker(ledger)

    first = tracker.progress("ava", [MilestoneDefinition(5000, "First")])[0]

    assert ledger.balance_of("ava") == 40
    assert first.achieved is False
    assert first.achieved_coins == 40
    assert first.percent == pytest.approx(0.8)
    assert first.coins_to_go == 4960


def test_exact_threshold_achieves_first_milestone(ledger) -> None:
    credit(ledger, 5000)
    tracker = MilestoneTracker(ledger)

    statuses = tracker.progress("ava", DEFAULT_MILESTONES)

    assert statuses[0].achieved is True
    assert statuses[0].percent == 100
    assert statuses[1].achieved is False
    assert statuses[1].percent == pytest.approx(10.0)
    assert tracker.next_milestone("ava", DEFAULT_MILESTONES) == MAJOR
    assert tracker.coins_to_next("ava", DEFAULT_MILESTONES) == 45_000


def test_percent_is_capped_and_all_achieved_has_no_next(ledger) -> None:
    credit(ledger, 60_000)
    tracker = MilestoneTracker(ledger)

    statuses = tracker.progress("ava", DEFAULT_MILESTONES)

    assert [status.percent for status in statuses] == [100, 100]
    assert all(status.achieved for status in statuses)
    assert tracker.next_milestone("ava", DEFAULT_MILESTONES) is None
    assert tracker.coins_to_next("ava", DEFAULT_MILESTONES) == 0


def test_higher_milestone_implies_lower_ones(ledger) -> None:
    milestones = [MilestoneDefinition(t, f"m{t}") for t in (10, 100, 1000)]
    credit(ledger, 150)
    tracker = MilestoneTracker(ledger)

    achieved = [status.achieved for status in tracker.progress("ava", milestones)]

    assert achieved == [True, True, False]


def test_empty_milestones(ledger) -> None:
    credit(ledger, 100)
    tracker = MilestoneTracker(ledger)

    assert tracker.progress("ava", []) == []
    assert tracker.next_milestone("ava", []) is None


def test_progress_reads_are_idempotent(ledger) -> None:
    credit(ledger, 1234)
    tracker = MilestoneTracker(ledger)

    assert tracker.progress("ava", DEFAULT_MILESTONES) == tracker.progress("ava", DEFAULT_MILESTONES)


def test_correction_can_unachieve_milestone(ledger) -> None:
    entry = credit(ledger, 5000)
    tracker = MilestoneTracker(ledger)
    assert tracker.progress("ava", DEFAULT_MILESTONES)[0].achieved

    ledger.reverse(entry.id, "duplicate approval")

    first = tracker.progress("ava", DEFAULT_MILESTONES)[0]
    assert first.achieved is False
    assert first.percent == 0
    assert tracker.next_milestone("ava", DEFAULT_MILESTONES) == FIRST


def test_negative_balance_floors_percent_at_zero() -> None:
    status = milestone_status(-50, FIRST)

    assert status.percent == 0
    assert status.achieved is False


def test_thresholds_must_strictly_increase(ledger) -> None:
    tracker = MilestoneTracker(ledger)
    unordered = [MilestoneDefinition(500, "b"), MilestoneDefinition(50, "a")]

    with pytest.raises(ValidationError):
        tracker.progress("ava", unordered)
    with pytest.raises(ValidationError):
        tracker.progress("ava", [MilestoneDefinition(50, "a"), MilestoneDefinition(50, "b")])
    with pytest.raises(ValidationError):
        MilestoneDefinition(0, "zero")
