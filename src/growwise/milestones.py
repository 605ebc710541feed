"""Milestone progress derived live from a subject's ledger balance."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .ledger import Ledger
from .models import MilestoneDefinition, MilestoneStatus, validate_milestones


def milestone_status(balance: int, definition: MilestoneDefinition) -> MilestoneStatus:
    """Return the status of ``definition`` for a subject holding ``balance`` coins."""

    threshold = definition.threshold_coins
    percent = min(100.0, 100 * balance / threshold)
    return MilestoneStatus(
        definition=definition,
        achieved=balance >= threshold,
        achieved_coins=balance,
        percent=max(0.0, percent),
    )


class MilestoneTracker:
    """Read-side projection mapping balances onto ordered coin thresholds.

    Achievement is never stored: a correction that lowers the balance below a
    threshold makes that milestone unachieved again.
    """

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger

    def progress(self, subject_id: str, milestones: Sequence[MilestoneDefinition]) -> List[MilestoneStatus]:
        ordered = validate_milestones(milestones)
        if not ordered:
            return []
        balance = self._ledger.balance_of(subject_id)
        return [milestone_status(balance, definition) for definition in ordered]

    def next_milestone(
        self, subject_id: str, milestones: Sequence[MilestoneDefinition]
    ) -> Optional[MilestoneDefinition]:
        for status in self.progress(subject_id, milestones):
            if not status.achieved:
                return status.definition
        return None

    def coins_to_next(self, subject_id: str, milestones: Sequence[MilestoneDefinition]) -> int:
        """Coins still needed for the next unachieved milestone (0 when all are reached)."""

        for status in self.progress(subject_id, milestones):
            if not status.achieved:
                return status.coins_to_go
        return 0


__all__ = ["MilestoneTracker", "milestone_status"]
