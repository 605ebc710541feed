"""Convert GrowWise ledger structures to and from JSON friendly dictionaries."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Mapping

from .exceptions import ValidationError
from .models import (
    EarnResult,
    FamilyReport,
    Granted,
    LedgerEntry,
    MilestoneDefinition,
    MilestoneStatus,
    SourceKind,
)


def entry_to_dict(entry: LedgerEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "subject_id": entry.subject_id,
        "amount": entry.amount,
        "source_kind": entry.source_kind.value,
        "source_id": entry.source_id,
        "source_ref": entry.source_ref,
        "description": entry.description,
        "occurred_at": entry.occurred_at.isoformat(timespec="microseconds"),
        "reverses": entry.reverses,
    }


def entry_from_dict(payload: Mapping[str, Any]) -> LedgerEntry:
    try:
        amount = payload["amount"]
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(f"Serialised amount must be an integer, got {amount!r}.")
        return LedgerEntry(
            id=str(payload["id"]),
            subject_id=str(payload["subject_id"]),
            amount=amount,
            source_kind=SourceKind.parse(payload["source_kind"]),
            description=payload.get("description") or "",
            occurred_at=datetime.fromisoformat(payload["occurred_at"]),
            source_ref=payload.get("source_ref"),
            source_id=payload.get("source_id"),
            reverses=payload.get("reverses"),
        )
    except KeyError as exc:
        raise ValidationError(f"Serialised ledger entry is missing {exc.args[0]!r}.") from exc


def milestone_to_dict(definition: MilestoneDefinition) -> Dict[str, Any]:
    return {
        "threshold_coins": definition.threshold_coins,
        "label": definition.label,
        "description": definition.description,
    }


def status_to_dict(status: MilestoneStatus) -> Dict[str, Any]:
    return {
        **milestone_to_dict(status.definition),
        "achieved": status.achieved,
        "achieved_coins": status.achieved_coins,
        "percent": status.percent,
        "coins_to_go": status.coins_to_go,
    }


def earn_result_to_dict(result: EarnResult) -> Dict[str, Any]:
    if isinstance(result, Granted):
        return {"granted": True, "amount": result.amount}
    return {"granted": False, "amount": 0}


def report_to_dict(report: FamilyReport) -> Dict[str, Any]:
    return {
        "month": report.month.strftime("%Y-%m"),
        "total_coins": report.total_coins,
        "total_entries": report.total_entries,
        "subjects": [
            {
                "subject_id": subject.subject_id,
                "balance": subject.balance,
                "earned_in_period": subject.earned_in_period,
                "by_source": dict(subject.by_source),
                "entries": [entry_to_dict(entry) for entry in subject.entries],
                "milestones": [status_to_dict(status) for status in subject.milestones],
            }
            for subject in report.subjects
        ],
    }


def to_json(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True)


__all__ = [
    "earn_result_to_dict",
    "entry_from_dict",
    "entry_to_dict",
    "milestone_to_dict",
    "report_to_dict",
    "status_to_dict",
    "to_json",
]
