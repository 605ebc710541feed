"""FastAPI JSON surface over the GrowWise ledger.

The routes are a thin adapter: each one translates a request into a single
call on :class:`~growwise.service.GrowWise` and serialises the result with
:mod:`growwise.api`.  Run it with ``uvicorn growwise.webapp:create_app --factory``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..api import (
    earn_result_to_dict,
    entry_to_dict,
    milestone_to_dict,
    report_to_dict,
    status_to_dict,
)
from ..exceptions import EntryNotFoundError, StoreUnavailableError, ValidationError
from ..models import REFERRAL_REQUIRED_ACTIVITIES, Activity, CalendarEvent, EntryFilter, Referral
from ..ops import StructuredLogger
from ..service import GrowWise
from .config import ACTIVITY_COINS, CALENDAR_COINS, LOG_PATH, REFERRAL_BONUS, SQLITE_FILE_NAME
from .persistence import SqlLedgerStore, create_db_and_tables, make_engine


class GameSessionRequest(BaseModel):
    score: int = Field(..., ge=0)
    session_id: Optional[str] = None


class BonusRequest(BaseModel):
    amount: int
    description: str = "Bonus"


class ActivityApprovalRequest(BaseModel):
    id: str
    student_id: str
    title: str
    coin_value: int = ACTIVITY_COINS
    reviewed_by: Optional[str] = None


class CalendarCompletionRequest(BaseModel):
    id: str
    student_id: str
    title: str
    event_date: date
    coin_reward: int = CALENDAR_COINS


class ReferralCompletionRequest(BaseModel):
    id: str
    referrer_id: str
    referral_code: str
    referee_id: Optional[str] = None
    referee_activities: int = Field(default=REFERRAL_REQUIRED_ACTIVITIES, ge=0)


class ReversalRequest(BaseModel):
    reason: str = Field(..., min_length=1)


def default_bank() -> GrowWise:
    engine = make_engine(SQLITE_FILE_NAME)
    create_db_and_tables(engine)
    return GrowWise(
        store=SqlLedgerStore(engine),
        referral_bonus=REFERRAL_BONUS,
        logger=StructuredLogger(path=LOG_PATH),
    )


def create_app(bank: GrowWise | None = None) -> FastAPI:
    bank = bank or default_bank()
    app = FastAPI(title="GrowWise Coins")
    app.state.bank = bank

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------
    @app.exception_handler(ValidationError)
    async def _validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(EntryNotFoundError)
    async def _not_found(_: Request, exc: EntryNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StoreUnavailableError)
    async def _store_down(_: Request, exc: StoreUnavailableError) -> JSONResponse:
        bank.logger.log("store_unavailable", detail=str(exc))
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": "growwise-coins"}

    @app.get("/subjects/{subject_id}/balance")
    def subject_balance(subject_id: str) -> dict:
        return {"subject_id": subject_id, "balance": bank.balance(subject_id)}

    @app.get("/subjects/{subject_id}/entries")
    def subject_entries(
        subject_id: str,
        source_kind: Optional[List[str]] = Query(default=None),
        source_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = Query(default=50, ge=0),
    ) -> dict:
        entry_filter = EntryFilter(
            source_kinds=tuple(source_kind) if source_kind else None,
            source_id=source_id,
            start=start,
            end=end,
        )
        entries = bank.ledger.entries_of(subject_id, entry_filter)
        return {
            "subject_id": subject_id,
            "total_count": len(entries),
            "entries": [entry_to_dict(entry) for entry in entries[:limit]],
        }

    @app.get("/subjects/{subject_id}/milestones")
    def subject_milestones(subject_id: str) -> dict:
        upcoming = bank.next_milestone(subject_id)
        return {
            "subject_id": subject_id,
            "balance": bank.balance(subject_id),
            "milestones": [status_to_dict(status) for status in bank.progress(subject_id)],
            "next": milestone_to_dict(upcoming) if upcoming else None,
        }

    @app.get("/subjects/{subject_id}/games/{game_id}")
    def game_status(subject_id: str, game_id: str) -> dict:
        game = bank.get_game(game_id)
        remaining = bank.game_remaining_today(subject_id, game_id)
        return {
            "game_id": game.id,
            "title": game.title,
            "max_coins_per_day": game.max_coins_per_day,
            "remaining_today": remaining,
            "can_earn": remaining > 0,
        }

    @app.get("/reports/family")
    def family_report(
        subject: List[str] = Query(...),
        month: Optional[date] = None,
    ) -> dict:
        return report_to_dict(bank.family_report(subject, month))

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------
    @app.post("/subjects/{subject_id}/games/{game_id}")
    def play_game(subject_id: str, game_id: str, payload: GameSessionRequest) -> dict:
        outcome = bank.complete_game_session(subject_id, game_id, payload.score, session_id=payload.session_id)
        return {
            "game_id": outcome.game_id,
            "score": outcome.score,
            "coins_earned": outcome.coins_earned,
            "result": earn_result_to_dict(outcome.result),
            "entry": entry_to_dict(outcome.entry) if outcome.entry else None,
        }

    @app.post("/subjects/{subject_id}/bonus", status_code=201)
    def award_bonus(subject_id: str, payload: BonusRequest) -> dict:
        return entry_to_dict(bank.award_bonus(subject_id, payload.amount, payload.description))

    @app.post("/activities/approve", status_code=201)
    def approve_activity(payload: ActivityApprovalRequest) -> dict:
        activity = Activity(
            id=payload.id,
            student_id=payload.student_id,
            title=payload.title,
            coin_value=payload.coin_value,
        )
        return entry_to_dict(bank.approve_activity(activity, reviewer=payload.reviewed_by))

    @app.post("/calendar/complete", status_code=201)
    def complete_calendar_event(payload: CalendarCompletionRequest) -> dict:
        event = CalendarEvent(
            id=payload.id,
            student_id=payload.student_id,
            title=payload.title,
            event_date=payload.event_date,
            coin_reward=payload.coin_reward,
        )
        return entry_to_dict(bank.complete_calendar_event(event))

    @app.post("/referrals/complete", status_code=201)
    def complete_referral(payload: ReferralCompletionRequest) -> dict:
        referral = Referral(
            id=payload.id,
            referrer_id=payload.referrer_id,
            referral_code=payload.referral_code,
            referee_id=payload.referee_id,
        )
        entry = bank.complete_referral(referral, payload.referrer_id, referee_activities=payload.referee_activities)
        return entry_to_dict(entry)

    @app.post("/entries/{entry_id}/reverse", status_code=201)
    def reverse_entry(entry_id: str, payload: ReversalRequest) -> dict:
        return entry_to_dict(bank.correct(entry_id, payload.reason))

    return app


__all__ = ["create_app", "default_bank"]
