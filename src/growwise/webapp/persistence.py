"""Persistence and SQLModel definitions for the GrowWise ledger."""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional, Sequence, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..exceptions import StoreUnavailableError, ValidationError
from ..ledger import LedgerStore
from ..models import LedgerEntry, SourceKind
from .config import SQLITE_FILE_NAME


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class CoinTransaction(SQLModel, table=True):
    __tablename__ = "coin_transactions"

    seq: Optional[int] = Field(default=None, primary_key=True)
    entry_id: str = Field(index=True, unique=True)
    subject_id: str = Field(index=True)
    amount: int
    source_kind: str
    source_id: Optional[str] = Field(default=None, index=True)
    source_ref: Optional[str] = None
    description: str = ""
    occurred_at: datetime
    reverses: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "CoinTransaction":
        return cls(
            entry_id=entry.id,
            subject_id=entry.subject_id,
            amount=entry.amount,
            source_kind=entry.source_kind.value,
            source_id=entry.source_id,
            source_ref=entry.source_ref,
            description=entry.description,
            occurred_at=entry.occurred_at,
            reverses=entry.reverses,
        )

    def to_entry(self) -> LedgerEntry:
        return LedgerEntry(
            id=self.entry_id,
            subject_id=self.subject_id,
            amount=int(self.amount),
            source_kind=SourceKind(self.source_kind),
            description=self.description,
            occurred_at=self.occurred_at,
            source_ref=self.source_ref,
            source_id=self.source_id,
            reverses=self.reverses,
        )


# ---------------------------------------------------------------------------
# Database initialisation
# ---------------------------------------------------------------------------
def make_engine(path: str = SQLITE_FILE_NAME) -> Engine:
    return create_engine(
        f"sqlite:///{path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def create_db_and_tables(target: Engine) -> None:
    SQLModel.metadata.create_all(target)


# ---------------------------------------------------------------------------
# Ledger store
# ---------------------------------------------------------------------------
class SqlLedgerStore(LedgerStore):
    """Ledger store writing each entry in its own committed transaction."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._write_lock = threading.Lock()

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        row = CoinTransaction.from_entry(entry)
        with self._write_lock:
            try:
                with Session(self.engine) as session:
                    session.add(row)
                    session.commit()
            except IntegrityError as exc:
                raise ValidationError(f"Ledger entry '{entry.id}' already exists.") from exc
            except OperationalError as exc:
                raise StoreUnavailableError(f"Ledger store unavailable: {exc}") from exc
        return entry

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        query = select(CoinTransaction).where(CoinTransaction.entry_id == entry_id)
        row = self._first(query)
        return row.to_entry() if row else None

    def entries(self, subject_id: str | None = None) -> Sequence[LedgerEntry]:
        query = select(CoinTransaction)
        if subject_id is not None:
            query = query.where(CoinTransaction.subject_id == subject_id)
        query = query.order_by(CoinTransaction.seq)
        return tuple(row.to_entry() for row in self._all(query))

    def subjects(self) -> Tuple[str, ...]:
        query = select(CoinTransaction.subject_id).distinct().order_by(CoinTransaction.subject_id)
        return tuple(self._all(query))

    def _all(self, query) -> list:
        try:
            with Session(self.engine) as session:
                return list(session.exec(query).all())
        except OperationalError as exc:
            raise StoreUnavailableError(f"Ledger store unavailable: {exc}") from exc

    def _first(self, query):
        try:
            with Session(self.engine) as session:
                return session.exec(query).first()
        except OperationalError as exc:
            raise StoreUnavailableError(f"Ledger store unavailable: {exc}") from exc


__all__ = [
    "CoinTransaction",
    "SqlLedgerStore",
    "create_db_and_tables",
    "make_engine",
]
