"""Append-only coin ledger for GrowWise students."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Sequence, Tuple
from uuid import uuid4

from .coins import to_coins
from .exceptions import EntryNotFoundError, ValidationError
from .models import EntryFilter, LedgerEntry, LedgerEntryInput, SourceKind, local_time
from .ops import StructuredLogger


class LedgerStore:
    """Storage collaborator holding ledger entries in insertion order.

    Implementations must make :meth:`add` all-or-nothing and raise
    :class:`~growwise.exceptions.StoreUnavailableError` when the backing
    storage cannot be reached.
    """

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        raise NotImplementedError

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        raise NotImplementedError

    def entries(self, subject_id: str | None = None) -> Sequence[LedgerEntry]:
        raise NotImplementedError

    def subjects(self) -> Tuple[str, ...]:
        return tuple(sorted({entry.subject_id for entry in self.entries()}))


class InMemoryLedgerStore(LedgerStore):
    """Process-local store used by default and in tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[LedgerEntry] = []
        self._by_id: Dict[str, LedgerEntry] = {}

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        with self._lock:
            if entry.id in self._by_id:
                raise ValidationError(f"Ledger entry '{entry.id}' already exists.")
            self._entries.append(entry)
            self._by_id[entry.id] = entry
        return entry

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        return self._by_id.get(entry_id)

    def entries(self, subject_id: str | None = None) -> Sequence[LedgerEntry]:
        with self._lock:
            snapshot = tuple(self._entries)
        if subject_id is None:
            return snapshot
        return tuple(entry for entry in snapshot if entry.subject_id == subject_id)


class Ledger:
    """Single write path for coins; every read is derived from the log."""

    __slots__ = ("_store", "_clock", "_logger", "_locks", "_locks_guard")

    def __init__(
        self,
        store: LedgerStore | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        logger: StructuredLogger | None = None,
    ) -> None:
        self._store = store if store is not None else InMemoryLedgerStore()
        self._clock = clock
        self._logger = logger or StructuredLogger()
        self._locks: Dict[Hashable, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    def now(self) -> datetime:
        """Return the ledger clock's current (naive, local) time."""

        return local_time(self._clock())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def append(self, entry_input: LedgerEntryInput) -> LedgerEntry:
        """Validate ``entry_input`` and record it as a new immutable entry."""

        entry = self._build_entry(entry_input)
        stored = self._store.add(entry)
        self._logger.log(
            "ledger_entry_appended",
            entry_id=stored.id,
            subject=stored.subject_id,
            amount=stored.amount,
            source_kind=stored.source_kind.value,
            source_id=stored.source_id,
        )
        return stored

    def reverse(self, entry_id: str, reason: str = "", *, occurred_at: datetime | None = None) -> LedgerEntry:
        """Cancel an entry by appending its negative counterpart."""

        original = self.get(entry_id)
        if original.reverses is not None:
            raise ValidationError(f"Entry '{entry_id}' is itself a reversal.")
        summary = f"Reversal: {reason}" if reason else f"Reversal of {original.description}"
        with self.transaction(("reverse", entry_id)):
            for entry in self._store.entries(original.subject_id):
                if entry.reverses == entry_id:
                    raise ValidationError(f"Entry '{entry_id}' has already been reversed.")
            return self.append(
                LedgerEntryInput(
                    subject_id=original.subject_id,
                    amount=-original.amount,
                    source_kind=original.source_kind,
                    description=summary,
                    source_ref=original.source_ref,
                    source_id=original.source_id,
                    occurred_at=occurred_at,
                    reverses=original.id,
                )
            )

    @contextmanager
    def transaction(self, key: Hashable) -> Iterator[None]:
        """Serialise a check-then-append sequence for ``key``.

        Callers holding the same key run one at a time, so a decision made
        from the log stays valid until the matching :meth:`append` returns.
        """

        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, entry_id: str) -> LedgerEntry:
        entry = self._store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Ledger entry '{entry_id}' does not exist.")
        return entry

    def balance_of(self, subject_id: str) -> int:
        """Return the sum of every entry recorded for ``subject_id``."""

        return sum(entry.amount for entry in self._store.entries(subject_id))

    def entries_of(self, subject_id: str, entry_filter: EntryFilter | None = None) -> Tuple[LedgerEntry, ...]:
        """Return matching entries, most recent first.

        Entries sharing a timestamp come back latest insertion first.
        """

        entries = self._store.entries(subject_id)
        if entry_filter is not None:
            entries = [entry for entry in entries if entry_filter.matches(entry)]
        return tuple(sorted(reversed(list(entries)), key=lambda entry: entry.occurred_at, reverse=True))

    def subjects(self) -> Tuple[str, ...]:
        return self._store.subjects()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _build_entry(self, entry_input: LedgerEntryInput) -> LedgerEntry:
        subject_id = entry_input.subject_id
        if not isinstance(subject_id, str) or not subject_id.strip():
            raise ValidationError("subject_id must be a non-empty string.")
        amount = to_coins(entry_input.amount)
        kind = SourceKind.parse(entry_input.source_kind)
        occurred_at = entry_input.occurred_at or self._clock()
        if not isinstance(occurred_at, datetime):
            raise ValidationError("occurred_at must be a datetime.")
        occurred_at = local_time(occurred_at)
        entry_id = entry_input.id or str(uuid4())
        if entry_input.id is not None and self._store.get(entry_id) is not None:
            raise ValidationError(f"Ledger entry '{entry_id}' already exists.")
        if entry_input.reverses is not None:
            target = self._store.get(entry_input.reverses)
            if target is None or target.subject_id != subject_id:
                raise ValidationError(
                    f"Entry '{entry_input.reverses}' cannot be reversed for subject '{subject_id}'."
                )
        return LedgerEntry(
            id=entry_id,
            subject_id=subject_id,
            amount=amount,
            source_kind=kind,
            description=entry_input.description or f"{kind.value.title()} coins",
            occurred_at=occurred_at,
            source_ref=entry_input.source_ref,
            source_id=entry_input.source_id,
            reverses=entry_input.reverses,
        )


__all__ = ["InMemoryLedgerStore", "Ledger", "LedgerStore"]
