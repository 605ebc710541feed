"""Custom exception hierarchy for the GrowWise package."""

from __future__ import annotations


class GrowWiseError(Exception):
    """Base class for all GrowWise specific errors."""


class ValidationError(GrowWiseError, ValueError):
    """Raised when ledger input or configuration is malformed."""


class EntryNotFoundError(GrowWiseError):
    """Raised when a ledger entry lookup fails."""


class StoreUnavailableError(GrowWiseError):
    """Raised by a ledger store when its backing storage cannot be reached."""
