"""Settlement error taxonomy.

Validation errors subclass ``ValueError`` so endpoints map them to HTTP 400
the same way as any other rejected input. Conflicts are kept apart so
clients can branch on HTTP 409.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for settlement engine errors."""


class ShiftValidationError(SettlementError, ValueError):
    """The request is well-formed but violates a settlement rule."""


class DayOffError(ShiftValidationError):
    def __init__(self, reason: str = "The selected date is a day off") -> None:
        super().__init__(reason)


class InvalidAmountError(ShiftValidationError):
    def __init__(self, reason: str = "Amounts cannot be negative") -> None:
        super().__init__(reason)


class NoOpenShiftError(ShiftValidationError):
    def __init__(self, reason: str = "No open shift. Open a shift first.") -> None:
        super().__init__(reason)


class ShiftClosedError(ShiftValidationError):
    def __init__(self, reason: str = "Shift is already closed") -> None:
        super().__init__(reason)


class InvalidPeriodError(ShiftValidationError):
    pass


class ShiftConflictError(SettlementError):
    """The store reported a conflict on open that could not be resolved."""


class ProcedureUnavailable(SettlementError):
    """A booking transition strategy does not exist in the backing store.

    Raised to advance the transition chain; any other exception means the
    attempt itself failed.
    """
