"""
Errors raised by the reconciliation engine.

Malformed obligation payloads never show up here: they are recovered at the
store boundary (see models.py) and contribute zero occurrences.
"""


class CareReconError(Exception):
    """Base class for all known engine errors."""

    status_code: int = 500

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_detail(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message


class PreconditionError(CareReconError):
    """A required identifier is missing or cannot be resolved."""

    status_code = 400


class NotFoundError(PreconditionError):
    status_code = 404

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class StoreError(CareReconError):
    """
    The backing store failed. Not retried here; callers own retry policy.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(
            f"Backing store failure during {operation}",
            hint=type(cause).__name__ if cause is not None else None,
        )
        self.operation = operation
        self.cause = cause
