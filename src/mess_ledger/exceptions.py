"""Custom exceptions for Mess Ledger."""


class MessLedgerError(Exception):
    """Base exception for all Mess Ledger errors."""

    pass


class ConfigurationError(MessLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class LedgerValidationError(MessLedgerError):
    """Base class for deterministic input validation failures."""

    pass


class SplitMismatchError(LedgerValidationError):
    """Raised when split amounts don't add up to the expense total."""

    def __init__(
        self,
        message: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Sum of splits ({actual}) must equal total amount ({expected})"
        )


class PercentageMismatchError(LedgerValidationError):
    """Raised when split percentages don't sum to 100 within tolerance."""

    pass


class NoParticipantsError(LedgerValidationError):
    """Raised when a split is requested over an empty participant set."""

    pass


class DuplicateParticipantError(LedgerValidationError):
    """Raised when the same member appears twice in one split."""

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Member {member_id!r} appears more than once in the split")


class UnknownMemberError(LedgerValidationError):
    """Raised when an event references a member outside the membership snapshot."""

    def __init__(self, member_id: str, message: str | None = None):
        self.member_id = member_id
        super().__init__(message or f"Unknown member: {member_id!r}")


class NegativeAmountError(LedgerValidationError):
    """Raised when an amount is negative or a total is not positive."""

    pass


class AmountPrecisionError(LedgerValidationError):
    """Raised when a decimal amount is finer than one minor currency unit."""

    pass


class InvalidAmountError(LedgerValidationError, ValueError):
    """Raised when an amount or percentage is not a finite number."""

    pass


class SettlementError(MessLedgerError):
    """Raised when a settlement or a set of suggestions is inconsistent."""

    pass


class UnbalancedLedgerError(SettlementError):
    """Raised when balances handed to the suggestion engine don't sum to zero."""

    def __init__(self, residual: int):
        self.residual = residual
        super().__init__(
            f"Balances must sum to zero before settling (residual: {residual})"
        )


class EventNotFoundError(MessLedgerError):
    """Raised when an expense, collection or settlement id doesn't exist."""

    def __init__(self, kind: str, event_id: str):
        self.kind = kind
        self.event_id = event_id
        super().__init__(f"No {kind} with id {event_id!r}")


class MemberNotFoundError(MessLedgerError):
    """Raised when a member lookup fails in the stored group."""

    def __init__(self, group_id: str, member_id: str):
        self.group_id = group_id
        self.member_id = member_id
        super().__init__(f"Member {member_id!r} not found in group {group_id!r}")
