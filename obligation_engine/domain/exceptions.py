"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    error_kind = "domain_error"


class NotFoundError(DomainException):
    """Scheduled entry, ledger transaction or recurrence group is absent"""

    error_kind = "not_found"


class InvalidStateError(DomainException):
    """Operation is not allowed in the entry's current status"""

    error_kind = "invalid_state"


class InvalidEntryError(DomainException):
    """Single scheduled entry carries an unusable value"""

    error_kind = "invalid_entry"


class InvalidRecurrenceError(DomainException):
    """Recurrence or installment definition cannot produce a usable schedule"""

    error_kind = "invalid_recurrence"


class StoreFailureError(DomainException):
    """Underlying persistence failed; the whole operation was rolled back"""

    error_kind = "store_failure"
