"""
Error taxonomy for the cashbook ledger.

Every error carries the HTTP status and the error code used in the
response envelope, so routes can simply let them propagate to the
exception handler registered in ``main.py``.
"""


class LedgerError(Exception):
    """Base class for ledger errors."""
    status_code = 500
    code = "SERVER_ERROR"
    default_message = "Ledger operation failed"

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Missing or malformed request fields."""
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request payload"


class NotFoundError(LedgerError):
    """Referenced transaction or branch does not exist."""
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class StateConflictError(LedgerError):
    """Operation conflicts with the current ledger state."""
    status_code = 409
    code = "CONFLICT"
    default_message = "Operation conflicts with current state"


class NotPendingError(StateConflictError):
    """Verifier action attempted on a transaction that is not pending."""
    status_code = 400
    code = "NOT_PENDING"
    default_message = "Transaction is not pending"


class VoucherAllocationError(StateConflictError):
    """Voucher allocation exhausted its retry budget."""
    code = "VOUCHER_EXHAUSTED"
    default_message = "Unable to generate unique voucher number"


class DependencyError(LedgerError):
    """The store, mail API or storage API failed."""
    status_code = 500
    code = "DEPENDENCY_ERROR"
    default_message = "Upstream dependency failed"
