# cashledger/models/enums.py
import enum


class TransactionKind(enum.Enum):
    cash_in = "cash_in"
    cash_out = "cash_out"


VOUCHER_PREFIXES = {
    TransactionKind.cash_in: "CI",
    TransactionKind.cash_out: "CO",
}


class VerificationStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    auto_approved = "auto_approved"


class BillStatus(enum.Enum):
    paid = "Paid"
    pending = "Pending"
    cancelled = "Cancelled"
    yet_to_pay = "Yet to pay"
    refund = "Refund"


class Scenario(enum.Enum):
    pending = "pending"
    auto_approved = "autoApproved"
    approved = "approved"
    rejected = "rejected"


class BalanceMode(enum.Enum):
    confirmed = "confirmed"      # approved + auto-approved rows only
    provisional = "provisional"  # pending rows count as well


class NotificationType(enum.Enum):
    cashbook_entry = "cashbook_entry"
    transaction_approved = "cashbook_transaction_approved"
    transaction_rejected = "cashbook_transaction_rejected"
