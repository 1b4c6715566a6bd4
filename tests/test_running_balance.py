import random
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from cashledger.models.cash_transaction import CashTransaction
from cashledger.models.enums import BalanceMode, VerificationStatus
from cashledger.services.ledger import compute_running_balance, fold_running_balance

APPROVED = VerificationStatus.approved
PENDING = VerificationStatus.pending
REJECTED = VerificationStatus.rejected
AUTO = VerificationStatus.auto_approved


def entry(day, cash_in=0, cash_out=0, status=APPROVED, created=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        voucher_no=f"CO{day:03d}",
        transaction_date=date(2025, 3, day),
        created_at=created or datetime(2025, 3, day, 12, 0),
        cash_in=Decimal(cash_in),
        cash_out=Decimal(cash_out),
        verification_status=status,
    )


class TestFoldRunningBalance:
    def test_input_order_does_not_matter(self):
        history = [
            entry(1, cash_in=500),
            entry(2, cash_out=120),
            entry(2, cash_out=30, created=datetime(2025, 3, 2, 8, 0)),
            entry(5, cash_in=75, status=AUTO),
            entry(7, cash_out=400),
        ]
        expected = fold_running_balance("Kochi", Decimal("1000"), history)

        for seed in range(5):
            shuffled = list(history)
            random.Random(seed).shuffle(shuffled)
            result = fold_running_balance("Kochi", Decimal("1000"), shuffled)
            assert [line.running_balance for line in result.lines] == [line.running_balance for line in expected.lines]
        assert expected.closing_balance == Decimal("1025")

    def test_same_day_entries_follow_creation_time(self):
        late = entry(3, cash_out=100, created=datetime(2025, 3, 3, 18, 0))
        early = entry(3, cash_in=50, created=datetime(2025, 3, 3, 9, 0))
        result = fold_running_balance("Kochi", Decimal("100"), [late, early])
        assert [line.transaction for line in result.lines] == [early, late]
        assert [line.running_balance for line in result.lines] == [Decimal("150"), Decimal("50")]

    def test_rejected_never_counts(self):
        history = [entry(1, cash_in=100), entry(2, cash_out=80, status=REJECTED)]
        for mode in BalanceMode:
            assert fold_running_balance("Kochi", Decimal("0"), history, mode).closing_balance == Decimal("100")

    def test_pending_counts_only_provisionally(self):
        history = [entry(1, cash_in=100), entry(2, cash_in=40, status=PENDING)]
        assert fold_running_balance("Kochi", 0, history, BalanceMode.confirmed).closing_balance == Decimal("100")
        assert fold_running_balance("Kochi", 0, history, BalanceMode.provisional).closing_balance == Decimal("140")

    def test_as_of_stops_at_date(self):
        history = [entry(1, cash_in=100), entry(4, cash_out=30), entry(9, cash_out=50)]
        result = fold_running_balance("Kochi", Decimal("10"), history, as_of=date(2025, 3, 4))
        assert result.closing_balance == Decimal("80")
        assert len(result.lines) == 2

    def test_empty_history_is_opening_balance(self):
        result = fold_running_balance("Kochi", Decimal("250"), [])
        assert result.closing_balance == Decimal("250")
        assert result.lines == []

    def test_totals(self):
        result = fold_running_balance("Kochi", 0, [entry(1, cash_in=300), entry(2, cash_out=120)])
        assert result.total_cash_in == Decimal("300")
        assert result.total_cash_out == Decimal("120")
        summary = result.to_dict()
        assert summary["closing_balance"] == 180.0
        assert [line["voucher_no"] for line in summary["entries"]] == ["CO001", "CO002"]
        assert [line["running_balance"] for line in summary["entries"]] == [300.0, 180.0]


class TestComputeRunningBalance:
    def _add(self, db, staff_member, voucher_no, day, status, cash_in=0, cash_out=0, branch="Kochi"):
        db.add(CashTransaction(
            voucher_no=voucher_no, voucher_year=2025, branch=branch, staff_id=staff_member.id,
            transaction_date=date(2025, 3, 1) + timedelta(days=day), cash_in=cash_in, cash_out=cash_out,
            verification_status=status,
        ))
        db.commit()

    def test_reads_branch_history(self, db, kochi, staff_member):
        self._add(db, staff_member, "CI001", 0, APPROVED, cash_in=500)
        self._add(db, staff_member, "CO001", 1, REJECTED, cash_out=200)
        self._add(db, staff_member, "CO002", 2, PENDING, cash_out=300)
        self._add(db, staff_member, "CO001", 1, APPROVED, cash_out=999, branch="Thrissur")

        confirmed = compute_running_balance(db, "Kochi")
        provisional = compute_running_balance(db, "Kochi", mode=BalanceMode.provisional)
        assert confirmed.closing_balance == Decimal("1500")
        assert provisional.closing_balance == Decimal("1200")
        assert [line.transaction.voucher_no for line in provisional.lines] == ["CI001", "CO002"]

    def test_branch_lookup_ignores_case(self, db, kochi, staff_member):
        self._add(db, staff_member, "CI001", 0, AUTO, cash_in=20)
        assert compute_running_balance(db, "KOCHI").closing_balance == Decimal("1020")

    def test_unknown_branch_starts_at_zero(self, db):
        result = compute_running_balance(db, "Nowhere")
        assert result.opening_balance == Decimal("0")
        assert result.closing_balance == Decimal("0")

    def test_as_of_filters_in_the_query(self, db, kochi, staff_member):
        self._add(db, staff_member, "CI001", 0, APPROVED, cash_in=100)
        self._add(db, staff_member, "CI002", 10, APPROVED, cash_in=100)
        result = compute_running_balance(db, "Kochi", as_of=date(2025, 3, 5))
        assert result.closing_balance == Decimal("1100")
