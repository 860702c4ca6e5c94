"""Tests for status reconciliation"""
from dataclasses import dataclass
from datetime import date, datetime

from cuentas.domain.expansion import TransactionInstance
from cuentas.domain.movement import MovementKind, STATUS_PAID, STATUS_PENDING, STATUS_OVERDUE
from cuentas.domain.reconciler import (
    derive_status, index_ledger, reconcile, reconcile_all, outstanding_amount, applied_amount,
)

TODAY = date(2025, 6, 10)


def instance(amount=100, deadline=date(2025, 6, 5), source_id=1, month=6):
    return TransactionInstance(
        id=f"i-{source_id}-{month}", source="recurring", source_id=source_id, group_id=1,
        kind=MovementKind.RECURRING_EXPENSE, description="Internet", direction="expense",
        category="Servicios", amount=amount, year=2025, month=month, deadline=deadline,
    )


@dataclass
class Entry:
    source: str
    source_id: int
    period_year: int
    period_month: int
    amount: int


class TestDeriveStatus:
    def test_partial_payments_accumulate_to_paid(self):
        """30 + 70 = 100 -> paid"""
        assert derive_status(100, 30 + 70, date(2025, 6, 5), TODAY) == STATUS_PAID

    def test_partial_payment_before_deadline_pending(self):
        assert derive_status(100, 99, date(2025, 6, 15), TODAY) == STATUS_PENDING

    def test_partial_payment_after_deadline_overdue(self):
        assert derive_status(100, 99, date(2025, 6, 5), TODAY) == STATUS_OVERDUE

    def test_deadline_today_is_pending(self):
        assert derive_status(100, 0, TODAY, TODAY) == STATUS_PENDING

    def test_deadline_yesterday_is_overdue(self):
        assert derive_status(100, 0, date(2025, 6, 9), TODAY) == STATUS_OVERDUE

    def test_no_deadline_never_overdue(self):
        assert derive_status(100, 0, None, date(2099, 1, 1)) == STATUS_PENDING

    def test_overpayment_is_paid(self):
        assert derive_status(100, 150, None, TODAY) == STATUS_PAID

    def test_time_of_day_ignored(self):
        assert derive_status(100, 0, date(2025, 6, 10), datetime(2025, 6, 10, 23, 59)) == STATUS_PENDING


class TestLedgerIndex:
    def test_sums_per_instance_key(self):
        totals = index_ledger([
            Entry("recurring", 1, 2025, 6, 30),
            Entry("recurring", 1, 2025, 6, 70),
            Entry("recurring", 1, 2025, 7, 10),
            Entry("one_off", 1, 2025, 6, 5),
        ])
        assert totals[("recurring", 1, 2025, 6)] == 100
        assert totals[("recurring", 1, 2025, 7)] == 10
        assert totals[("one_off", 1, 2025, 6)] == 5


class TestReconcile:
    def test_reconcile_sets_status_and_paid_amount(self):
        inst = reconcile(instance(), 40, TODAY)
        assert inst.status == STATUS_OVERDUE
        assert inst.paid_amount == 40
        assert outstanding_amount(inst) == 60

    def test_reconcile_all_matches_by_period(self):
        june, july = instance(month=6), instance(month=7, deadline=date(2025, 7, 5))
        result = reconcile_all([june, july], {("recurring", 1, 2025, 6): 100}, TODAY)
        assert [i.status for i in result] == [STATUS_PAID, STATUS_PENDING]

    def test_does_not_mutate_input(self):
        inst = instance()
        reconcile(inst, 100, TODAY)
        assert inst.status == STATUS_PENDING
        assert inst.paid_amount == 0

    def test_applied_amount_ignores_overpayment(self):
        inst = reconcile(instance(), 150, TODAY)
        assert applied_amount(inst) == 100
        assert outstanding_amount(inst) == 0
