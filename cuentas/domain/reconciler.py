"""
Status reconciliation for transaction instances.

    paid_amount = sum of ledger entries tagged with (source, source_id, year, month)
    status      = paid     if paid_amount >= amount
                  pending  if deadline is None or deadline >= today
                  overdue  otherwise

Dates are compared as calendar dates only; a deadline equal to today is still
pending. Nothing is stored: the passage of time alone changes the status, so
it is recomputed on every read.
"""
from collections import defaultdict
from datetime import date, datetime
from typing import Iterable

from cuentas.domain.expansion import TransactionInstance, with_status
from cuentas.domain.movement import STATUS_PAID, STATUS_PENDING, STATUS_OVERDUE


def _as_date(value: date) -> date:
    # datetime is a subclass of date: drop the time part
    if isinstance(value, datetime):
        return value.date()
    return value


def derive_status(amount: int, paid_amount: int, deadline: date | None, today: date) -> str:
    if paid_amount >= amount:
        return STATUS_PAID
    if deadline is None or _as_date(deadline) >= _as_date(today):
        return STATUS_PENDING
    return STATUS_OVERDUE


def index_ledger(entries: Iterable) -> dict[tuple[str, int, int, int], int]:
    """Sum ledger entries (any object with source/source_id/period_year/period_month/amount) per instance key."""
    totals: dict[tuple[str, int, int, int], int] = defaultdict(int)
    for e in entries:
        totals[(e.source, e.source_id, e.period_year, e.period_month)] += e.amount
    return dict(totals)


def reconcile(inst: TransactionInstance, paid_amount: int, today: date) -> TransactionInstance:
    status = derive_status(inst.amount, paid_amount, inst.deadline, today)
    return with_status(inst, status, paid_amount)


def reconcile_all(
    instances: Iterable[TransactionInstance],
    ledger_totals: dict[tuple[str, int, int, int], int],
    today: date,
) -> list[TransactionInstance]:
    return [reconcile(inst, ledger_totals.get(inst.ledger_key, 0), today) for inst in instances]


def outstanding_amount(inst: TransactionInstance) -> int:
    return max(inst.amount - inst.paid_amount, 0)


def applied_amount(inst: TransactionInstance) -> int:
    """Part of the payments that counts toward the instance (overpayment ignored)."""
    return min(inst.paid_amount, inst.amount)
