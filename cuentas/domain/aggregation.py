"""
Aggregation of reconciled instances into the summaries every view consumes.

Pure functions of the instance list: no DB access, no hidden state.

Blocks:
  1. Monthly summary (income/expense totals, paid/pending/overdue, progress %)
  2. Category rollup (expenses by category, savings excluded)
  3. Savings tracking (month + lifetime accumulation)
  4. Goal progress (per goal obligation over its whole range)
  5. Group financial summary (all-time income/expense)
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from cuentas.domain.calendar_math import month_index
from cuentas.domain.expansion import TransactionInstance
from cuentas.domain.movement import (
    DIRECTION_INCOME, DIRECTION_EXPENSE, CATEGORY_SAVINGS,
    STATUS_PAID, STATUS_PENDING, STATUS_OVERDUE,
)
from cuentas.domain.reconciler import applied_amount, outstanding_amount

# A month with overdue debt is never shown as fully paid
MAX_PERCENT_WITH_OVERDUE = 99


def percent(part: int, total: int) -> int:
    """round(part / total * 100) with half-up rounding on integers; 0 when total is 0."""
    if total <= 0:
        return 0
    return (part * 200 + total) // (total * 2)


def capped_percent(part: int, total: int, has_overdue: bool) -> int:
    value = percent(part, total)
    if has_overdue:
        return min(value, MAX_PERCENT_WITH_OVERDUE)
    return value


def is_savings_instance(inst: TransactionInstance) -> bool:
    return inst.category == CATEGORY_SAVINGS or inst.is_goal


# ----------------------------------------------------------------------
# 1. Monthly summary
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class MonthlySummary:
    year: int
    month: int
    total_income: int
    total_expense: int
    paid_expense: int
    pending_expense: int
    overdue_expense: int
    unpaid_expense: int
    remaining: int
    paid_percentage: int
    overdue_percentage: int
    paid_count: int
    pending_count: int
    overdue_count: int

    @property
    def has_overdue(self) -> bool:
        return self.overdue_expense > 0


def compute_monthly_summary(instances: Iterable[TransactionInstance], year: int, month: int) -> MonthlySummary:
    total_income = 0
    sums = {STATUS_PAID: 0, STATUS_PENDING: 0, STATUS_OVERDUE: 0}
    counts = {STATUS_PAID: 0, STATUS_PENDING: 0, STATUS_OVERDUE: 0}

    for inst in instances:
        if inst.direction == DIRECTION_INCOME:
            total_income += inst.amount
            continue
        sums[inst.status] += inst.amount
        counts[inst.status] += 1

    total_expense = sum(sums.values())
    overdue = sums[STATUS_OVERDUE]
    return MonthlySummary(
        year=year,
        month=month,
        total_income=total_income,
        total_expense=total_expense,
        paid_expense=sums[STATUS_PAID],
        pending_expense=sums[STATUS_PENDING],
        overdue_expense=overdue,
        unpaid_expense=total_expense - sums[STATUS_PAID],
        remaining=total_income - total_expense,
        paid_percentage=capped_percent(sums[STATUS_PAID], total_expense, overdue > 0),
        overdue_percentage=percent(overdue, total_expense),
        paid_count=counts[STATUS_PAID],
        pending_count=counts[STATUS_PENDING],
        overdue_count=counts[STATUS_OVERDUE],
    )


# ----------------------------------------------------------------------
# 2. Category rollup
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class CategoryStat:
    category: str
    count: int
    total_amount: int
    paid_amount: int
    overdue_count: int

    @property
    def has_overdue(self) -> bool:
        return self.overdue_count > 0


def compute_category_rollup(instances: Iterable[TransactionInstance]) -> list[CategoryStat]:
    """Expense instances by category (savings excluded), most transactions first."""
    buckets: dict[str, list[TransactionInstance]] = defaultdict(list)
    for inst in instances:
        if inst.direction != DIRECTION_EXPENSE or inst.category == CATEGORY_SAVINGS:
            continue
        buckets[inst.category].append(inst)

    stats = [
        CategoryStat(
            category=category,
            count=len(items),
            total_amount=sum(i.amount for i in items),
            paid_amount=sum(i.amount for i in items if i.status == STATUS_PAID),
            overdue_count=sum(1 for i in items if i.status == STATUS_OVERDUE),
        )
        for category, items in buckets.items()
    ]
    stats.sort(key=lambda s: (-s.count, s.category))
    return stats


# ----------------------------------------------------------------------
# 3. Savings
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class SavingsSummary:
    year: int
    month: int
    planned: int
    saved_this_month: int
    income_saved_percentage: int
    overdue_amount: int
    overdue_count: int
    lifetime_saved: int


def compute_savings_summary(
    month_instances: Iterable[TransactionInstance],
    history: Iterable[TransactionInstance],
    year: int,
    month: int,
) -> SavingsSummary:
    """
    Args:
        month_instances: reconciled instances of the (year, month) scope
        history: reconciled instances of every period up to the scope
            (periods after the scope are ignored)
    """
    month_instances = list(month_instances)
    total_income = sum(i.amount for i in month_instances if i.direction == DIRECTION_INCOME)
    savings = [i for i in month_instances if is_savings_instance(i)]
    overdue = [i for i in savings if i.status == STATUS_OVERDUE]
    saved = sum(applied_amount(i) for i in savings)

    scope_idx = month_index(year, month)
    lifetime = sum(
        applied_amount(i) for i in history
        if is_savings_instance(i) and month_index(i.year, i.month) <= scope_idx
    )

    return SavingsSummary(
        year=year,
        month=month,
        planned=sum(i.amount for i in savings),
        saved_this_month=saved,
        income_saved_percentage=percent(saved, total_income),
        overdue_amount=sum(outstanding_amount(i) for i in overdue),
        overdue_count=len(overdue),
        lifetime_saved=lifetime,
    )


# ----------------------------------------------------------------------
# 4. Goals
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class GoalProgress:
    source_id: int
    description: str
    category: str
    installments: int
    total_value: int
    paid_value: int
    progress: int
    paid_count: int
    pending_count: int
    overdue_count: int
    instances: tuple[TransactionInstance, ...] = field(default=(), repr=False)

    @property
    def is_completed(self) -> bool:
        return self.paid_count == self.installments


@dataclass(frozen=True)
class GoalStats:
    total_goals: int
    completed: int
    in_progress: int
    total_value: int
    paid_value: int
    goals: tuple[GoalProgress, ...]


def compute_goal_progress(instances: Iterable[TransactionInstance]) -> GoalStats:
    """Group goal instances by their obligation and compute per-goal progress."""
    groups: dict[tuple[str, int], list[TransactionInstance]] = defaultdict(list)
    for inst in instances:
        if inst.is_goal:
            groups[(inst.source, inst.source_id)].append(inst)

    goals = []
    for (_, source_id), items in sorted(groups.items()):
        total = sum(i.amount for i in items)
        paid = sum(i.amount for i in items if i.status == STATUS_PAID)
        overdue_count = sum(1 for i in items if i.status == STATUS_OVERDUE)
        goals.append(GoalProgress(
            source_id=source_id,
            description=items[0].description,
            category=items[0].category,
            installments=len(items),
            total_value=total,
            paid_value=paid,
            progress=capped_percent(paid, total, overdue_count > 0),
            paid_count=sum(1 for i in items if i.status == STATUS_PAID),
            pending_count=sum(1 for i in items if i.status == STATUS_PENDING),
            overdue_count=overdue_count,
            instances=tuple(items),
        ))

    completed = sum(1 for g in goals if g.is_completed)
    return GoalStats(
        total_goals=len(goals),
        completed=completed,
        in_progress=len(goals) - completed,
        total_value=sum(g.total_value for g in goals),
        paid_value=sum(g.paid_value for g in goals),
        goals=tuple(goals),
    )


# ----------------------------------------------------------------------
# 5. Group financial summary
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class GroupFinancialSummary:
    total_income: int = 0
    total_expense: int = 0

    @property
    def total(self) -> int:
        return self.total_income - self.total_expense


def compute_group_financial_summary(instances: Iterable[TransactionInstance]) -> GroupFinancialSummary:
    income = expense = 0
    for inst in instances:
        if inst.direction == DIRECTION_INCOME:
            income += inst.amount
        else:
            expense += inst.amount
    return GroupFinancialSummary(total_income=income, total_expense=expense)
