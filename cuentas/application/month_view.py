"""
Month view read service: expand -> reconcile -> aggregate

Reads are side-effect free apart from the scope memo. Every result carries
the scope version it was computed at, which clients pass back to detect
staleness.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from cuentas.application.access import require_active_membership
from cuentas.application.sync import ScopeKey, ScopeCache, ScopeVersionService, get_scope_cache
from cuentas.config import get_settings
from cuentas.domain.aggregation import (
    compute_monthly_summary, compute_category_rollup, compute_savings_summary,
    compute_goal_progress, compute_group_financial_summary,
    MonthlySummary, CategoryStat, SavingsSummary, GoalStats, GroupFinancialSummary,
)
from cuentas.domain.calendar_math import month_index, from_month_index, is_open_ended
from cuentas.domain.expansion import (
    RecurringSpec, OneOffSpec, TransactionInstance,
    expand_scope, expand_range, recurring_spec_from_db, one_off_spec_from_db,
)
from cuentas.domain.obligation import validate_period
from cuentas.domain.reconciler import index_ledger, reconcile_all
from cuentas.infrastructure.db.models import (
    RecurringObligationModel, OneOffObligationModel, LedgerEntryModel,
)
from cuentas.utils.clock import local_today


@dataclass(frozen=True)
class ScopeView:
    """A computed view plus the scope version and date it was computed for."""
    version: int
    today: date
    data: Any


def summary_horizon(today: date, months_ahead: int) -> tuple[int, int]:
    """
    Last month up to which open-ended obligations are expanded for all-time
    summaries: today + months_ahead, but never before December of this year.
    """
    ahead = from_month_index(month_index(today.year, today.month) + months_ahead)
    return max(ahead, (today.year, 12))


class MonthViewService:
    """
    Read side for one group. Authorization is checked on every call, before
    the memo is consulted.
    """

    def __init__(self, db: Session, cache: ScopeCache | None = None, today: date | None = None):
        self.db = db
        self.cache = cache if cache is not None else get_scope_cache()
        self._today = today
        self.versions = ScopeVersionService(db)

    @property
    def today(self) -> date:
        return self._today or local_today()

    # --- loading ---

    def _load_specs(self, group_id: int) -> tuple[list[RecurringSpec], list[OneOffSpec]]:
        recurring = (
            self.db.query(RecurringObligationModel)
            .filter(RecurringObligationModel.group_id == group_id)
            .all()
        )
        one_offs = (
            self.db.query(OneOffObligationModel)
            .filter(OneOffObligationModel.group_id == group_id)
            .all()
        )
        return [recurring_spec_from_db(r) for r in recurring], [one_off_spec_from_db(r) for r in one_offs]

    def _ledger_totals(self, group_id: int, period: tuple[int, int] | None = None) -> dict:
        query = self.db.query(LedgerEntryModel).filter(LedgerEntryModel.group_id == group_id)
        if period is not None:
            query = query.filter(
                LedgerEntryModel.period_year == period[0],
                LedgerEntryModel.period_month == period[1],
            )
        return index_ledger(query.all())

    def _all_time_range(self, recurring: list[RecurringSpec], one_offs: list[OneOffSpec],
                        today: date) -> tuple[tuple[int, int], tuple[int, int]] | None:
        periods = [s.start for s in recurring] + [s.period for s in one_offs]
        if not periods:
            return None
        start = min(periods, key=lambda p: month_index(*p))
        # open-ended obligations never push the end past the horizon
        ends = [summary_horizon(today, get_settings().SUMMARY_HORIZON_MONTHS)]
        ends += [s.end for s in recurring if not is_open_ended(*s.end)]
        ends += [s.period for s in one_offs]
        end = max(ends, key=lambda p: month_index(*p))
        return start, end

    def _month_instances(self, group_id: int, year: int, month: int, today: date) -> list[TransactionInstance]:
        recurring, one_offs = self._load_specs(group_id)
        instances = expand_scope(recurring, one_offs, year, month)
        return reconcile_all(instances, self._ledger_totals(group_id, (year, month)), today)

    def _all_time_instances(self, group_id: int, today: date,
                            until: tuple[int, int] | None = None) -> list[TransactionInstance]:
        recurring, one_offs = self._load_specs(group_id)
        bounds = self._all_time_range(recurring, one_offs, today)
        if bounds is None:
            return []
        start, end = bounds
        horizon = summary_horizon(today, get_settings().SUMMARY_HORIZON_MONTHS)
        if until is not None:
            end = horizon = until
        if month_index(*start) > month_index(*end):
            return []
        instances = expand_range(recurring, one_offs, start, end, open_ended_until=horizon)
        return reconcile_all(instances, self._ledger_totals(group_id), today)

    # --- memo ---

    def _view(self, user_id: int, group_id: int, view: str, compute, year: int | None = None,
              month: int | None = None, force: bool = False) -> ScopeView:
        require_active_membership(self.db, user_id, group_id)
        today = self.today
        key = ScopeKey(user_id=user_id, group_id=group_id, year=year, month=month)
        version = self.versions.current_version(key)
        data = self.cache.get_or_compute(key, view, today, version, lambda: compute(today), force=force)
        return ScopeView(version=version, today=today, data=data)

    # --- operations ---

    def expand_and_reconcile(self, user_id: int, group_id: int, year: int, month: int,
                             force: bool = False) -> ScopeView:
        """Reconciled instances of (group, year, month) -> ScopeView[tuple[TransactionInstance]]"""
        year, month = validate_period(year, month)
        return self._view(
            user_id, group_id, "instances",
            lambda today: tuple(self._month_instances(group_id, year, month, today)),
            year, month, force,
        )

    def monthly_summary(self, user_id: int, group_id: int, year: int, month: int,
                        force: bool = False) -> ScopeView:
        year, month = validate_period(year, month)

        def compute(today: date) -> MonthlySummary:
            return compute_monthly_summary(self._month_instances(group_id, year, month, today), year, month)

        return self._view(user_id, group_id, "summary", compute, year, month, force)

    def category_rollup(self, user_id: int, group_id: int, year: int, month: int,
                        force: bool = False) -> ScopeView:
        year, month = validate_period(year, month)

        def compute(today: date) -> tuple[CategoryStat, ...]:
            return tuple(compute_category_rollup(self._month_instances(group_id, year, month, today)))

        return self._view(user_id, group_id, "categories", compute, year, month, force)

    def savings_summary(self, user_id: int, group_id: int, year: int, month: int,
                        force: bool = False) -> ScopeView:
        year, month = validate_period(year, month)

        def compute(today: date) -> SavingsSummary:
            month_instances = self._month_instances(group_id, year, month, today)
            history = self._all_time_instances(group_id, today, until=(year, month))
            return compute_savings_summary(month_instances, history, year, month)

        return self._view(user_id, group_id, "savings", compute, year, month, force)

    def goal_progress(self, user_id: int, group_id: int, force: bool = False) -> ScopeView:
        def compute(today: date) -> GoalStats:
            recurring, _ = self._load_specs(group_id)
            goals = [s for s in recurring if s.is_goal]
            if not goals:
                return compute_goal_progress([])
            start = min((s.start for s in goals), key=lambda p: month_index(*p))
            end = max((s.end for s in goals), key=lambda p: month_index(*p))
            instances = expand_range(goals, [], start, end)
            return compute_goal_progress(reconcile_all(instances, self._ledger_totals(group_id), today))

        return self._view(user_id, group_id, "goals", compute, force=force)

    def group_financial_summary(self, user_id: int, group_id: int, force: bool = False) -> ScopeView:
        def compute(today: date) -> GroupFinancialSummary:
            return compute_group_financial_summary(self._all_time_instances(group_id, today))

        return self._view(user_id, group_id, "group_summary", compute, force=force)
