"""
Month view API endpoints (instances, summaries, savings, goals)

Every response carries the scope ``version`` it was computed at; pass
``force=true`` to bypass the memo after a local write.
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.month_view import MonthViewService, ScopeView
from cuentas.domain.aggregation import (
    MonthlySummary, CategoryStat, SavingsSummary, GoalStats, GroupFinancialSummary,
)
from cuentas.domain.expansion import TransactionInstance
from cuentas.domain.reconciler import outstanding_amount
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/groups/{group_id}", tags=["months"])


# === Serializers ===

def instance_to_dict(inst: TransactionInstance) -> dict:
    return {
        "id": inst.id,
        "source": inst.source,
        "source_id": inst.source_id,
        "kind": inst.kind.value,
        "description": inst.description,
        "direction": inst.direction,
        "category": inst.category,
        "amount": inst.amount,
        "period": {"year": inst.year, "month": inst.month},
        "deadline": inst.deadline.isoformat() if inst.deadline else None,
        "is_goal": inst.is_goal,
        "status": inst.status,
        "paid_amount": inst.paid_amount,
        "outstanding_amount": outstanding_amount(inst),
    }


def summary_to_dict(summary: MonthlySummary) -> dict:
    return {**asdict(summary), "has_overdue": summary.has_overdue}


def category_to_dict(stat: CategoryStat) -> dict:
    return {**asdict(stat), "has_overdue": stat.has_overdue}


def goals_to_dict(stats: GoalStats) -> dict:
    return {
        "total_goals": stats.total_goals,
        "completed": stats.completed,
        "in_progress": stats.in_progress,
        "total_value": stats.total_value,
        "paid_value": stats.paid_value,
        "goals": [
            {
                "source_id": g.source_id,
                "description": g.description,
                "category": g.category,
                "installments": g.installments,
                "total_value": g.total_value,
                "paid_value": g.paid_value,
                "progress": g.progress,
                "is_completed": g.is_completed,
                "paid_count": g.paid_count,
                "pending_count": g.pending_count,
                "overdue_count": g.overdue_count,
                "instances": [instance_to_dict(i) for i in g.instances],
            }
            for g in stats.goals
        ],
    }


def group_summary_to_dict(summary: GroupFinancialSummary) -> dict:
    return {
        "total_income": summary.total_income,
        "total_expense": summary.total_expense,
        "total": summary.total,
    }


def _envelope(view: ScopeView, data) -> dict:
    return {"version": view.version, "today": view.today.isoformat(), "data": data}


# === Endpoints ===

@router.get("/months/{year}/{month}/instances")
def get_instances(
    group_id: int, year: int, month: int, force: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Экземпляры месяца со статусами"""
    view = MonthViewService(db).expand_and_reconcile(user.id, group_id, year, month, force=force)
    return _envelope(view, [instance_to_dict(i) for i in view.data])


@router.get("/months/{year}/{month}/summary")
def get_monthly_summary(
    group_id: int, year: int, month: int, force: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    view = MonthViewService(db).monthly_summary(user.id, group_id, year, month, force=force)
    return _envelope(view, summary_to_dict(view.data))


@router.get("/months/{year}/{month}/categories")
def get_category_rollup(
    group_id: int, year: int, month: int, force: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    view = MonthViewService(db).category_rollup(user.id, group_id, year, month, force=force)
    return _envelope(view, [category_to_dict(s) for s in view.data])


@router.get("/months/{year}/{month}/savings")
def get_savings(
    group_id: int, year: int, month: int, force: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    view = MonthViewService(db).savings_summary(user.id, group_id, year, month, force=force)
    data: SavingsSummary = view.data
    return _envelope(view, asdict(data))


@router.get("/goals")
def get_goals(
    group_id: int, force: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Прогресс по целям группы"""
    view = MonthViewService(db).goal_progress(user.id, group_id, force=force)
    return _envelope(view, goals_to_dict(view.data))


@router.get("/summary")
def get_group_summary(
    group_id: int, force: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Итоги группы за всё время"""
    view = MonthViewService(db).group_financial_summary(user.id, group_id, force=force)
    return _envelope(view, group_summary_to_dict(view.data))
