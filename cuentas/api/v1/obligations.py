"""
Obligation API endpoints
"""
from datetime import date

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.obligations import (
    CreateObligationUseCase, UpdateObligationUseCase, DeleteObligationUseCase,
    list_obligations, load_obligation,
)
from cuentas.domain.calendar_math import is_open_ended
from cuentas.domain.movement import SOURCE_RECURRING, SOURCE_ONE_OFF
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1", tags=["obligations"])


# === Request/Response models ===

class Period(BaseModel):
    year: int
    month: int

    def as_tuple(self) -> tuple[int, int]:
        return (self.year, self.month)


class CreateObligationRequest(BaseModel):
    source: str  # recurring | one_off
    description: str
    amount: int  # minor currency units
    direction: str  # income | expense
    period: Period
    category: str | None = None
    period_end: Period | None = None
    installments: int | None = None
    payment_day: int | None = None
    is_goal: bool = False
    deadline: date | None = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()


class UpdateObligationRequest(BaseModel):
    description: str | None = None
    amount: int | None = None
    direction: str | None = None
    category: str | None = None
    period_start: Period | None = None
    period_end: Period | None = None
    installments: int | None = None
    payment_day: int | None = None
    is_goal: bool | None = None
    period: Period | None = None
    deadline: date | None = None


class ObligationResponse(BaseModel):
    source: str
    id: int
    group_id: int
    description: str
    amount: int
    direction: str
    category: str
    kind: str
    period_start: Period | None = None
    period_end: Period | None = None
    payment_day: int | None = None
    is_goal: bool = False
    period: Period | None = None
    deadline: date | None = None


def _to_response(source: str, row) -> ObligationResponse:
    common = dict(
        source=source,
        id=row.id,
        group_id=row.group_id,
        description=row.description,
        amount=row.amount,
        direction=row.direction,
        category=row.category,
        kind=row.kind,
    )
    if source == SOURCE_RECURRING:
        end = None if is_open_ended(row.end_year, row.end_month) else Period(year=row.end_year, month=row.end_month)
        return ObligationResponse(
            **common,
            period_start=Period(year=row.start_year, month=row.start_month),
            period_end=end,
            payment_day=row.payment_day,
            is_goal=row.is_goal,
        )
    return ObligationResponse(**common, period=Period(year=row.year, month=row.month), deadline=row.deadline)


# === Endpoints ===

@router.get("/groups/{group_id}/obligations", response_model=list[ObligationResponse])
def get_obligations(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Объявленные обязательства группы"""
    recurring, one_offs = list_obligations(db, user.id, group_id)
    return (
        [_to_response(SOURCE_RECURRING, r) for r in recurring]
        + [_to_response(SOURCE_ONE_OFF, r) for r in one_offs]
    )


@router.post("/groups/{group_id}/obligations", response_model=ObligationResponse,
             status_code=status.HTTP_201_CREATED)
def create_obligation(
    group_id: int,
    req: CreateObligationRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Создать обязательство"""
    obligation_id = CreateObligationUseCase(db).execute(
        actor_user_id=user.id,
        group_id=group_id,
        source=req.source,
        description=req.description,
        amount=req.amount,
        direction=req.direction,
        period=req.period.as_tuple(),
        category=req.category,
        period_end=req.period_end.as_tuple() if req.period_end else None,
        installments=req.installments,
        payment_day=req.payment_day,
        is_goal=req.is_goal,
        deadline=req.deadline,
    )
    return _to_response(req.source, load_obligation(db, user.id, req.source, obligation_id))


@router.patch("/obligations/{source}/{obligation_id}", response_model=ObligationResponse)
def update_obligation(
    source: str,
    obligation_id: int,
    req: UpdateObligationRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Изменить обязательство (только переданные поля)"""
    changes = req.model_dump(exclude_unset=True)
    for key in ("period_start", "period_end", "period"):
        if changes.get(key) is not None:
            changes[key] = (changes[key]["year"], changes[key]["month"])

    UpdateObligationUseCase(db).execute(
        actor_user_id=user.id, source=source, obligation_id=obligation_id, changes=changes
    )
    return _to_response(source, load_obligation(db, user.id, source, obligation_id))


@router.delete("/obligations/{source}/{obligation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_obligation(
    source: str,
    obligation_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    DeleteObligationUseCase(db).execute(actor_user_id=user.id, source=source, obligation_id=obligation_id)
