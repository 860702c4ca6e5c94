"""
Payment ledger API endpoints
"""
from datetime import date

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.payments import (
    RecordPaymentUseCase, SettleInstanceUseCase, ClearInstancePaymentsUseCase,
    UpdatePaymentUseCase, DeletePaymentUseCase, list_instance_payments, load_payment,
)
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


# === Request/Response models ===

class InstanceRef(BaseModel):
    source: str
    source_id: int
    year: int
    month: int


class RecordPaymentRequest(InstanceRef):
    amount: int
    paid_at: date | None = None


class SettleRequest(InstanceRef):
    paid_at: date | None = None


class UpdatePaymentRequest(BaseModel):
    amount: int | None = None
    paid_at: date | None = None


class PaymentResponse(BaseModel):
    id: int
    group_id: int
    source: str
    source_id: int
    year: int
    month: int
    amount: int
    paid_at: date
    recorded_by: int


def _to_response(entry) -> PaymentResponse:
    return PaymentResponse(
        id=entry.id,
        group_id=entry.group_id,
        source=entry.source,
        source_id=entry.source_id,
        year=entry.period_year,
        month=entry.period_month,
        amount=entry.amount,
        paid_at=entry.paid_at,
        recorded_by=entry.recorded_by,
    )


# === Endpoints ===

@router.get("", response_model=list[PaymentResponse])
def get_payments(
    source: str, source_id: int, year: int, month: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Платежи одного экземпляра"""
    return [_to_response(e) for e in list_instance_payments(db, user.id, source, source_id, year, month)]


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def record_payment(req: RecordPaymentRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Записать платёж (полный или частичный)"""
    payment_id = RecordPaymentUseCase(db).execute(
        actor_user_id=user.id,
        source=req.source,
        source_id=req.source_id,
        year=req.year,
        month=req.month,
        amount=req.amount,
        paid_at=req.paid_at,
    )
    return _to_response(load_payment(db, user.id, payment_id))


@router.post("/settle")
def settle_instance(req: SettleRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Отметить экземпляр оплаченным (доплатить остаток)"""
    payment_id = SettleInstanceUseCase(db).execute(
        actor_user_id=user.id,
        source=req.source,
        source_id=req.source_id,
        year=req.year,
        month=req.month,
        paid_at=req.paid_at,
    )
    return {"payment_id": payment_id}


@router.post("/clear")
def clear_instance(req: InstanceRef, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Снять отметку об оплате"""
    deleted = ClearInstancePaymentsUseCase(db).execute(
        actor_user_id=user.id, source=req.source, source_id=req.source_id, year=req.year, month=req.month
    )
    return {"deleted": deleted}


@router.patch("/{payment_id}", response_model=PaymentResponse)
def update_payment(
    payment_id: int,
    req: UpdatePaymentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    UpdatePaymentUseCase(db).execute(
        actor_user_id=user.id, payment_id=payment_id, amount=req.amount, paid_at=req.paid_at
    )
    return _to_response(load_payment(db, user.id, payment_id))


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    DeletePaymentUseCase(db).execute(actor_user_id=user.id, payment_id=payment_id)
