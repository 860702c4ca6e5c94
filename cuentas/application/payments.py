"""
Payment ledger use cases - partial payments ("abonos") applied to instances

An instance is identified by (source, source_id, year, month). Several
entries may apply to one instance; it becomes paid once their sum reaches
the instance amount. Overpayment is accepted and recorded as is.
"""
import logging
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from cuentas.application.access import get_membership
from cuentas.application.obligations import load_obligation, obligation_spec
from cuentas.application.sync import ScopeVersionService
from cuentas.application.tx import atomic
from cuentas.domain.errors import PaymentNotFound, ValidationError
from cuentas.domain.expansion import (
    TransactionInstance, RecurringSpec, expand_recurring, expand_one_off,
)
from cuentas.domain.membership import STATUS_ACTIVE
from cuentas.domain.obligation import validate_amount, validate_period
from cuentas.infrastructure.db.models import LedgerEntryModel
from cuentas.infrastructure.eventlog.repository import EventLogRepository
from cuentas.utils.clock import local_today

logger = logging.getLogger(__name__)


def validate_paid_at(paid_at) -> date:
    if paid_at is None:
        return local_today()
    if not isinstance(paid_at, date):
        raise ValidationError("paid_at", "Некорректная дата оплаты")
    return paid_at


def resolve_instance(db: Session, user_id: int, source: str, source_id: int,
                     year: int, month: int) -> TransactionInstance:
    """
    Expand the single instance a payment refers to.

    Raises:
        ObligationNotFound: obligation missing or not visible to the user
        ValidationError: the obligation has no instance in (year, month)
    """
    year, month = validate_period(year, month, field="period")
    row = load_obligation(db, user_id, source, source_id)
    spec = obligation_spec(source, row)
    if isinstance(spec, RecurringSpec):
        inst = expand_recurring(spec, year, month)
    else:
        inst = expand_one_off(spec, year, month)
    if inst is None:
        raise ValidationError("period", "Обязательство не действует в этом месяце")
    return inst


def _paid_total(db: Session, inst: TransactionInstance) -> int:
    total = (
        db.query(func.coalesce(func.sum(LedgerEntryModel.amount), 0))
        .filter(*_instance_filter(inst))
        .scalar()
    )
    return int(total)


def _instance_filter(inst: TransactionInstance):
    return (
        LedgerEntryModel.group_id == inst.group_id,
        LedgerEntryModel.source == inst.source,
        LedgerEntryModel.source_id == inst.source_id,
        LedgerEntryModel.period_year == inst.year,
        LedgerEntryModel.period_month == inst.month,
    )


def load_payment(db: Session, user_id: int, payment_id: int) -> LedgerEntryModel:
    """
    Raises:
        PaymentNotFound: missing, or outside the user's active groups
    """
    entry = db.query(LedgerEntryModel).filter(LedgerEntryModel.id == payment_id).first()
    if entry is None:
        raise PaymentNotFound("Платёж не найден")
    membership = get_membership(db, user_id, entry.group_id)
    if membership is None or membership.status != STATUS_ACTIVE:
        logger.warning("User %s requested payment %s outside their groups", user_id, payment_id)
        raise PaymentNotFound("Платёж не найден")
    return entry


def _payment_payload(entry: LedgerEntryModel) -> dict:
    return {
        "payment_id": entry.id,
        "source": entry.source,
        "source_id": entry.source_id,
        "period": [entry.period_year, entry.period_month],
        "amount": entry.amount,
        "paid_at": entry.paid_at.isoformat(),
    }


class _LedgerUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.versions = ScopeVersionService(db)

    def _add_entry(self, actor_user_id: int, inst: TransactionInstance, amount: int, paid_at: date,
                   event_type: str) -> LedgerEntryModel:
        entry = LedgerEntryModel(
            group_id=inst.group_id,
            recorded_by=actor_user_id,
            source=inst.source,
            source_id=inst.source_id,
            period_year=inst.year,
            period_month=inst.month,
            amount=amount,
            paid_at=paid_at,
        )
        self.db.add(entry)
        self.db.flush()
        self.event_repo.append_event(
            group_id=inst.group_id,
            event_type=event_type,
            payload={**_payment_payload(entry), "description": inst.description},
            actor_user_id=actor_user_id,
        )
        self.versions.invalidate_group(inst.group_id)
        return entry


class RecordPaymentUseCase(_LedgerUseCase):
    """
    Use case: Записать платёж (абонемент) по экземпляру
    """

    def execute(
        self,
        actor_user_id: int,
        source: str,
        source_id: int,
        year: int,
        month: int,
        amount: int,
        paid_at: date | None = None,
    ) -> int:
        """
        Returns:
            payment_id
        """
        inst = resolve_instance(self.db, actor_user_id, source, source_id, year, month)
        amount = validate_amount(amount)
        paid_at = validate_paid_at(paid_at)

        with atomic(self.db):
            entry = self._add_entry(actor_user_id, inst, amount, paid_at, "payment_recorded")

        logger.info("Payment %s recorded: %s #%s %04d-%02d amount=%s", entry.id, source, source_id,
                    year, month, amount)
        return entry.id


class SettleInstanceUseCase(_LedgerUseCase):
    """
    Use case: Отметить экземпляр оплаченным (записать остаток суммы)

    Idempotent: an already paid instance gets no new entry.
    """

    def execute(self, actor_user_id: int, source: str, source_id: int, year: int, month: int,
                paid_at: date | None = None) -> int | None:
        """
        Returns:
            payment_id of the settling entry, or None if already paid
        """
        inst = resolve_instance(self.db, actor_user_id, source, source_id, year, month)
        paid_at = validate_paid_at(paid_at)
        outstanding = inst.amount - _paid_total(self.db, inst)
        if outstanding <= 0:
            return None

        with atomic(self.db):
            entry = self._add_entry(actor_user_id, inst, outstanding, paid_at, "instance_settled")

        logger.info("Instance settled: %s #%s %04d-%02d outstanding=%s", source, source_id, year, month,
                    outstanding)
        return entry.id


class ClearInstancePaymentsUseCase(_LedgerUseCase):
    """
    Use case: Снять отметку об оплате (удалить все платежи экземпляра)
    """

    def execute(self, actor_user_id: int, source: str, source_id: int, year: int, month: int) -> int:
        """
        Returns:
            number of deleted entries
        """
        inst = resolve_instance(self.db, actor_user_id, source, source_id, year, month)

        with atomic(self.db):
            deleted = (
                self.db.query(LedgerEntryModel)
                .filter(*_instance_filter(inst))
                .delete(synchronize_session=False)
            )
            if deleted:
                self.event_repo.append_event(
                    group_id=inst.group_id,
                    event_type="instance_payments_cleared",
                    payload={
                        "source": source,
                        "source_id": source_id,
                        "period": [year, month],
                        "deleted": deleted,
                    },
                    actor_user_id=actor_user_id,
                )
                self.versions.invalidate_group(inst.group_id)

        return deleted


class UpdatePaymentUseCase(_LedgerUseCase):
    """
    Use case: Изменить сумму или дату платежа
    """

    def execute(self, actor_user_id: int, payment_id: int, amount: int | None = None,
                paid_at: date | None = None) -> None:
        entry = load_payment(self.db, actor_user_id, payment_id)
        if amount is None and paid_at is None:
            return
        new_amount = validate_amount(amount) if amount is not None else entry.amount
        new_paid_at = validate_paid_at(paid_at) if paid_at is not None else entry.paid_at

        with atomic(self.db):
            previous = entry.amount
            entry.amount = new_amount
            entry.paid_at = new_paid_at
            self.db.flush()
            self.event_repo.append_event(
                group_id=entry.group_id,
                event_type="payment_updated",
                payload={**_payment_payload(entry), "previous_amount": previous},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(entry.group_id)

        logger.info("Payment %s updated by user %s", payment_id, actor_user_id)


class DeletePaymentUseCase(_LedgerUseCase):
    """
    Use case: Удалить платёж
    """

    def execute(self, actor_user_id: int, payment_id: int) -> None:
        entry = load_payment(self.db, actor_user_id, payment_id)
        group_id = entry.group_id
        payload = _payment_payload(entry)

        with atomic(self.db):
            self.db.delete(entry)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="payment_deleted",
                payload=payload,
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Payment %s deleted by user %s", payment_id, actor_user_id)


def list_instance_payments(db: Session, user_id: int, source: str, source_id: int,
                           year: int, month: int) -> list[LedgerEntryModel]:
    """Ledger entries of one instance, oldest first."""
    inst = resolve_instance(db, user_id, source, source_id, year, month)
    return (
        db.query(LedgerEntryModel)
        .filter(*_instance_filter(inst))
        .order_by(LedgerEntryModel.paid_at.asc(), LedgerEntryModel.id.asc())
        .all()
    )
