"""
Obligation use cases - create / update / delete recurring and one-off obligations

Every write:
1. Checks the caller's active membership in the obligation's group
2. Validates all fields before touching the session
3. Resolves and stores the MovementKind
4. Appends a group event and bumps the group's scope versions
5. Commits all of the above together
"""
import logging
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from cuentas.application.access import require_active_membership, get_membership
from cuentas.application.sync import ScopeVersionService
from cuentas.application.tx import atomic
from cuentas.domain.errors import ObligationNotFound, ValidationError
from cuentas.domain.expansion import (
    RecurringSpec, OneOffSpec, recurring_spec_from_db, one_off_spec_from_db,
)
from cuentas.domain.membership import STATUS_ACTIVE
from cuentas.domain.movement import (
    SOURCE_RECURRING, VALID_SOURCES, VALID_DIRECTIONS,
    normalize_category, resolve_movement_kind,
)
from cuentas.domain.obligation import (
    validate_description, validate_amount, validate_period, validate_payment_day,
    validate_deadline, resolve_recurring_range,
)
from cuentas.infrastructure.db.models import (
    RecurringObligationModel, OneOffObligationModel, LedgerEntryModel,
)
from cuentas.infrastructure.eventlog.repository import EventLogRepository

logger = logging.getLogger(__name__)

RECURRING_FIELDS = frozenset({
    "description", "amount", "direction", "category",
    "period_start", "period_end", "installments", "payment_day", "is_goal",
})
ONE_OFF_FIELDS = frozenset({
    "description", "amount", "direction", "category", "period", "deadline",
})


def validate_source(source: str) -> str:
    if source not in VALID_SOURCES:
        raise ValidationError("source", f"Неверный источник: {source}")
    return source


def validate_direction(direction: str) -> str:
    if direction not in VALID_DIRECTIONS:
        raise ValidationError("direction", f"Неверное направление: {direction}")
    return direction


def _required_period(changes: dict[str, Any], field: str) -> tuple[int, int]:
    value = changes[field]
    if value is None:
        raise ValidationError(field, "Период не может быть пустым")
    if not isinstance(value, (tuple, list)) or len(value) != 2:
        raise ValidationError(field, "Период должен состоять из года и месяца")
    return tuple(value)


def _required_flag(changes: dict[str, Any], field: str) -> bool:
    value = changes[field]
    if not isinstance(value, bool):
        raise ValidationError(field, "Ожидается true или false")
    return value


def _model_for(source: str):
    return RecurringObligationModel if source == SOURCE_RECURRING else OneOffObligationModel


def load_obligation(db: Session, user_id: int, source: str, obligation_id: int):
    """
    Fetch an obligation visible to the user.

    Raises:
        ObligationNotFound: missing, or in a group where the user is not an
            active member (foreign ids are indistinguishable from missing ones)
    """
    model = _model_for(validate_source(source))
    row = db.query(model).filter(model.id == obligation_id).first()
    if row is None:
        raise ObligationNotFound("Обязательство не найдено")
    membership = get_membership(db, user_id, row.group_id)
    if membership is None or membership.status != STATUS_ACTIVE:
        logger.warning("User %s requested %s obligation %s outside their groups", user_id, source, obligation_id)
        raise ObligationNotFound("Обязательство не найдено")
    return row


def obligation_spec(source: str, row) -> RecurringSpec | OneOffSpec:
    if source == SOURCE_RECURRING:
        return recurring_spec_from_db(row)
    return one_off_spec_from_db(row)


def _obligation_payload(source: str, row) -> dict[str, Any]:
    payload = {
        "source": source,
        "obligation_id": row.id,
        "description": row.description,
        "amount": row.amount,
        "direction": row.direction,
        "category": row.category,
        "kind": row.kind,
    }
    if source == SOURCE_RECURRING:
        payload["period_start"] = [row.start_year, row.start_month]
        payload["period_end"] = [row.end_year, row.end_month]
    else:
        payload["period"] = [row.year, row.month]
    return payload


class CreateObligationUseCase:
    """
    Use case: Создать регулярное или разовое обязательство в группе
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.versions = ScopeVersionService(db)

    def execute(
        self,
        actor_user_id: int,
        group_id: int,
        source: str,
        description: str,
        amount: int,
        direction: str,
        period: tuple[int, int],
        category: str | None = None,
        period_end: tuple[int, int] | None = None,
        installments: int | None = None,
        payment_day: int | None = None,
        is_goal: bool = False,
        deadline: date | None = None,
    ) -> int:
        """
        Создать обязательство

        Args:
            period: (year, month) начала для регулярного, период для разового
            period_end: включительный конец (только регулярные; None = бессрочно)
            installments: альтернатива period_end - количество месяцев
            payment_day: день оплаты 1..31 (только регулярные)
            deadline: срок оплаты (только разовые, может быть в прошлом)

        Returns:
            obligation_id
        """
        require_active_membership(self.db, actor_user_id, group_id)

        source = validate_source(source)
        description = validate_description(description)
        amount = validate_amount(amount)
        direction = validate_direction(direction)
        category = normalize_category(category)
        kind = resolve_movement_kind(source, direction, bool(is_goal), category)

        if source == SOURCE_RECURRING:
            if deadline is not None:
                raise ValidationError("deadline", "Срок оплаты задаётся только для разовых обязательств")
            start, end = resolve_recurring_range(
                tuple(period), tuple(period_end) if period_end else None, installments, bool(is_goal)
            )
            row = RecurringObligationModel(
                group_id=group_id,
                owner_user_id=actor_user_id,
                description=description,
                amount=amount,
                direction=direction,
                category=category,
                kind=kind.value,
                start_year=start[0],
                start_month=start[1],
                end_year=end[0],
                end_month=end[1],
                payment_day=validate_payment_day(payment_day),
                is_goal=bool(is_goal),
            )
        else:
            if period_end is not None or installments is not None or payment_day is not None:
                raise ValidationError("period_end", "Разовое обязательство относится к одному месяцу")
            year, month = validate_period(*period, field="period")
            row = OneOffObligationModel(
                group_id=group_id,
                owner_user_id=actor_user_id,
                description=description,
                amount=amount,
                direction=direction,
                category=category,
                kind=kind.value,
                year=year,
                month=month,
                deadline=validate_deadline(deadline),
            )

        with atomic(self.db):
            self.db.add(row)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="obligation_created",
                payload=_obligation_payload(source, row),
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Obligation created: %s #%s in group %s by user %s", source, row.id, group_id, actor_user_id)
        return row.id


class UpdateObligationUseCase:
    """
    Use case: Изменить обязательство (частичное обновление)

    Any active member of the group may edit. Kind and range are re-resolved
    from the merged (old + new) values.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.versions = ScopeVersionService(db)

    def execute(self, actor_user_id: int, source: str, obligation_id: int, changes: dict[str, Any]) -> None:
        row = load_obligation(self.db, actor_user_id, source, obligation_id)

        allowed = RECURRING_FIELDS if source == SOURCE_RECURRING else ONE_OFF_FIELDS
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise ValidationError(unknown[0], f"Поле нельзя изменить: {unknown[0]}")
        if not changes:
            return

        description = (
            validate_description(changes["description"]) if "description" in changes else row.description
        )
        amount = validate_amount(changes["amount"]) if "amount" in changes else row.amount
        direction = validate_direction(changes["direction"]) if "direction" in changes else row.direction
        category = normalize_category(changes["category"]) if "category" in changes else row.category

        if source == SOURCE_RECURRING:
            is_goal = _required_flag(changes, "is_goal") if "is_goal" in changes else row.is_goal
            start = (
                _required_period(changes, "period_start") if "period_start" in changes
                else (row.start_year, row.start_month)
            )
            installments = changes.get("installments")
            if installments is not None:
                if changes.get("period_end") is not None:
                    raise ValidationError("installments", "Укажите либо период окончания, либо количество взносов")
                end = None
            elif "period_end" in changes:
                end = tuple(changes["period_end"]) if changes["period_end"] else None
            else:
                end = (row.end_year, row.end_month)
            start, end = resolve_recurring_range(start, end, installments, is_goal)
            payment_day = (
                validate_payment_day(changes["payment_day"]) if "payment_day" in changes else row.payment_day
            )
            kind = resolve_movement_kind(source, direction, is_goal, category)
        else:
            period = (
                validate_period(*_required_period(changes, "period"), field="period") if "period" in changes
                else (row.year, row.month)
            )
            deadline = validate_deadline(changes["deadline"]) if "deadline" in changes else row.deadline
            kind = resolve_movement_kind(source, direction, False, category)

        with atomic(self.db):
            row.description = description
            row.amount = amount
            row.direction = direction
            row.category = category
            row.kind = kind.value
            if source == SOURCE_RECURRING:
                row.start_year, row.start_month = start
                row.end_year, row.end_month = end
                row.payment_day = payment_day
                row.is_goal = is_goal
            else:
                row.year, row.month = period
                row.deadline = deadline
            self.db.flush()

            self.event_repo.append_event(
                group_id=row.group_id,
                event_type="obligation_updated",
                payload={**_obligation_payload(source, row), "changed": sorted(changes)},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(row.group_id)

        logger.info("Obligation updated: %s #%s by user %s (%s)", source, obligation_id, actor_user_id,
                    ", ".join(sorted(changes)))


class DeleteObligationUseCase:
    """
    Use case: Удалить обязательство

    Derived instances disappear with the row; its ledger entries are deleted
    in the same transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.versions = ScopeVersionService(db)

    def execute(self, actor_user_id: int, source: str, obligation_id: int) -> None:
        row = load_obligation(self.db, actor_user_id, source, obligation_id)
        group_id = row.group_id
        payload = _obligation_payload(source, row)

        with atomic(self.db):
            deleted_payments = (
                self.db.query(LedgerEntryModel)
                .filter(
                    LedgerEntryModel.group_id == group_id,
                    LedgerEntryModel.source == source,
                    LedgerEntryModel.source_id == obligation_id,
                )
                .delete(synchronize_session=False)
            )
            self.db.delete(row)
            self.db.flush()

            payload["deleted_payments"] = deleted_payments
            self.event_repo.append_event(
                group_id=group_id,
                event_type="obligation_deleted",
                payload=payload,
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Obligation deleted: %s #%s by user %s", source, obligation_id, actor_user_id)


def list_obligations(db: Session, user_id: int, group_id: int) -> tuple[list, list]:
    """Declared (recurring, one-off) obligations of the group, oldest first."""
    require_active_membership(db, user_id, group_id)
    recurring = (
        db.query(RecurringObligationModel)
        .filter(RecurringObligationModel.group_id == group_id)
        .order_by(RecurringObligationModel.id.asc())
        .all()
    )
    one_offs = (
        db.query(OneOffObligationModel)
        .filter(OneOffObligationModel.group_id == group_id)
        .order_by(OneOffObligationModel.year.asc(), OneOffObligationModel.month.asc(), OneOffObligationModel.id.asc())
        .all()
    )
    return recurring, one_offs
