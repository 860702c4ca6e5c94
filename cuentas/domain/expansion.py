"""
Deterministic obligation expansion.

Turns obligation declarations into the per-month transaction instances that
are active in a requested (group, year, month) scope. Instances are derived
on every read and never stored; deleting an obligation therefore removes all
of its instances without any cleanup.

    recurring: included iff start <= (year, month) <= end (month-index terms),
               deadline = date(year, month, clamp_day(payment_day)) or None
    one-off:   included iff its own (year, month) equals the scope,
               deadline = stored deadline_date verbatim (may be None)
"""
import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable

from cuentas.domain.calendar_math import clamp_day, month_index, from_month_index, iter_months, is_open_ended
from cuentas.domain.movement import (
    MovementKind, SOURCE_RECURRING, SOURCE_ONE_OFF, STATUS_PENDING,
)

# Changing the namespace changes every instance id
INSTANCE_NAMESPACE = uuid.UUID("6f1d7c2e-3b7a-5c89-9a4e-2d5b8e0f4c17")


@dataclass(frozen=True)
class RecurringSpec:
    id: int
    group_id: int
    owner_user_id: int
    description: str
    amount: int
    direction: str
    category: str
    kind: MovementKind
    start: tuple[int, int]
    end: tuple[int, int]
    payment_day: int | None
    is_goal: bool


@dataclass(frozen=True)
class OneOffSpec:
    id: int
    group_id: int
    owner_user_id: int
    description: str
    amount: int
    direction: str
    category: str
    kind: MovementKind
    period: tuple[int, int]
    deadline: date | None


@dataclass(frozen=True)
class TransactionInstance:
    id: str
    source: str
    source_id: int
    group_id: int
    kind: MovementKind
    description: str
    direction: str
    category: str
    amount: int
    year: int
    month: int
    deadline: date | None
    is_goal: bool = False
    status: str = STATUS_PENDING
    paid_amount: int = 0

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def ledger_key(self) -> tuple[str, int, int, int]:
        return (self.source, self.source_id, self.year, self.month)


def instance_id(source: str, source_id: int, year: int, month: int) -> str:
    return str(uuid.uuid5(INSTANCE_NAMESPACE, f"{source}:{source_id}:{year}:{month:02d}"))


def is_active_in(spec: RecurringSpec, year: int, month: int) -> bool:
    return month_index(*spec.start) <= month_index(year, month) <= month_index(*spec.end)


def resolve_deadline(payment_day: int | None, year: int, month: int) -> date | None:
    if payment_day is None:
        return None
    return date(year, month, clamp_day(payment_day, year, month))


def expand_recurring(spec: RecurringSpec, year: int, month: int) -> TransactionInstance | None:
    if not is_active_in(spec, year, month):
        return None
    return TransactionInstance(
        id=instance_id(SOURCE_RECURRING, spec.id, year, month),
        source=SOURCE_RECURRING,
        source_id=spec.id,
        group_id=spec.group_id,
        kind=spec.kind,
        description=spec.description,
        direction=spec.direction,
        category=spec.category,
        amount=spec.amount,
        year=year,
        month=month,
        deadline=resolve_deadline(spec.payment_day, year, month),
        is_goal=spec.is_goal,
    )


def expand_one_off(spec: OneOffSpec, year: int, month: int) -> TransactionInstance | None:
    if spec.period != (year, month):
        return None
    return TransactionInstance(
        id=instance_id(SOURCE_ONE_OFF, spec.id, year, month),
        source=SOURCE_ONE_OFF,
        source_id=spec.id,
        group_id=spec.group_id,
        kind=spec.kind,
        description=spec.description,
        direction=spec.direction,
        category=spec.category,
        amount=spec.amount,
        year=year,
        month=month,
        deadline=spec.deadline,
    )


def _sort_key(inst: TransactionInstance):
    # Deadline-less instances last within a month
    return (month_index(inst.year, inst.month), inst.deadline is None, inst.deadline or date.min,
            inst.source, inst.source_id)


def expand_scope(
    recurring: Iterable[RecurringSpec],
    one_offs: Iterable[OneOffSpec],
    year: int,
    month: int,
) -> list[TransactionInstance]:
    """All instances active in (year, month). Deterministic, sorted."""
    out: list[TransactionInstance] = []
    for spec in recurring:
        inst = expand_recurring(spec, year, month)
        if inst is not None:
            out.append(inst)
    for spec in one_offs:
        inst = expand_one_off(spec, year, month)
        if inst is not None:
            out.append(inst)
    out.sort(key=_sort_key)
    return out


def expand_range(
    recurring: Iterable[RecurringSpec],
    one_offs: Iterable[OneOffSpec],
    start: tuple[int, int],
    end: tuple[int, int],
    open_ended_until: tuple[int, int] | None = None,
) -> list[TransactionInstance]:
    """
    All instances with a period in the inclusive range [start, end].

    Each obligation is walked only over the overlap of its own range with the
    window, so open-ended obligations stay bounded by ``end``, and by
    ``open_ended_until`` when given.
    """
    lo, hi = month_index(*start), month_index(*end)
    open_hi = month_index(*open_ended_until) if open_ended_until is not None else hi
    out: list[TransactionInstance] = []
    for spec in recurring:
        first = max(lo, month_index(*spec.start))
        last = min(hi, month_index(*spec.end))
        if is_open_ended(*spec.end):
            last = min(last, open_hi)
        if first > last:
            continue
        for year, month in iter_months(from_month_index(first), from_month_index(last)):
            out.append(expand_recurring(spec, year, month))
    for spec in one_offs:
        if lo <= month_index(*spec.period) <= hi:
            out.append(expand_one_off(spec, *spec.period))
    out.sort(key=_sort_key)
    return out


def with_status(inst: TransactionInstance, status: str, paid_amount: int) -> TransactionInstance:
    return replace(inst, status=status, paid_amount=paid_amount)


# --- Helpers for converting DB rows to specs ---

def recurring_spec_from_db(row) -> RecurringSpec:
    """Build RecurringSpec from a RecurringObligationModel row (any object with matching attributes)."""
    return RecurringSpec(
        id=row.id,
        group_id=row.group_id,
        owner_user_id=row.owner_user_id,
        description=row.description,
        amount=row.amount,
        direction=row.direction,
        category=row.category,
        kind=MovementKind(row.kind),
        start=(row.start_year, row.start_month),
        end=(row.end_year, row.end_month),
        payment_day=row.payment_day,
        is_goal=bool(row.is_goal),
    )


def one_off_spec_from_db(row) -> OneOffSpec:
    """Build OneOffSpec from a OneOffObligationModel row."""
    return OneOffSpec(
        id=row.id,
        group_id=row.group_id,
        owner_user_id=row.owner_user_id,
        description=row.description,
        amount=row.amount,
        direction=row.direction,
        category=row.category,
        kind=MovementKind(row.kind),
        period=(row.year, row.month),
        deadline=row.deadline,
    )
