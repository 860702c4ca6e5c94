"""
Obligation field validation.

Rules:
  - description: 3..200 chars after strip
  - amount: positive integer in minor currency units (bool rejected)
  - period: month 1..12, year 1..9999, start <= end in month-index terms
  - payment_day_of_month: 1..31 or None; rejected (never clamped) when invalid.
    Clamping to short months happens only during expansion.
  - installments: 1..240, alternative to an explicit end period
  - goals need a bounded end period
"""
from datetime import date

from cuentas.domain.errors import ValidationError
from cuentas.domain.calendar_math import (
    MAX_INSTALLMENTS, OPEN_ENDED_PERIOD, month_index, add_installments, is_open_ended,
)

MIN_DESCRIPTION_LENGTH = 3
MAX_DESCRIPTION_LENGTH = 200
MAX_AMOUNT = 10**12


def validate_description(description: str | None) -> str:
    description = (description or "").strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise ValidationError(
            "description", f"Описание должно содержать минимум {MIN_DESCRIPTION_LENGTH} символа"
        )
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            "description", f"Описание не может быть длиннее {MAX_DESCRIPTION_LENGTH} символов"
        )
    return description


def validate_amount(amount, field: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(field, "Сумма должна быть целым числом (в минимальных единицах валюты)")
    if amount <= 0:
        raise ValidationError(field, "Сумма должна быть больше нуля")
    if amount > MAX_AMOUNT:
        raise ValidationError(field, "Сумма слишком большая")
    return amount


def validate_period(year, month, field: str = "period") -> tuple[int, int]:
    for value in (year, month):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(field, "Период должен состоять из целых чисел (год, месяц)")
    if not 1 <= month <= 12:
        raise ValidationError(field, "Месяц должен быть от 1 до 12")
    if not 1 <= year <= OPEN_ENDED_PERIOD[0]:
        raise ValidationError(field, f"Год должен быть от 1 до {OPEN_ENDED_PERIOD[0]}")
    return year, month


def validate_payment_day(day) -> int | None:
    if day is None:
        return None
    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
        raise ValidationError("payment_day_of_month", "День оплаты должен быть от 1 до 31")
    return day


def validate_installments(count) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValidationError("installments", "Количество взносов должно быть больше нуля")
    if count > MAX_INSTALLMENTS:
        raise ValidationError("installments", f"Количество взносов не может превышать {MAX_INSTALLMENTS}")
    return count


def resolve_recurring_range(
    start: tuple[int, int],
    end: tuple[int, int] | None = None,
    installments: int | None = None,
    is_goal: bool = False,
) -> tuple[tuple[int, int], tuple[int, int]]:
    """
    Validate and resolve the inclusive (start, end) range of a recurring obligation.

    ``end`` and ``installments`` are mutually exclusive; with neither the
    obligation is open-ended. Goals must have a bounded end.
    """
    start = validate_period(*start, field="period_start")
    if end is not None and installments is not None:
        raise ValidationError("installments", "Укажите либо период окончания, либо количество взносов")

    if installments is not None:
        end = add_installments(start[0], start[1], validate_installments(installments))
        if month_index(*end) > month_index(*OPEN_ENDED_PERIOD):
            raise ValidationError("installments", "Период выходит за допустимые пределы")
    elif end is None:
        end = OPEN_ENDED_PERIOD
    else:
        end = validate_period(*end, field="period_end")

    if month_index(*start) > month_index(*end):
        raise ValidationError("period_end", "Период окончания не может быть раньше начала")
    if is_goal and is_open_ended(*end):
        raise ValidationError("period_end", "Для цели нужен период окончания")
    return start, end


def validate_deadline(deadline) -> date | None:
    """Deadlines may be in the past so history can be backfilled."""
    if deadline is None:
        return None
    if not isinstance(deadline, date):
        raise ValidationError("deadline_date", "Некорректная дата срока оплаты")
    return deadline
