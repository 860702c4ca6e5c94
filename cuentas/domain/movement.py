"""
Movement kinds, directions and reserved categories.

The kind of an obligation is resolved once (on create/update) from
(source, direction, is_goal, category) and stored on the row, so read paths
never re-infer it.
"""
from enum import Enum

from cuentas.domain.errors import ValidationError


# Directions
DIRECTION_INCOME = "income"
DIRECTION_EXPENSE = "expense"
VALID_DIRECTIONS = frozenset({DIRECTION_INCOME, DIRECTION_EXPENSE})

# Obligation sources
SOURCE_RECURRING = "recurring"
SOURCE_ONE_OFF = "one_off"
VALID_SOURCES = frozenset({SOURCE_RECURRING, SOURCE_ONE_OFF})

# Instance statuses
STATUS_PAID = "paid"
STATUS_PENDING = "pending"
STATUS_OVERDUE = "overdue"

# Reserved categories
CATEGORY_UNCATEGORIZED = "uncategorized"
CATEGORY_SAVINGS = "savings"

MAX_CATEGORY_LENGTH = 64


class MovementKind(str, Enum):
    RECURRING_EXPENSE = "recurring_expense"
    RECURRING_GOAL = "recurring_goal"
    RECURRING_INCOME = "recurring_income"
    ONE_OFF_EXPENSE = "one_off_expense"
    ONE_OFF_INCOME = "one_off_income"
    SAVINGS = "savings"


def normalize_category(category: str | None) -> str:
    """Free-text category; empty -> "uncategorized", reserved tags are case-insensitive."""
    if category is None:
        return CATEGORY_UNCATEGORIZED
    category = category.strip()
    if not category:
        return CATEGORY_UNCATEGORIZED
    if len(category) > MAX_CATEGORY_LENGTH:
        raise ValidationError("category", f"Категория не может быть длиннее {MAX_CATEGORY_LENGTH} символов")
    if category.lower() in (CATEGORY_UNCATEGORIZED, CATEGORY_SAVINGS):
        return category.lower()
    return category


def resolve_movement_kind(source: str, direction: str, is_goal: bool, category: str) -> MovementKind:
    """
    Resolve the closed movement kind for an obligation.

    Raises:
        ValidationError: on combinations that have no kind
            (goal/savings income, one-off goal)
    """
    if source not in VALID_SOURCES:
        raise ValidationError("source", f"Неверный источник: {source}")
    if direction not in VALID_DIRECTIONS:
        raise ValidationError("direction", f"Неверное направление: {direction}")

    if direction == DIRECTION_INCOME:
        if is_goal:
            raise ValidationError("is_goal", "Цель может быть только расходом")
        if category == CATEGORY_SAVINGS:
            raise ValidationError("category", "Категория savings доступна только для расходов")
        return MovementKind.RECURRING_INCOME if source == SOURCE_RECURRING else MovementKind.ONE_OFF_INCOME

    if is_goal:
        if source != SOURCE_RECURRING:
            raise ValidationError("is_goal", "Цель должна быть регулярным платежом")
        return MovementKind.RECURRING_GOAL
    if category == CATEGORY_SAVINGS:
        return MovementKind.SAVINGS
    return MovementKind.RECURRING_EXPENSE if source == SOURCE_RECURRING else MovementKind.ONE_OFF_EXPENSE


def is_savings_kind(kind: MovementKind | str) -> bool:
    return MovementKind(kind) in (MovementKind.SAVINGS, MovementKind.RECURRING_GOAL)
