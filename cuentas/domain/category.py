"""
Category catalog rules

Каталог статей группы. Обязательства хранят категорию свободным текстом;
каталог - это список, из которого клиент предлагает значения.

Reserved tags ("uncategorized", "savings") are always available and never
stored in the catalog.
"""
from cuentas.domain.errors import ValidationError
from cuentas.domain.movement import CATEGORY_UNCATEGORIZED, CATEGORY_SAVINGS


# Seeded into every new group and restored by a reset
DEFAULT_CATEGORY_NAMES = (
    "Mercado y comida",
    "Casa y servicios",
    "Transporte",
    "Salud",
    "Diversión",
    "Otros",
)

RESERVED_CATEGORY_NAMES = (CATEGORY_UNCATEGORIZED, CATEGORY_SAVINGS)

MAX_CATALOG_NAME_LENGTH = 50


def validate_category_name(name: str | None) -> str:
    """
    Trimmed catalog name.

    Raises:
        ValidationError("name"): empty, longer than 50 chars, or a reserved tag
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "Название категории не может быть пустым")
    if len(name) > MAX_CATALOG_NAME_LENGTH:
        raise ValidationError(
            "name", f"Название категории не может быть длиннее {MAX_CATALOG_NAME_LENGTH} символов"
        )
    if name.lower() in RESERVED_CATEGORY_NAMES:
        raise ValidationError("name", f"Категория {name.lower()} зарезервирована")
    return name


def same_name(a: str, b: str) -> bool:
    """Catalog names compare case-insensitively"""
    return a.casefold() == b.casefold()
