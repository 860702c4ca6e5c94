"""
Category catalog use cases - статьи группы

    seed_default_categories   defaults for a new group (no commit, no event)
    add                       trimmed, unique case-insensitively; reactivates an inactive entry
    rename                    cascades the new name to every obligation of the group
    delete                    obligations fall back to "uncategorized"; defaults are
                              deactivated, custom entries deleted
    reset                     restores the defaults, custom entries kept

Any active member of the group may edit the catalog. Every write appends a
group event and bumps the group's scope versions.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from cuentas.application.access import require_active_membership
from cuentas.application.sync import ScopeVersionService
from cuentas.application.tx import atomic
from cuentas.domain.category import (
    DEFAULT_CATEGORY_NAMES, RESERVED_CATEGORY_NAMES, validate_category_name, same_name,
)
from cuentas.domain.errors import CategoryNotFound, Conflict
from cuentas.domain.movement import CATEGORY_UNCATEGORIZED
from cuentas.infrastructure.db.models import (
    GroupCategory, RecurringObligationModel, OneOffObligationModel,
)
from cuentas.infrastructure.eventlog.repository import EventLogRepository

logger = logging.getLogger(__name__)

OBLIGATION_MODELS = (RecurringObligationModel, OneOffObligationModel)


@dataclass(frozen=True)
class CategoryInfo:
    id: int | None  # None for reserved tags
    name: str
    is_default: bool
    is_reserved: bool
    usage_count: int


def seed_default_categories(db: Session, group_id: int) -> None:
    for name in DEFAULT_CATEGORY_NAMES:
        db.add(GroupCategory(group_id=group_id, name=name, is_default=True, is_active=True))
    db.flush()


def _usage_counts(db: Session, group_id: int) -> dict[str, int]:
    counts: dict[str, int] = {}
    for model in OBLIGATION_MODELS:
        rows = (
            db.query(model.category, func.count(model.id))
            .filter(model.group_id == group_id)
            .group_by(model.category)
            .all()
        )
        for category, count in rows:
            counts[category] = counts.get(category, 0) + count
    return counts


def _reassign(db: Session, group_id: int, old_name: str, new_name: str) -> int:
    """Move every obligation of the group from old_name to new_name; returns the row count"""
    affected = 0
    for model in OBLIGATION_MODELS:
        affected += (
            db.query(model)
            .filter(model.group_id == group_id, model.category == old_name)
            .update({model.category: new_name}, synchronize_session=False)
        )
    return affected


def _find_by_name(db: Session, group_id: int, name: str) -> GroupCategory | None:
    rows = db.query(GroupCategory).filter(GroupCategory.group_id == group_id).all()
    return next((row for row in rows if same_name(row.name, name)), None)


def _get_category(db: Session, group_id: int, category_id: int) -> GroupCategory:
    row = (
        db.query(GroupCategory)
        .filter(
            GroupCategory.id == category_id,
            GroupCategory.group_id == group_id,
            GroupCategory.is_active.is_(True),
        )
        .first()
    )
    if row is None:
        raise CategoryNotFound("Категория не найдена")
    return row


def list_categories(db: Session, user_id: int, group_id: int) -> list[CategoryInfo]:
    """Active catalog entries by name, then the reserved tags; each with its obligation count"""
    require_active_membership(db, user_id, group_id)
    usage = _usage_counts(db, group_id)
    rows = (
        db.query(GroupCategory)
        .filter(GroupCategory.group_id == group_id, GroupCategory.is_active.is_(True))
        .all()
    )
    rows.sort(key=lambda row: row.name.casefold())
    items = [
        CategoryInfo(
            id=row.id, name=row.name, is_default=row.is_default, is_reserved=False,
            usage_count=usage.get(row.name, 0),
        )
        for row in rows
    ]
    items += [
        CategoryInfo(id=None, name=name, is_default=True, is_reserved=True, usage_count=usage.get(name, 0))
        for name in RESERVED_CATEGORY_NAMES
    ]
    return items


def count_affected_obligations(db: Session, user_id: int, group_id: int, name: str) -> int:
    """How many obligations of the group a rename/delete of `name` would touch"""
    require_active_membership(db, user_id, group_id)
    return sum(
        db.query(model).filter(model.group_id == group_id, model.category == name).count()
        for model in OBLIGATION_MODELS
    )


class _CategoryUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.versions = ScopeVersionService(db)


class AddCategoryUseCase(_CategoryUseCase):
    """
    Use case: Добавить статью в каталог группы

    A name matching an inactive entry (any case) reactivates that entry.
    """

    def execute(self, actor_user_id: int, group_id: int, name: str) -> int:
        require_active_membership(self.db, actor_user_id, group_id)
        name = validate_category_name(name)

        existing = _find_by_name(self.db, group_id, name)
        if existing is not None and existing.is_active:
            raise Conflict("Категория с таким названием уже существует")

        with atomic(self.db):
            if existing is not None:
                existing.is_active = True
                row = existing
            else:
                row = GroupCategory(group_id=group_id, name=name, is_default=False, is_active=True)
                self.db.add(row)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="category_added",
                payload={"category_id": row.id, "name": row.name, "reactivated": existing is not None},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Category %r added to group %s by user %s", row.name, group_id, actor_user_id)
        return row.id


class RenameCategoryUseCase(_CategoryUseCase):
    """
    Use case: Переименовать статью

    Obligations carrying the old name move to the new one in the same
    transaction. A case-only change is allowed.

    Returns:
        Number of obligations that were moved
    """

    def execute(self, actor_user_id: int, group_id: int, category_id: int, new_name: str) -> int:
        require_active_membership(self.db, actor_user_id, group_id)
        row = _get_category(self.db, group_id, category_id)
        new_name = validate_category_name(new_name)
        if new_name == row.name:
            return 0

        clash = _find_by_name(self.db, group_id, new_name)
        if clash is not None and clash.id != row.id:
            if clash.is_active:
                raise Conflict("Категория с таким названием уже существует")
            raise Conflict("Категория с таким названием отключена; добавьте её заново")

        old_name = row.name
        with atomic(self.db):
            affected = _reassign(self.db, group_id, old_name, new_name)
            row.name = new_name
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="category_renamed",
                payload={"category_id": row.id, "old_name": old_name, "new_name": new_name,
                         "affected_obligations": affected},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Category %r renamed to %r in group %s (%d obligations)", old_name, new_name, group_id, affected)
        return affected


class DeleteCategoryUseCase(_CategoryUseCase):
    """
    Use case: Удалить статью

    Returns:
        Number of obligations moved to "uncategorized"
    """

    def execute(self, actor_user_id: int, group_id: int, category_id: int) -> int:
        require_active_membership(self.db, actor_user_id, group_id)
        row = _get_category(self.db, group_id, category_id)
        name = row.name

        with atomic(self.db):
            affected = _reassign(self.db, group_id, name, CATEGORY_UNCATEGORIZED)
            if row.is_default:
                row.is_active = False
            else:
                self.db.delete(row)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="category_deleted",
                payload={"category_id": category_id, "name": name, "affected_obligations": affected},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Category %r deleted from group %s (%d obligations uncategorized)", name, group_id, affected)
        return affected


class ResetCategoriesUseCase(_CategoryUseCase):
    """
    Use case: Вернуть статьи по умолчанию

    Every default name is active again afterwards. Default entries that were
    renamed are deactivated. Custom entries are left alone unless one is a
    default spelled in another case. Obligations are not touched.
    """

    def execute(self, actor_user_id: int, group_id: int) -> list[str]:
        require_active_membership(self.db, actor_user_id, group_id)
        rows = self.db.query(GroupCategory).filter(GroupCategory.group_id == group_id).all()
        by_name = {row.name: row for row in rows}
        restored: list[str] = []

        with atomic(self.db):
            for row in rows:
                if row.is_default and row.is_active and row.name not in DEFAULT_CATEGORY_NAMES:
                    row.is_active = False
            for name in DEFAULT_CATEGORY_NAMES:
                # an entry spelled in another case becomes the default
                row = by_name.get(name) or next((r for r in rows if same_name(r.name, name)), None)
                if row is None:
                    self.db.add(GroupCategory(group_id=group_id, name=name, is_default=True, is_active=True))
                    restored.append(name)
                elif row.name != name or not row.is_active or not row.is_default:
                    row.name = name
                    row.is_active = True
                    row.is_default = True
                    restored.append(name)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="categories_reset",
                payload={"restored": restored},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("Categories reset in group %s by user %s (%d restored)", group_id, actor_user_id, len(restored))
        return restored
