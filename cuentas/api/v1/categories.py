"""
Category catalog API endpoints
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.categories import (
    AddCategoryUseCase, RenameCategoryUseCase, DeleteCategoryUseCase, ResetCategoriesUseCase,
    list_categories, count_affected_obligations,
)
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/groups/{group_id}/categories", tags=["categories"])


# === Request/Response models ===

class CategoryNameRequest(BaseModel):
    name: str


class CategoryResponse(BaseModel):
    id: int | None
    name: str
    is_default: bool
    is_reserved: bool
    usage_count: int


class AffectedResponse(BaseModel):
    affected_obligations: int


# === Endpoints ===

@router.get("", response_model=list[CategoryResponse])
def get_categories(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Каталог статей группы"""
    return [CategoryResponse(**asdict(c)) for c in list_categories(db, user.id, group_id)]


@router.get("/usage", response_model=AffectedResponse)
def get_usage(group_id: int, name: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Сколько обязательств затронет переименование или удаление"""
    return AffectedResponse(affected_obligations=count_affected_obligations(db, user.id, group_id, name))


@router.post("", status_code=status.HTTP_201_CREATED)
def add_category(
    group_id: int,
    req: CategoryNameRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    category_id = AddCategoryUseCase(db).execute(actor_user_id=user.id, group_id=group_id, name=req.name)
    return {"category_id": category_id}


@router.patch("/{category_id}", response_model=AffectedResponse)
def rename_category(
    group_id: int,
    category_id: int,
    req: CategoryNameRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Переименовать статью (обязательства переносятся на новое название)"""
    affected = RenameCategoryUseCase(db).execute(
        actor_user_id=user.id, group_id=group_id, category_id=category_id, new_name=req.name
    )
    return AffectedResponse(affected_obligations=affected)


@router.delete("/{category_id}", response_model=AffectedResponse)
def delete_category(
    group_id: int,
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Удалить статью (обязательства становятся uncategorized)"""
    affected = DeleteCategoryUseCase(db).execute(actor_user_id=user.id, group_id=group_id, category_id=category_id)
    return AffectedResponse(affected_obligations=affected)


@router.post("/reset")
def reset_categories(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Вернуть статьи по умолчанию"""
    return {"restored": ResetCategoriesUseCase(db).execute(actor_user_id=user.id, group_id=group_id)}
