"""
Sync API endpoints: explicit scope invalidation and version polling
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.access import require_active_membership
from cuentas.application.sync import ScopeKey, ScopeVersionService
from cuentas.application.tx import atomic
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


class InvalidateRequest(BaseModel):
    group_id: int | None = None


@router.post("/invalidate")
def invalidate(req: InvalidateRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Сбросить кэш своей области (группы или всей учётной записи)"""
    if req.group_id is not None:
        require_active_membership(db, user.id, req.group_id)
    with atomic(db):
        version = ScopeVersionService(db).invalidate(user.id, req.group_id)
    return {"version": version}


@router.get("/version")
def current_version(
    group_id: int | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if group_id is not None:
        require_active_membership(db, user.id, group_id)
    version = ScopeVersionService(db).current_version(ScopeKey(user_id=user.id, group_id=group_id))
    return {"version": version}
