"""
Invitation API endpoints (invitee side)
"""
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.groups import (
    AcceptInvitationUseCase, RejectInvitationUseCase, list_pending_invitations,
)
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/invitations", tags=["invitations"])


class AcceptRequest(BaseModel):
    group_id: int | None = None
    token: str | None = None


class PendingInvitationResponse(BaseModel):
    group_id: int
    group_name: str
    inviter_name: str | None
    inviter_email: str | None
    expires_at: datetime | None
    is_expired: bool


@router.get("", response_model=list[PendingInvitationResponse])
def get_pending_invitations(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Мои входящие приглашения"""
    return [PendingInvitationResponse(**asdict(i)) for i in list_pending_invitations(db, user.id)]


@router.post("/accept")
def accept_invitation(
    req: AcceptRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Принять приглашение по group_id или токену"""
    group_id = AcceptInvitationUseCase(db).execute(user_id=user.id, group_id=req.group_id, token=req.token)
    return {"group_id": group_id}


@router.post("/{group_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_invitation(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    RejectInvitationUseCase(db).execute(user_id=user.id, group_id=group_id)
