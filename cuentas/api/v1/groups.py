"""
Group API endpoints (spaces, members, invitations sent by admins, activity)
"""
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from cuentas.api.deps import get_db, get_current_user
from cuentas.application.groups import (
    CreateGroupUseCase, InviteMemberUseCase, LeaveGroupUseCase, RemoveMemberUseCase,
    DeactivateMemberUseCase, DeleteGroupUseCase,
    list_my_groups, list_members, group_activity,
)
from cuentas.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/groups", tags=["groups"])


# === Request/Response models ===

class CreateGroupRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class InviteRequest(BaseModel):
    email: str


class GroupResponse(BaseModel):
    group_id: int
    name: str
    role: str
    member_count: int
    is_creator: bool


class MemberResponse(BaseModel):
    user_id: int
    email: str
    display_name: str
    role: str
    status: str
    joined_at: datetime | None
    is_creator: bool


class InvitationResponse(BaseModel):
    group_id: int
    group_name: str
    invitee_user_id: int
    inviter_email: str
    token: str
    expires_at: datetime


class EventResponse(BaseModel):
    id: int
    event_type: str
    actor_user_id: int | None
    payload: dict
    occurred_at: datetime


# === Endpoints ===

@router.post("", status_code=status.HTTP_201_CREATED)
def create_group(
    req: CreateGroupRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Создать группу"""
    group_id = CreateGroupUseCase(db).execute(user_id=user.id, name=req.name)
    return {"group_id": group_id}


@router.get("", response_model=list[GroupResponse])
def get_my_groups(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Мои группы (активное членство)"""
    return [
        GroupResponse(
            group_id=g.group_id,
            name=g.name,
            role=g.role,
            member_count=g.member_count,
            is_creator=g.is_creator,
        )
        for g in list_my_groups(db, user.id)
    ]


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Удалить группу (только создатель)"""
    DeleteGroupUseCase(db).execute(user_id=user.id, group_id=group_id)


@router.get("/{group_id}/members", response_model=list[MemberResponse])
def get_members(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [MemberResponse(**asdict(m)) for m in list_members(db, user.id, group_id)]


@router.post("/{group_id}/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
def invite_member(
    group_id: int,
    req: InviteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Пригласить пользователя по email (только админ)"""
    invitation = InviteMemberUseCase(db).execute(actor_user_id=user.id, group_id=group_id, email=req.email)
    return InvitationResponse(**asdict(invitation))


@router.post("/{group_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_group(group_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    LeaveGroupUseCase(db).execute(user_id=user.id, group_id=group_id)


@router.delete("/{group_id}/members/{target_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    group_id: int,
    target_user_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Удалить участника или отменить приглашение (только админ)"""
    RemoveMemberUseCase(db).execute(actor_user_id=user.id, group_id=group_id, target_user_id=target_user_id)


@router.post("/{group_id}/members/{target_user_id}/deactivate", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_member(
    group_id: int,
    target_user_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    DeactivateMemberUseCase(db).execute(actor_user_id=user.id, group_id=group_id, target_user_id=target_user_id)


@router.get("/{group_id}/activity", response_model=list[EventResponse])
def get_activity(
    group_id: int,
    limit: int = 50,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Журнал изменений группы"""
    return [
        EventResponse(
            id=e.id,
            event_type=e.event_type,
            actor_user_id=e.actor_user_id,
            payload=e.payload_json,
            occurred_at=e.occurred_at,
        )
        for e in group_activity(db, user.id, group_id, limit=min(max(limit, 1), 200))
    ]
