"""
Group & invitation use cases (membership state machine)

    create_group        creator becomes active admin; default categories seeded
    invite              admin -> pending_invitation row with token + TTL
    accept / reject     invited user, by group id or token
    leave               active member removes own row (creator cannot)
    remove_member       admin deletes another member's row
    deactivate_member   admin moves an active member to deactivated
    delete_group        creator only; cascades everything in the group

Every transition appends a group event and bumps the scope version of every
affected user in the same transaction.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cuentas.application.access import require_active_membership, require_admin, get_membership
from cuentas.application.categories import seed_default_categories
from cuentas.application.sync import ScopeVersionService
from cuentas.application.tx import atomic
from cuentas.auth import get_user_by_email
from cuentas.config import get_settings
from cuentas.domain.errors import (
    AlreadyMember, Conflict, Forbidden, InvitationExpired, InvitationNotFound,
    MembershipNotFound, UserNotFound, ValidationError,
)
from cuentas.domain.membership import (
    ROLE_ADMIN, ROLE_MEMBER, STATUS_ACTIVE, STATUS_DEACTIVATED, STATUS_PENDING_INVITATION,
    assert_transition, normalize_email, validate_group_name,
)
from cuentas.infrastructure.db.models import (
    Group, GroupMembership, GroupCategory, User, RecurringObligationModel, OneOffObligationModel,
    LedgerEntryModel,
)
from cuentas.infrastructure.eventlog.repository import EventLogRepository
from cuentas.utils.clock import utcnow, as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Invitation:
    group_id: int
    group_name: str
    invitee_user_id: int
    inviter_email: str
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class GroupListItem:
    group_id: int
    name: str
    role: str
    member_count: int
    is_creator: bool
    created_at: datetime


@dataclass(frozen=True)
class MemberInfo:
    user_id: int
    email: str
    display_name: str
    role: str
    status: str
    joined_at: datetime | None
    is_creator: bool


@dataclass(frozen=True)
class PendingInvitation:
    group_id: int
    group_name: str
    inviter_name: str | None
    inviter_email: str | None
    expires_at: datetime | None
    is_expired: bool


def _get_group(db: Session, group_id: int) -> Group:
    group = db.query(Group).filter(Group.id == group_id).first()
    if group is None:
        raise Forbidden("Нет доступа к этой группе")
    return group


class _GroupUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.versions = ScopeVersionService(db)


class CreateGroupUseCase(_GroupUseCase):
    """
    Use case: Создать группу; создатель становится активным администратором
    """

    def execute(self, user_id: int, name: str) -> int:
        name = validate_group_name(name)

        with atomic(self.db):
            group = Group(name=name, created_by=user_id)
            self.db.add(group)
            self.db.flush()
            self.db.add(GroupMembership(
                group_id=group.id,
                user_id=user_id,
                role=ROLE_ADMIN,
                status=STATUS_ACTIVE,
                joined_at=utcnow(),
            ))
            self.db.flush()
            seed_default_categories(self.db, group.id)
            self.event_repo.append_event(
                group_id=group.id,
                event_type="group_created",
                payload={"group_id": group.id, "name": name},
                actor_user_id=user_id,
            )
            self.versions.invalidate(user_id)

        logger.info("Group %s created by user %s", group.id, user_id)
        return group.id


class InviteMemberUseCase(_GroupUseCase):
    """
    Use case: Пригласить пользователя по email

    A pending invitation is refreshed (new token and TTL); a deactivated
    member is re-invited.
    """

    def execute(self, actor_user_id: int, group_id: int, email: str) -> Invitation:
        require_admin(self.db, actor_user_id, group_id)
        email = normalize_email(email)
        target = get_user_by_email(self.db, email)
        if target is None:
            raise UserNotFound(f"Пользователь с email {email} не найден")

        group = _get_group(self.db, group_id)
        inviter = self.db.query(User).filter(User.id == actor_user_id).first()
        membership = get_membership(self.db, target.id, group_id)
        if membership is not None and membership.status == STATUS_ACTIVE:
            raise AlreadyMember("Пользователь уже состоит в группе")

        token = secrets.token_urlsafe(32)
        expires_at = utcnow() + timedelta(hours=get_settings().INVITATION_TTL_HOURS)

        try:
            with atomic(self.db):
                if membership is None:
                    membership = GroupMembership(
                        group_id=group_id,
                        user_id=target.id,
                        role=ROLE_MEMBER,
                        status=STATUS_PENDING_INVITATION,
                    )
                    self.db.add(membership)
                elif membership.status == STATUS_DEACTIVATED:
                    assert_transition(membership.status, STATUS_PENDING_INVITATION)
                    membership.status = STATUS_PENDING_INVITATION
                    membership.joined_at = None
                membership.invited_by = actor_user_id
                membership.invitation_token = token
                membership.invitation_expires_at = expires_at
                self.db.flush()

                self.event_repo.append_event(
                    group_id=group_id,
                    event_type="member_invited",
                    payload={"user_id": target.id, "email": target.email},
                    actor_user_id=actor_user_id,
                )
                self.versions.invalidate_group(group_id)
        except IntegrityError as exc:
            raise Conflict("Приглашение уже существует") from exc

        logger.info("User %s invited to group %s by user %s", target.id, group_id, actor_user_id)
        return Invitation(
            group_id=group_id,
            group_name=group.name,
            invitee_user_id=target.id,
            inviter_email=inviter.email if inviter else "",
            token=token,
            expires_at=expires_at,
        )


class AcceptInvitationUseCase(_GroupUseCase):
    """
    Use case: Принять приглашение (по group_id или токену)
    """

    def execute(self, user_id: int, group_id: int | None = None, token: str | None = None) -> int:
        """
        Returns:
            group_id of the joined group
        """
        if group_id is None and not token:
            raise ValidationError("token", "Укажите группу или токен приглашения")

        query = self.db.query(GroupMembership).filter(GroupMembership.user_id == user_id)
        if token:
            query = query.filter(GroupMembership.invitation_token == token)
        else:
            query = query.filter(GroupMembership.group_id == group_id)
        membership = query.first()

        if membership is None or membership.status != STATUS_PENDING_INVITATION:
            raise InvitationNotFound("Приглашение не найдено")
        if membership.invitation_expires_at is not None and as_utc(membership.invitation_expires_at) < utcnow():
            raise InvitationExpired("Срок действия приглашения истёк")

        assert_transition(membership.status, STATUS_ACTIVE)
        with atomic(self.db):
            membership.status = STATUS_ACTIVE
            membership.joined_at = utcnow()
            membership.invitation_token = None
            membership.invitation_expires_at = None
            self.db.flush()
            self.event_repo.append_event(
                group_id=membership.group_id,
                event_type="invitation_accepted",
                payload={"user_id": user_id},
                actor_user_id=user_id,
            )
            self.versions.invalidate_group(membership.group_id)

        logger.info("User %s joined group %s", user_id, membership.group_id)
        return membership.group_id


class RejectInvitationUseCase(_GroupUseCase):
    """
    Use case: Отклонить приглашение (строка удаляется)
    """

    def execute(self, user_id: int, group_id: int) -> None:
        membership = get_membership(self.db, user_id, group_id)
        if membership is None or membership.status != STATUS_PENDING_INVITATION:
            raise InvitationNotFound("Приглашение не найдено")

        with atomic(self.db):
            self.db.delete(membership)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="invitation_rejected",
                payload={"user_id": user_id},
                actor_user_id=user_id,
            )
            self.versions.invalidate_group(group_id, extra_user_ids=(user_id,))

        logger.info("User %s rejected invitation to group %s", user_id, group_id)


class LeaveGroupUseCase(_GroupUseCase):
    """
    Use case: Выйти из группы

    The creator cannot leave; they delete the group instead.
    """

    def execute(self, user_id: int, group_id: int) -> None:
        membership = require_active_membership(self.db, user_id, group_id)
        group = _get_group(self.db, group_id)
        if group.created_by == user_id:
            raise Conflict("Создатель не может покинуть группу - удалите её")

        with atomic(self.db):
            self.db.delete(membership)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="member_left",
                payload={"user_id": user_id},
                actor_user_id=user_id,
            )
            self.versions.invalidate_group(group_id, extra_user_ids=(user_id,))

        logger.info("User %s left group %s", user_id, group_id)


class RemoveMemberUseCase(_GroupUseCase):
    """
    Use case: Удалить участника (или отменить его приглашение)
    """

    def execute(self, actor_user_id: int, group_id: int, target_user_id: int) -> None:
        require_admin(self.db, actor_user_id, group_id)
        if target_user_id == actor_user_id:
            raise ValidationError("target_user_id", "Чтобы выйти из группы, используйте выход")
        group = _get_group(self.db, group_id)
        if group.created_by == target_user_id:
            raise Forbidden("Создателя группы нельзя удалить")
        membership = get_membership(self.db, target_user_id, group_id)
        if membership is None:
            raise MembershipNotFound("Участник не найден")

        with atomic(self.db):
            previous_status = membership.status
            self.db.delete(membership)
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="member_removed",
                payload={"user_id": target_user_id, "previous_status": previous_status},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id, extra_user_ids=(target_user_id,))

        logger.info("User %s removed from group %s by user %s", target_user_id, group_id, actor_user_id)


class DeactivateMemberUseCase(_GroupUseCase):
    """
    Use case: Деактивировать участника (active -> deactivated)
    """

    def execute(self, actor_user_id: int, group_id: int, target_user_id: int) -> None:
        require_admin(self.db, actor_user_id, group_id)
        if target_user_id == actor_user_id:
            raise ValidationError("target_user_id", "Нельзя деактивировать самого себя")
        group = _get_group(self.db, group_id)
        if group.created_by == target_user_id:
            raise Forbidden("Создателя группы нельзя деактивировать")
        membership = get_membership(self.db, target_user_id, group_id)
        if membership is None:
            raise MembershipNotFound("Участник не найден")
        assert_transition(membership.status, STATUS_DEACTIVATED)

        with atomic(self.db):
            membership.status = STATUS_DEACTIVATED
            self.db.flush()
            self.event_repo.append_event(
                group_id=group_id,
                event_type="member_deactivated",
                payload={"user_id": target_user_id},
                actor_user_id=actor_user_id,
            )
            self.versions.invalidate_group(group_id)

        logger.info("User %s deactivated in group %s by user %s", target_user_id, group_id, actor_user_id)


class DeleteGroupUseCase(_GroupUseCase):
    """
    Use case: Удалить группу (только создатель)

    Cascades obligations, ledger entries, the category catalog, memberships
    and journal rows.
    """

    def execute(self, user_id: int, group_id: int) -> None:
        require_active_membership(self.db, user_id, group_id)
        group = _get_group(self.db, group_id)
        if group.created_by != user_id:
            raise Forbidden("Удалить группу может только её создатель")

        with atomic(self.db):
            # Bump before the member rows disappear
            former_members = self.versions.invalidate_group(group_id)
            for model in (LedgerEntryModel, RecurringObligationModel, OneOffObligationModel, GroupCategory,
                          GroupMembership):
                self.db.query(model).filter(model.group_id == group_id).delete(synchronize_session=False)
            self.event_repo.delete_group_events(group_id)
            self.db.delete(group)
            self.db.flush()

        logger.info("Group %s deleted by user %s (%d former members)", group_id, user_id, len(former_members))


# ============================================================================
# Queries
# ============================================================================


def list_my_groups(db: Session, user_id: int) -> list[GroupListItem]:
    """Groups where the user is an active member, with role and active member count."""
    member_counts = (
        db.query(GroupMembership.group_id, func.count(GroupMembership.id).label("cnt"))
        .filter(GroupMembership.status == STATUS_ACTIVE)
        .group_by(GroupMembership.group_id)
        .subquery()
    )
    rows = (
        db.query(Group, GroupMembership.role, member_counts.c.cnt)
        .join(GroupMembership, GroupMembership.group_id == Group.id)
        .join(member_counts, member_counts.c.group_id == Group.id)
        .filter(GroupMembership.user_id == user_id, GroupMembership.status == STATUS_ACTIVE)
        .order_by(Group.name.asc(), Group.id.asc())
        .all()
    )
    return [
        GroupListItem(
            group_id=group.id,
            name=group.name,
            role=role,
            member_count=count,
            is_creator=group.created_by == user_id,
            created_at=group.created_at,
        )
        for group, role, count in rows
    ]


def list_members(db: Session, user_id: int, group_id: int) -> list[MemberInfo]:
    require_active_membership(db, user_id, group_id)
    group = _get_group(db, group_id)
    rows = (
        db.query(GroupMembership, User)
        .join(User, User.id == GroupMembership.user_id)
        .filter(GroupMembership.group_id == group_id)
        .order_by(GroupMembership.id.asc())
        .all()
    )
    return [
        MemberInfo(
            user_id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=membership.role,
            status=membership.status,
            joined_at=membership.joined_at,
            is_creator=group.created_by == user.id,
        )
        for membership, user in rows
    ]


def list_pending_invitations(db: Session, user_id: int) -> list[PendingInvitation]:
    rows = (
        db.query(GroupMembership, Group)
        .join(Group, Group.id == GroupMembership.group_id)
        .filter(GroupMembership.user_id == user_id, GroupMembership.status == STATUS_PENDING_INVITATION)
        .order_by(GroupMembership.id.asc())
        .all()
    )
    inviter_ids = {m.invited_by for m, _ in rows if m.invited_by is not None}
    inviters = {u.id: u for u in db.query(User).filter(User.id.in_(inviter_ids)).all()} if inviter_ids else {}
    now = utcnow()

    result = []
    for membership, group in rows:
        inviter = inviters.get(membership.invited_by)
        expires_at = membership.invitation_expires_at
        result.append(PendingInvitation(
            group_id=group.id,
            group_name=group.name,
            inviter_name=inviter.display_name if inviter else None,
            inviter_email=inviter.email if inviter else None,
            expires_at=expires_at,
            is_expired=expires_at is not None and as_utc(expires_at) < now,
        ))
    return result


def group_activity(db: Session, user_id: int, group_id: int, limit: int = 50):
    """Latest journal events of the group, newest first."""
    require_active_membership(db, user_id, group_id)
    return EventLogRepository(db).list_group_events(group_id, limit=limit)
