"""
Authorization gates shared by every use case.

A user sees or mutates a group's data only through an active membership.
A caller without one gets Forbidden whether or not the group exists.
"""
import logging

from sqlalchemy.orm import Session

from cuentas.domain.errors import Forbidden
from cuentas.domain.membership import ROLE_ADMIN, STATUS_ACTIVE
from cuentas.infrastructure.db.models import GroupMembership

logger = logging.getLogger(__name__)


def get_membership(db: Session, user_id: int, group_id: int) -> GroupMembership | None:
    return (
        db.query(GroupMembership)
        .filter(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
        .first()
    )


def require_active_membership(db: Session, user_id: int, group_id: int) -> GroupMembership:
    membership = get_membership(db, user_id, group_id)
    if membership is None or membership.status != STATUS_ACTIVE:
        logger.warning("Access denied: user %s is not an active member of group %s", user_id, group_id)
        raise Forbidden("Нет доступа к этой группе")
    return membership


def require_admin(db: Session, user_id: int, group_id: int) -> GroupMembership:
    membership = require_active_membership(db, user_id, group_id)
    if membership.role != ROLE_ADMIN:
        logger.warning("Access denied: user %s is not an admin of group %s", user_id, group_id)
        raise Forbidden("Действие доступно только администратору группы")
    return membership
