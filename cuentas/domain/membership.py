"""
Group membership state machine (pure rules).

    pending_invitation --accept--> active --deactivate--> deactivated
    deactivated --re-invite--> pending_invitation

Leaving (active) and rejecting (pending_invitation) delete the row instead of
moving it to a state.
"""
from cuentas.domain.errors import Conflict, ValidationError

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
VALID_ROLES = frozenset({ROLE_ADMIN, ROLE_MEMBER})

STATUS_PENDING_INVITATION = "pending_invitation"
STATUS_ACTIVE = "active"
STATUS_DEACTIVATED = "deactivated"

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING_INVITATION: frozenset({STATUS_ACTIVE}),
    STATUS_ACTIVE: frozenset({STATUS_DEACTIVATED}),
    STATUS_DEACTIVATED: frozenset({STATUS_PENDING_INVITATION}),
}

MAX_GROUP_NAME_LENGTH = 100


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def assert_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise Conflict(f"Недопустимый переход статуса участника: {current} -> {target}")


def validate_group_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "Название группы не может быть пустым")
    if len(name) > MAX_GROUP_NAME_LENGTH:
        raise ValidationError("name", f"Название группы не может быть длиннее {MAX_GROUP_NAME_LENGTH} символов")
    return name


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValidationError("email", "Некорректный email")
    return email
