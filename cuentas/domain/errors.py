"""
Error taxonomy shared by domain rules and use cases.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer answers with. Messages are user-facing.

    ValidationError   422  malformed amount/date/range, rejected before any write
    NotFound          404  obligation / payment / membership / user / category missing
    Forbidden         403  authenticated but not allowed in this group/role
    Conflict          409  duplicate membership, creator leaving, ...
    Expired           410  invitation token past its TTL
    Unavailable       503  backing store unreachable
"""


class AppError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(AppError, ValueError):
    """Invalid input; ``field`` names the offending field."""
    code = "validation_error"
    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "field": self.field}


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class ObligationNotFound(NotFound):
    code = "obligation_not_found"


class PaymentNotFound(NotFound):
    code = "payment_not_found"


class MembershipNotFound(NotFound):
    code = "membership_not_found"


class UserNotFound(NotFound):
    code = "user_not_found"


class InvitationNotFound(NotFound):
    code = "invitation_not_found"


class CategoryNotFound(NotFound):
    code = "category_not_found"


class Forbidden(AppError):
    code = "forbidden"
    status_code = 403


class Conflict(AppError):
    code = "conflict"
    status_code = 409


class AlreadyMember(Conflict):
    code = "already_member"


class Expired(AppError):
    code = "expired"
    status_code = 410


class InvitationExpired(Expired):
    code = "invitation_expired"


class Unavailable(AppError):
    code = "unavailable"
    status_code = 503
