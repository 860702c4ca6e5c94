"""
FastAPI dependencies (DB session, authentication)
"""
from fastapi import Depends, Request, HTTPException, status
from sqlalchemy.orm import Session

from cuentas.infrastructure.db.session import get_db as _get_db
from cuentas.infrastructure.db.models import User


# Re-export get_db для удобства
get_db = _get_db


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Текущий пользователь из session (user_id кладёт слой аутентификации)

    Raises:
        HTTPException(401): если не залогинен

    Usage:
        @router.get("/groups")
        def list_groups(user: User = Depends(get_current_user)):
            ...
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user
