from passlib.context import CryptContext
from sqlalchemy import func
from sqlalchemy.orm import Session

from cuentas.infrastructure.db.models import User

# pbkdf2_sha256: primary (no native deps)
# bcrypt: legacy support for hashes imported from older accounts
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated=["bcrypt"])


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Emails match case-insensitively."""
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def create_user(db: Session, email: str, password: str, first_name: str | None = None,
                last_name: str | None = None) -> User:
    """Account creation helper for seed scripts and tests (no commit)."""
    user = User(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.flush()
    return user
