"""
Transaction boundary for write use cases.

The write, its journal event and the scope version bump are committed
together; on any failure the session is rolled back before re-raising.
"""
from contextlib import contextmanager

from sqlalchemy.orm import Session


@contextmanager
def atomic(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise
