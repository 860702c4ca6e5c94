"""
Pytest fixtures for testing
"""
from datetime import date

import pytest
from sqlalchemy import create_engine, JSON
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.dialects.postgresql import JSONB

from cuentas.infrastructure.db.session import Base
from cuentas.infrastructure.db import models  # noqa: F401  (registers tables)
from cuentas.application.sync import get_scope_cache
from cuentas.application.groups import CreateGroupUseCase, InviteMemberUseCase, AcceptInvitationUseCase
from cuentas.auth import create_user


@pytest.fixture
def db_engine():
    """Create in-memory SQLite engine for tests, with JSONB→JSON mapping."""
    # StaticPool: one shared connection, so TestClient threads see the same DB
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite doesn't support JSONB, remap to JSON for tests
    for table in Base.metadata.tables.values():
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def clear_scope_cache():
    """The month-view memo is process-wide"""
    get_scope_cache().clear()
    yield
    get_scope_cache().clear()


@pytest.fixture
def today():
    """Fixed "today" for status computations"""
    return date(2025, 6, 10)


@pytest.fixture
def alice(db_session):
    user = create_user(db_session, "alice@example.com", "secret", first_name="Alice", last_name="Admin")
    db_session.commit()
    return user


@pytest.fixture
def bob(db_session):
    user = create_user(db_session, "bob@example.com", "secret", first_name="Bob")
    db_session.commit()
    return user


@pytest.fixture
def carol(db_session):
    user = create_user(db_session, "carol@example.com", "secret")
    db_session.commit()
    return user


@pytest.fixture
def group_id(db_session, alice):
    """Group created by alice (active admin)"""
    return CreateGroupUseCase(db_session).execute(user_id=alice.id, name="Casa")


@pytest.fixture
def shared_group_id(db_session, alice, bob, group_id):
    """alice's group with bob as an active member"""
    InviteMemberUseCase(db_session).execute(actor_user_id=alice.id, group_id=group_id, email=bob.email)
    AcceptInvitationUseCase(db_session).execute(user_id=bob.id, group_id=group_id)
    return group_id
