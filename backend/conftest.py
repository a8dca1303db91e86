from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
# Cheap hashes keep the auth tests fast.
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "8192"
os.environ["ARGON2_PARALLELISM"] = "1"

from labstore.database import Base  # noqa: E402
from labstore.apps.accounts import models as account_models  # noqa: E402
from labstore.apps.inventory import models as inventory_models  # noqa: E402
from labstore.apps.audit import models as audit_models  # noqa: E402
from labstore.security import get_password_hash  # noqa: E402


@pytest.fixture()
def engine():
    # StaticPool: one shared connection, so TestClient worker threads see
    # the same in-memory database as the test body.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.Admin.__table__,
            inventory_models.Component.__table__,
            inventory_models.Student.__table__,
            inventory_models.Issue.__table__,
            inventory_models.IssueItem.__table__,
            audit_models.AuditEvent.__table__,
        ],
    )
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(engine):
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def admin(db_session) -> account_models.Admin:
    admin = account_models.Admin(username="admin", hashed_password=get_password_hash("admin123"))
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin
