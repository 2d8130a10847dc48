"""Shared fixtures: an in-memory SQLite database per test and an API client bound to it."""

from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rentflow.models  # noqa: F401
from rentflow.core.database import Base, get_db
from rentflow.main import app
from rentflow.models.commission import CommissionRule, CommissionType, TargetUserType
from rentflow.models.user import User, UserRole
from rentflow.schemas.commission import AgentActionCreate


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, email: str, role: UserRole, first: str, last: str) -> User:
    user = User(email=email, first_name=first, last_name=last, role=role.value, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db) -> User:
    return _make_user(db, "admin@rentflow.test", UserRole.SUPER_ADMIN, "Ada", "Admin")


@pytest.fixture
def agent(db) -> User:
    return _make_user(db, "agent@rentflow.test", UserRole.AGENT, "Grace", "Mukamana")


@pytest.fixture
def agent2(db) -> User:
    return _make_user(db, "agent2@rentflow.test", UserRole.AGENT, "Eric", "Habimana")


@pytest.fixture
def make_rule(db):
    def _make_rule(
        action_type: str,
        commission_type: CommissionType,
        value: str,
        min_amount: Optional[str] = None,
        max_amount: Optional[str] = None,
        is_active: bool = True,
    ) -> CommissionRule:
        rule = CommissionRule(
            action_type=action_type,
            name=f"{action_type} rule",
            commission_type=commission_type,
            commission_value=Decimal(value),
            min_amount=Decimal(min_amount) if min_amount is not None else None,
            max_amount=Decimal(max_amount) if max_amount is not None else None,
            is_active=is_active,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _make_rule


def action(agent_id: int, action_type: str, amount=None, **extra) -> AgentActionCreate:
    return AgentActionCreate(
        agent_id=agent_id,
        action_type=action_type,
        target_user_type=extra.pop("target_user_type", TargetUserType.TENANT),
        transaction_amount=amount,
        **extra,
    )


@pytest.fixture
def client(session_factory):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    # No context manager: the lifespan would initialise the configured database
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def headers_for(user: User) -> dict:
    return {"X-User-Id": str(user.id)}
