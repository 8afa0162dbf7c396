"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (create_all / drop_all)
- Two offices (North, South) with a staff roster, users and patients
- JWT token minting and HTTPX AsyncClient with proper headers
"""
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Must be set before practice.* is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENV"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from practice.core.access_policy import OfficeScope, resolve_effective_office_filter
from practice.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from practice.core.security import create_session_token
from practice.db.base import Base
from practice.db.models import Office, Patient, StaffMember, User
from practice.db.session import SessionLocal, engine
from practice.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session on a fresh schema.

    App code commits freely; the whole schema is dropped afterwards.
    """
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


def make_user(
    db: Session,
    office: Office | None,
    display_name: str,
    can_view_all_offices: bool = False,
    email: str | None = None,
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email or f"user-{uuid.uuid4().hex[:8]}@test.com",
        display_name=display_name,
        office_id=office.id if office else None,
        can_view_all_offices=can_view_all_offices,
        token_version=1,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


def make_patient(db: Session, office: Office | None, name: str = "Pat Example") -> Patient:
    patient = Patient(id=uuid.uuid4(), office_id=office.id if office else None, name=name)
    db.add(patient)
    db.commit()
    return patient


@pytest.fixture(scope="function")
def user_factory(db: Session):
    def _make(office: Office | None, display_name: str = "Staff User", **kwargs) -> User:
        return make_user(db, office, display_name, **kwargs)
    return _make


@pytest.fixture(scope="function")
def patient_factory(db: Session):
    def _make(office: Office | None, name: str = "Pat Example") -> Patient:
        return make_patient(db, office, name)
    return _make


@pytest.fixture(scope="function")
def scope_for():
    """Effective office scope for a user (as the routers resolve it)."""
    def _scope(user: User, office_id: uuid.UUID | None = None) -> OfficeScope:
        return resolve_effective_office_filter(user, office_id)
    return _scope


@pytest.fixture(scope="function")
def north(db: Session) -> Office:
    office = Office(id=uuid.uuid4(), name="North")
    db.add(office)
    db.commit()
    return office


@pytest.fixture(scope="function")
def south(db: Session) -> Office:
    office = Office(id=uuid.uuid4(), name="South")
    db.add(office)
    db.commit()
    return office


@pytest.fixture(scope="function")
def roster(db: Session, north: Office, south: Office) -> dict[str, StaffMember]:
    """North: Dana Smith, Lee Park. South: Sam Diaz."""
    members = {
        "Dana Smith": StaffMember(id=uuid.uuid4(), office_id=north.id, display_name="Dana Smith"),
        "Lee Park": StaffMember(id=uuid.uuid4(), office_id=north.id, display_name="Lee Park"),
        "Sam Diaz": StaffMember(id=uuid.uuid4(), office_id=south.id, display_name="Sam Diaz"),
    }
    db.add_all(members.values())
    db.commit()
    return members


@pytest.fixture(scope="function")
def north_user(db: Session, north: Office) -> User:
    return make_user(db, north, "Nora North")


@pytest.fixture(scope="function")
def south_user(db: Session, south: Office) -> User:
    return make_user(db, south, "Sid South")


@pytest.fixture(scope="function")
def head_user(db: Session, north: Office) -> User:
    """Head office staff: based in North, sees every office."""
    return make_user(db, north, "Hana Head", can_view_all_offices=True)


@pytest.fixture(scope="function")
def north_patient(db: Session, north: Office) -> Patient:
    return make_patient(db, north, "Alice North")


@pytest.fixture(scope="function")
def south_patient(db: Session, south: Office) -> Patient:
    return make_patient(db, south, "Bob South")


# =============================================================================
# Auth / Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def auth_for(user: User) -> TestAuth:
    return TestAuth(
        user=user,
        token=create_session_token(user_id=user.id, token_version=user.token_version),
    )


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def user_client(db: Session):
    """
    Factory for an authenticated client acting as a given user.

    Usage:
        async with user_client(north_user) as c:
            await c.get("/patients")
    """
    @asynccontextmanager
    async def _client(user: User):
        def override_get_db():
            yield db

        app.dependency_overrides[get_db] = override_get_db
        auth = auth_for(user)
        try:
            async with AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test",
                cookies={auth.cookie_name: auth.token},
                headers={CSRF_HEADER: CSRF_HEADER_VALUE},
            ) as c:
                yield c
        finally:
            app.dependency_overrides.clear()

    return _client
