"""Pytest fixtures for push dispatch tests."""

import base64
import os
from collections.abc import Generator

os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.security import create_access_token
from app.db.base import Base
from app.db.models import Member, PushSubscription, Team
from app.main import create_app
from app.services.push.channels.base import warn_disabled


TABLES = [Team.__table__, Member.__table__, PushSubscription.__table__]


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def reset_disabled_warnings() -> Generator[None, None, None]:
    warn_disabled.cache_clear()
    yield
    warn_disabled.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def club(db_session):
    """A small club: two teams, staff with mixed role storage, athletes."""

    cheer = Team(id=1, name="Cheer Seniors")
    juniors = Team(id=2, name="Juniors")
    db_session.add_all([cheer, juniors])
    db_session.flush()

    members = {
        "admin": Member(id=1, first_name="Kai", last_name="Admin", roles=["Admin"], team_id=1),
        "orga": Member(id=2, first_name="Mara", last_name="Orga", roles="member, ORGA", team_id=1),
        "coach": Member(id=3, first_name="Tim", last_name="Coach", roles=["coach", "member"], team_id=2),
        "athlete": Member(id=4, first_name="Leah", last_name="Athlete", roles=["member"], team_id=1),
        "inactive": Member(
            id=5, first_name="Zoe", last_name="Former", roles=["member"], team_id=1, status="inactive"
        ),
        "junior": Member(id=6, first_name="Sunny", last_name="Junior", roles=[], team_id=2),
    }
    db_session.add_all(members.values())
    db_session.commit()
    return members


@pytest.fixture()
def auth_headers():
    def _headers(member: Member) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(member.id)}"}

    return _headers


@pytest.fixture()
def add_subscription(db_session):
    def _add(member_id: int, endpoint: str, *, p256dh: str = "p256dh-key", auth: str = "auth-secret") -> PushSubscription:
        subscription = PushSubscription(member_id=member_id, endpoint=endpoint, p256dh=p256dh, auth=auth)
        db_session.add(subscription)
        db_session.commit()
        return subscription

    return _add


@pytest.fixture(scope="session")
def vapid_keys() -> tuple[str, str]:
    """A real P-256 key pair as (public, private), base64url encoded like the env vars."""

    key = ec.generate_private_key(ec.SECP256R1())
    public = key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    private = key.private_numbers().private_value.to_bytes(32, "big")

    def encode(raw: bytes) -> str:
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()

    return encode(public), encode(private)
