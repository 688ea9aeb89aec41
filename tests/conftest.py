"""Shared test infrastructure.

Provides:
- settings: fresh Settings pointing at a per-test SQLite file
- engine / session_factory / db: database with all tables created
- make_user, make_community, make_tool, make_booking: row factories
- auth_headers: bearer headers for a user
- client: TestClient with the database dependency overridden
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from toolshare.config import DatabaseConfig, Settings, update_settings
from toolshare.database import build_engine, create_tables, get_db
from toolshare.main import app
from toolshare.models import (
    AuthToken,
    Booking,
    BookingStatus,
    Community,
    CommunityMember,
    Tool,
    ToolCommunity,
    ToolTransport,
    User,
)
from toolshare.utils.helpers import generate_token, start_of_day, utcnow

# Reference point used across the suite (41.695384, 2.492793)
CENTER = (41695384, 2492793)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def settings(tmp_path):
    settings = Settings(database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'test.db'}"))
    update_settings(settings)
    yield settings
    update_settings(Settings())


@pytest.fixture
def engine(settings):
    engine = build_engine(settings.database.url, settings.database.timeout_seconds)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name=None, active=True, location=CENTER):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            is_active=active,
            latitude_micro=location[0] if location else None,
            longitude_micro=location[1] if location else None,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_community(db):
    def _make(owner, members=(), name="Neighbours"):
        """members: iterable of (user, status) pairs."""
        community = Community(name=name, owner_id=owner.id)
        db.add(community)
        db.flush()
        for user, status in members:
            db.add(CommunityMember(community_id=community.id, user_id=user.id, status=status))
        db.commit()
        return community

    return _make


@pytest.fixture
def make_tool(db):
    def _make(owner, title="Drill", location=None, communities=(), transport=(), **kwargs):
        location = location or owner.location
        values = {
            "tool_category": 1,
            "tool_valuation": 3000,
            "cost": 10,
            "is_nomadic": False,
            "is_available": True,
            "description": "",
        }
        values.update(kwargs)
        tool = Tool(
            owner_id=owner.id,
            title=title,
            latitude_micro=location[0],
            longitude_micro=location[1],
            **values,
        )
        for community in communities:
            tool.community_links.append(ToolCommunity(community_id=community.id))
        for option in transport:
            tool.transport_links.append(ToolTransport(transport_option=option))
        db.add(tool)
        db.commit()
        return tool

    return _make


@pytest.fixture
def make_booking(db):
    def _make(tool, requester, status=BookingStatus.PENDING, start_in_days=1, days=2):
        start = start_of_day(utcnow()) + timedelta(days=start_in_days)
        booking = Booking(
            tool_id=tool.id,
            requester_id=requester.id,
            owner_id=tool.owner_id,
            start_date=start,
            end_date=start + timedelta(days=days),
            status=status.value,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def future():
    """Datetime range helper: days from the start of today."""
    def _at(days, hours=0):
        return start_of_day(utcnow()) + timedelta(days=days, hours=hours)

    return _at


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers(db):
    def _headers(user):
        token = AuthToken(
            user_id=user.id,
            token=generate_token(),
            expires_at=utcnow() + timedelta(days=1),
        )
        db.add(token)
        db.commit()
        return {"Authorization": f"Bearer {token.token}"}

    return _headers


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
