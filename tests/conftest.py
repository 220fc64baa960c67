"""
Pytest configuration and fixtures.

Provides:
- An in-memory SQLite database shared across threads
- Data factories for camps, activities, users, campers and schedules
- A fixed reference time so schedule windows are deterministic
"""

import os

# Set test environment variables before importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["IDEMPOTENCY_BACKEND"] = "memory"
os.environ["CAMP_TIMEZONE"] = "UTC"

import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.session import Base
from app.models import (
    Activity,
    ActivitySchedule,
    Camp,
    Camper,
    Group,
    Location,
    User,
)
from app.schemas.activity_schedule import ActivityTypeEnum, ScheduleStatusEnum
from app.schemas.user import RoleEnum

# "now" for every scenario; the camp runs from NOW + 1 day to NOW + 5 days
NOW = datetime(2030, 7, 1, 8, 0, tzinfo=timezone.utc)


def at(days: float = 0, minutes: float = 0) -> datetime:
    return NOW + timedelta(days=days, minutes=minutes)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _create(role=RoleEnum.staff, id=None, email=None, full_name=None):
        counter["n"] += 1
        user = User(
            id=id,
            full_name=full_name or f"User {counter['n']}",
            email=email or f"user{counter['n']}@camp.test",
            role=role,
        )
        db.add(user)
        db.commit()
        return user
    return _create


@pytest.fixture
def make_camp(db):
    def _create(start=None, end=None, name="Summer Camp"):
        camp = Camp(name=name, start_date=start or at(days=1), end_date=end or at(days=5))
        db.add(camp)
        db.commit()
        return camp
    return _create


@pytest.fixture
def camp(make_camp):
    return make_camp()


@pytest.fixture
def make_activity(db):
    def _create(camp, activity_type=ActivityTypeEnum.core, name=None):
        activity = Activity(camp_id=camp.id, name=name or f"{activity_type.value} activity", activity_type=activity_type)
        db.add(activity)
        db.commit()
        return activity
    return _create


@pytest.fixture
def make_location(db):
    def _create(name="Lake Shore"):
        location = Location(name=name)
        db.add(location)
        db.commit()
        return location
    return _create


@pytest.fixture
def make_group(db):
    def _create(camp, name="Eagles", supervisor_id=None):
        group = Group(camp_id=camp.id, name=name, supervisor_id=supervisor_id)
        db.add(group)
        db.commit()
        return group
    return _create


@pytest.fixture
def make_camper(db):
    def _create(camp, group=None, id=None, name=None):
        camper = Camper(
            id=id,
            camper_name=name or f"Camper {id or ''}".strip(),
            camp_id=camp.id,
            group_id=group.id if group else None,
        )
        db.add(camper)
        db.commit()
        return camper
    return _create


@pytest.fixture
def make_schedule(db):
    """Insert a schedule directly, bypassing validation, to set up existing state"""
    def _create(activity, start, end, location_id=None, staff_id=None,
                status=ScheduleStatusEnum.scheduled, core_activity_id=None, is_live_stream=False):
        schedule = ActivitySchedule(
            activity_id=activity.id,
            location_id=location_id,
            staff_id=staff_id,
            start_time=start,
            end_time=end,
            status=status,
            core_activity_id=core_activity_id,
            is_live_stream=is_live_stream,
        )
        db.add(schedule)
        db.commit()
        return schedule
    return _create
