import fnmatch
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# до импорта settings: тестовая БД в памяти и без демо-курсов
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/99")
os.environ.setdefault("SEED_SAMPLE_COURSES", "false")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coursetrack.domain.entities import Principal
from coursetrack.infrastructure import cache
from coursetrack.infrastructure.db import get_db
from coursetrack.infrastructure.models import Base, CourseORM, UserORM
from coursetrack.interfaces.http.rate_limit import limiter


class FakeRedis:
    """Just enough of redis.Redis for the cache helpers."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value

    def delete(self, *keys):
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    def keys(self, pattern):
        return [k for k in self.data if fnmatch.fnmatch(k, pattern)]


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(cache, "get_redis", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def no_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    from coursetrack.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_user(db):
    def _make(email="u1@example.com"):
        row = UserORM(email=email, password_hash="not-a-real-hash")
        db.add(row)
        db.commit()
        return Principal(id=row.id, email=row.email)
    return _make


@pytest.fixture
def make_course(db):
    base = datetime(2025, 10, 2, 9, 0, tzinfo=timezone.utc)
    counter = iter(range(1000))

    def _make(title="Python Programming Masterclass", duration=240, created_at=None):
        row = CourseORM(
            title=title,
            description=f"About {title}",
            thumbnail="https://images.example.com/thumb.png",
            duration=duration,
            created_at=created_at or base + timedelta(minutes=next(counter)),
        )
        db.add(row)
        db.commit()
        return row.id
    return _make
