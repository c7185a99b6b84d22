from datetime import datetime, timedelta
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from career_ai.api.deps import get_kv
from career_ai.core.config import settings
from career_ai.core.database import Base, build_engine
from career_ai.core.kv import KvStore
from career_ai.core.ratelimit import ALL_RATE_LIMITERS
from career_ai.main import app
from career_ai.models import entities  # noqa: F401


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv(clock):
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    store = KvStore(sessionmaker(bind=engine, autocommit=False, autoflush=False), clock=clock)
    yield store
    engine.dispose()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    for limiter in ALL_RATE_LIMITERS:
        limiter.reset()
    yield
    for limiter in ALL_RATE_LIMITERS:
        limiter.reset()


@pytest.fixture
def llm_keys(monkeypatch):
    monkeypatch.setattr(settings, "anthropic_api_key", "test-anthropic-key")
    monkeypatch.setattr(settings, "openai_api_key", "test-openai-key")


@pytest.fixture
def client(kv):
    app.dependency_overrides[get_kv] = lambda: kv
    yield TestClient(app)
    app.dependency_overrides.clear()
