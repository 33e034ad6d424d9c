import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pricetrack.models  # noqa: F401
from pricetrack.engines import registry
from pricetrack.models.base import Base, store_now

from factories import SCRIPTED_ENGINE_ID, ScriptedEngine


@pytest.fixture
def scripted_engine(monkeypatch):
    ScriptedEngine.scripts = {}
    ScriptedEngine.calls = []
    monkeypatch.setitem(registry._REGISTRY, SCRIPTED_ENGINE_ID, ScriptedEngine)
    return ScriptedEngine


@pytest.fixture
def sleeps():
    """Records requested backoff delays instead of sleeping."""
    return []


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(db_engine):
    session = sessionmaker(bind=db_engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def now(db):
    return store_now(db)
