"""
Configuration partagée pour tous les tests.
Base SQLite en mémoire par test ; get_db et le client API distant sont surchargés.
"""

import os

# Avant tout import de bunkmate : pas de fichier SQLite ni de scheduler pendant les tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SYNC_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import bunkmate.models  # noqa: E402,F401 (enregistre les tables dans Base.metadata)
from bunkmate.database import Base, get_db  # noqa: E402
from bunkmate.main import app  # noqa: E402
from bunkmate.services.attendance_client import get_attendance_client  # noqa: E402

from payloads import FakeAttendanceApi, make_raw_response  # noqa: E402


@pytest.fixture
def db():
    """Session sur une base SQLite en mémoire, tables créées à vide."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def fake_api():
    """API distante simulée : une matière, deux séances (présent puis absent)."""
    return FakeAttendanceApi(make_raw_response())


@pytest.fixture
def client(db, fake_api):
    """Client HTTP de test branché sur la base en mémoire et l'API simulée."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_attendance_client] = lambda: fake_api
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
