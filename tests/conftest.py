"""
Test configuration and fixtures for pytest.
"""

import os

# Set before the application modules read their configuration
os.environ["TESTING"] = "True"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["CONTAINER_LOCK_BACKEND"] = "local"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nestify.core.locks import LocalContainerLocks
from nestify.core.security import create_access_token
from nestify.db.base import Base
from nestify.db.models import Playlist, PlaylistTrack, User
from nestify.dependencies import db_dependency, get_locks
from nestify.main import app


@pytest.fixture
def test_engine():
    """Create a fresh in-memory database for a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Create a new database session for a test."""
    session_factory = sessionmaker(bind=test_engine, autoflush=False)
    session = session_factory()

    yield session

    session.close()


@pytest.fixture
def locks():
    """Container locks private to one test."""
    return LocalContainerLocks(timeout=2)


@pytest.fixture
def client(db_session, locks):
    """Create a test client with session and lock overrides."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[db_dependency] = override_get_db
    app.dependency_overrides[get_locks] = lambda: locks

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def _create_user(db_session, spotify_id, display_name):
    user = User(
        spotify_id=spotify_id,
        display_name=display_name,
        email=f"{spotify_id}@example.com",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_user(db_session):
    """Create a test user."""
    return _create_user(db_session, "test_spotify_id", "Test User")


@pytest.fixture
def other_user(db_session):
    """Create a second user whose playlists must stay invisible to test_user."""
    return _create_user(db_session, "other_spotify_id", "Other User")


@pytest.fixture
def auth_headers(test_user):
    """Authorization header carrying an access token for test_user."""
    token = create_access_token({"sub": str(test_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def add_playlist(db_session, test_user):
    """Insert a playlist row with an explicit order, bypassing the mutation engine."""

    def _add(name, parent=None, order=0, user=None):
        playlist = Playlist(
            user_id=(user or test_user).id,
            parent_id=parent.id if parent is not None else None,
            name=name,
            order=order,
        )
        db_session.add(playlist)
        db_session.commit()
        db_session.refresh(playlist)
        return playlist

    return _add


@pytest.fixture
def add_track(db_session):
    """Insert a track row with an explicit order, bypassing the mutation engine."""

    def _add(playlist, spotify_track_id, order=0):
        track = PlaylistTrack(
            playlist_id=playlist.id,
            spotify_track_id=spotify_track_id,
            order=order,
        )
        db_session.add(track)
        db_session.commit()
        db_session.refresh(track)
        return track

    return _add


# Reset test environment at the end of session
def pytest_sessionfinish(session, exitstatus):
    """Clean up after all tests have run."""
    os.environ.pop("TESTING", None)
