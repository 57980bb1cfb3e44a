import os

# Must be set before drawwat.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import base64
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

from drawwat.main import app
from drawwat.models.user import User
from drawwat.services.auth import create_access_token
from drawwat.services.clock import Clock, get_clock
from drawwat.services.database import create_db_engine, get_session
from drawwat.services.lifecycle import PuzzleLifecycle
from drawwat.services.nicknames import NicknameCache
from drawwat.services.s3 import get_image_store, inspect_image
from drawwat.services.store import PuzzleStore

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock(Clock):
    def __init__(self, now: datetime = START):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeImageStore:
    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_deletes = False

    def upload(self, data: bytes, content_type: str) -> str:
        extension = inspect_image(data)
        key = f"drawwat/test/{len(self.objects) + len(self.deleted) + 1}.{extension}"
        self.objects[key] = (data, content_type)
        return key

    def delete(self, key: str) -> bool:
        if self.fail_deletes:
            return False
        self.deleted.append(key)
        self.objects.pop(key, None)
        return True

    def url_for(self, key: str) -> str:
        return f"https://cdn.test/{key}"


@pytest.fixture()
def db_engine():
    test_engine = create_db_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture()
def session(db_engine):
    with Session(db_engine) as db_session:
        yield db_session


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def images():
    return FakeImageStore()


@pytest.fixture()
def store(session):
    return PuzzleStore(session)


@pytest.fixture()
def lifecycle(store, clock, images):
    return PuzzleLifecycle(store=store, clock=clock, images=images, nicknames=NicknameCache(max_entries=16))


@pytest.fixture()
def png_data_url():
    output = BytesIO()
    Image.new("RGB", (4, 4), color=(255, 0, 0)).save(output, format="PNG")
    return "data:image/png;base64," + base64.b64encode(output.getvalue()).decode()


@pytest.fixture()
def make_puzzle(lifecycle, png_data_url):
    def _make(answer="sakura", creator_id="creator", **kwargs):
        kwargs.setdefault("expires_in", 0)
        return lifecycle.create_puzzle(
            creator_id=creator_id, image_data=png_data_url, answer=answer, **kwargs
        )
    return _make


@pytest.fixture()
def add_user(session):
    def _add(user_id, username):
        user = User(user_id=user_id, username=username)
        session.add(user)
        session.commit()
        return user
    return _add


@pytest.fixture()
def auth_headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers


@pytest.fixture()
def client(db_engine, clock, images):
    def override_session():
        with Session(db_engine) as db_session:
            yield db_session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_image_store] = lambda: images
    app.state.nickname_cache = NicknameCache(max_entries=16)
    yield TestClient(app)
    app.dependency_overrides.clear()
