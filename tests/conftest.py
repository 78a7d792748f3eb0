import os

# settings are cached on first use, so the environment goes first
os.environ["JWT_SECRET"] = "test-secret"
os.environ["MONGO_ENSURE_INDEXES"] = "false"
os.environ["MONGO_URL"] = "mongodb://localhost:27017"

import pytest
from fastapi.testclient import TestClient

from fakes import FakeStore, RecordingNotifier
from marketchat.main import create_app
from marketchat.utils.dependencies import get_chat_service


@pytest.fixture
def store():
    s = FakeStore()
    s.add_user("u1", "Ayşe", "https://cdn.example.com/ayse.png")
    s.add_user("u2", "Burak")
    s.add_user("u3", "Cem")
    return s


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier):
    return store.chat_service(notifier)


@pytest.fixture
def app(store, notifier):
    app = create_app()
    app.dependency_overrides[get_chat_service] = lambda: store.chat_service(notifier)
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
