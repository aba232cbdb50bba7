import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

# Keep the module-level app off the filesystem when it gets imported
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from src.task_api.db import SqlTaskStore  # noqa: E402
from src.task_api.main import create_app  # noqa: E402
from src.task_api.repositories import InMemoryTaskStore  # noqa: E402
from src.task_api.settings import Settings  # noqa: E402


class TickingClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start=datetime(2025, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture(params=["memory", "sql"])
def backend(request):
    return request.param


@pytest.fixture
def make_store(backend, tmp_path, clock):
    def _make():
        if backend == "memory":
            return InMemoryTaskStore(clock=clock)
        return SqlTaskStore(f"sqlite:///{tmp_path / 'tasks.db'}", clock=clock)

    return _make


@pytest.fixture
def store(make_store):
    with make_store() as s:
        yield s


@pytest.fixture
def app_store(make_store):
    # Left unopened: the application lifespan owns open/close
    return make_store()


@pytest.fixture
def client(app_store, backend):
    app = create_app(settings=Settings(persistence_backend=backend), store=app_store)
    with TestClient(app) as c:
        yield c
