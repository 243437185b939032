# tests/conftest.py
from __future__ import annotations

import os
import tempfile

# must be set before rentline.config builds its settings singleton
_DB_PATH = os.path.join(tempfile.gettempdir(), f"rentline_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["AUTH_MODE"] = "dev"
os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402

from rentline import models  # noqa: E402,F401
from rentline.db import Base, engine  # noqa: E402
from rentline.services.cache import DASHBOARD_CACHE  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    DASHBOARD_CACHE.clear()
    yield
    DASHBOARD_CACHE.clear()


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)
