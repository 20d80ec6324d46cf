import sys
from pathlib import Path

import pytest


BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture()
def make_client(monkeypatch: pytest.MonkeyPatch):
    from placement.db import reset_client_for_tests
    from placement.middlewares.rate_limit import limiter

    def _make(**env: str):
        monkeypatch.setenv("ENV", "testing")
        monkeypatch.setenv("MONGODB_URI", "mongomock://localhost")
        monkeypatch.setenv("DB_NAME", "placement_test")
        monkeypatch.setenv("BOOTSTRAP_TOKEN", "test-bootstrap")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setenv("TIMEZONE_DISPLAY", "UTC")
        # Prevent accidental pollution from any existing env config.
        monkeypatch.delenv("CALENDAR_SYNC_MODE", raising=False)
        monkeypatch.setenv("JWT_SECRET", "test-secret-for-placement-backend-0123456789")
        for key, value in env.items():
            monkeypatch.setenv(key, value)

        reset_client_for_tests()
        limiter.reset()

        from placement import create_app

        app = create_app()
        app.testing = True
        return app, app.test_client()

    yield _make
    reset_client_for_tests()


@pytest.fixture()
def app_client(make_client):
    return make_client()
