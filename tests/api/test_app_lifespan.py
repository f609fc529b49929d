from fastapi.testclient import TestClient

import main
from core.config.settings import get_settings


def test_lifespan_configures_logging(monkeypatch):
    levels = []
    monkeypatch.setattr(main, "configure_logging", levels.append)

    with TestClient(main.app) as client:
        assert client.get("/").json() == {"message": "Welcome to GenieLearn API"}

    assert levels == [get_settings().log_level]
