from __future__ import annotations

from typing import Any

import pytest

from scripts import run_server
from student_profiles.infrastructure.config import reset_settings


@pytest.fixture
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    reset_settings()
    yield monkeypatch
    reset_settings()


def test_parse_args_defaults() -> None:
    args = run_server.parse_args([])
    assert args.host == "127.0.0.1"
    assert args.port == 8000
    assert args.reload is False


def test_main_launches_uvicorn(fresh_settings: pytest.MonkeyPatch) -> None:
    fresh_settings.setenv("STORE_BACKEND", "memory")
    calls: list[tuple[str, dict[str, Any]]] = []

    def fake_run(target: str, **kwargs: Any) -> None:
        calls.append((target, kwargs))

    fresh_settings.setattr(run_server.uvicorn, "run", fake_run)
    fresh_settings.setattr(run_server, "setup_logging", lambda **kwargs: None)

    run_server.main(["--host", "0.0.0.0", "--port", "9000", "--reload"])

    assert calls == [
        ("student_profiles.web.main:app", {"host": "0.0.0.0", "port": 9000, "reload": True})
    ]


def test_prepare_store_creates_sqlite_schema(fresh_settings, tmp_path) -> None:
    db_path = tmp_path / "profiles.db"
    fresh_settings.setenv("STORE_BACKEND", "sqlite")
    fresh_settings.setenv("STORE_SQLITE_PATH", str(db_path))

    run_server.prepare_store()

    assert db_path.exists()


def test_main_applies_config_file(fresh_settings, tmp_path) -> None:
    config_file = tmp_path / "settings.json"
    config_file.write_text('{"store": {"backend": "memory"}, "app": {"trend_window": 6}}')
    # Registered so monkeypatch restores them after the loader exports its values
    fresh_settings.setenv("STORE_BACKEND", "sqlite")
    fresh_settings.setenv("APP_TREND_WINDOW", "4")
    fresh_settings.setattr(run_server.uvicorn, "run", lambda target, **kwargs: None)
    fresh_settings.setattr(run_server, "setup_logging", lambda **kwargs: None)

    run_server.main(["--config", str(config_file)])

    settings = run_server.get_settings()
    assert settings.store.backend == "memory"
    assert settings.app.trend_window == 6
