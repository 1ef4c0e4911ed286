import pytest
from pydantic import ValidationError

from annual_leave.config import Settings
from annual_leave.db import _engine_options


def test_defaults() -> None:
    settings = Settings(_env_file=None)  # type: ignore[call-arg]
    assert settings.system_actor == "SYSTEM"
    assert settings.manual_grant_expire_days == 365
    assert settings.log_level == "INFO"


def test_log_level_is_normalised(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert Settings(_env_file=None).log_level == "DEBUG"  # type: ignore[call-arg]


def test_unknown_log_level_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")  # type: ignore[call-arg]


def test_engine_options_per_backend() -> None:
    assert _engine_options("sqlite+aiosqlite:///:memory:") == {"connect_args": {"check_same_thread": False}}
    assert _engine_options("postgresql+asyncpg://u:p@db/annual_leave") == {"pool_pre_ping": True}
