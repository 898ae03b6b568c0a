import os

import pytest

from clinic_booking.config import load_settings

ENV_VARS = [
    "CLINIC_STORE_URL", "CLINIC_TOKEN_URL", "CLINIC_CLIENT_ID", "CLINIC_CLIENT_SECRET", "CLINIC_API_KEY",
    "OFFLINE_MODE", "CACHE_TTL_SECONDS", "BATCH_WORKERS", "SHUTDOWN_GRACE_SECONDS", "STORE_TIMEOUT_SECONDS",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    settings = load_settings(dotenv_path=str(tmp_path / "missing.env"))
    assert settings.cache_ttl_seconds == 60
    assert settings.batch_workers == 3
    assert settings.shutdown_grace_seconds == 5
    assert settings.offline_mode is False
    assert settings.token_url is None


def test_reads_dotenv_file(tmp_path):
    env = tmp_path / ".env"
    env.write_text("OFFLINE_MODE=1\nBATCH_WORKERS=5\nCLINIC_API_KEY=secret\nLOG_LEVEL=debug\n")
    try:
        settings = load_settings(dotenv_path=str(env))
    finally:
        # load_dotenv writes straight into os.environ
        for name in ("OFFLINE_MODE", "BATCH_WORKERS", "CLINIC_API_KEY", "LOG_LEVEL"):
            os.environ.pop(name, None)
    assert settings.offline_mode is True
    assert settings.batch_workers == 5
    assert settings.api_key == "secret"
    assert settings.log_level == "DEBUG"


def test_environment_beats_dotenv(tmp_path, monkeypatch):
    env = tmp_path / ".env"
    env.write_text("CACHE_TTL_SECONDS=10\n")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "30")
    assert load_settings(dotenv_path=str(env)).cache_ttl_seconds == 30


@pytest.mark.parametrize("name,value", [("BATCH_WORKERS", "0"), ("BATCH_WORKERS", "three"), ("CACHE_TTL_SECONDS", "-1")])
def test_invalid_numbers(tmp_path, monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError):
        load_settings(dotenv_path=str(tmp_path / "missing.env"))


def test_dotenv_found_in_working_directory(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("SHUTDOWN_GRACE_SECONDS=2\n")
    monkeypatch.chdir(tmp_path)
    try:
        settings = load_settings()
    finally:
        os.environ.pop("SHUTDOWN_GRACE_SECONDS", None)
    assert settings.shutdown_grace_seconds == 2
