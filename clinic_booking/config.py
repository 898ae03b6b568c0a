from __future__ import annotations

import logging
import os

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    store_url: str = "http://localhost:8080/api"
    token_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    store_timeout_seconds: float = 15

    api_key: str = ""
    offline_mode: bool = False

    cache_ttl_seconds: float = 60
    batch_workers: int = 3
    shutdown_grace_seconds: float = 5

    log_level: str = "INFO"


def _number(name: str, default: str, cast=float, minimum: float = 0):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # .env in the working directory unless a path is given; real env wins
    load_dotenv(dotenv_path=dotenv_path or find_dotenv(usecwd=True), override=False)

    return Settings(
        store_url=os.getenv("CLINIC_STORE_URL", "http://localhost:8080/api"),
        token_url=os.getenv("CLINIC_TOKEN_URL") or None,
        client_id=os.getenv("CLINIC_CLIENT_ID"),
        client_secret=os.getenv("CLINIC_CLIENT_SECRET"),
        store_timeout_seconds=_number("STORE_TIMEOUT_SECONDS", "15"),
        api_key=os.getenv("CLINIC_API_KEY", ""),
        offline_mode=os.getenv("OFFLINE_MODE", "0") == "1",
        cache_ttl_seconds=_number("CACHE_TTL_SECONDS", "60"),
        batch_workers=_number("BATCH_WORKERS", "3", cast=int, minimum=1),
        shutdown_grace_seconds=_number("SHUTDOWN_GRACE_SECONDS", "5"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=_LOG_FORMAT)
