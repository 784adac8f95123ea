from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class Settings:
    # JSON document holding businesses and bookings
    state_file: str = "bookings.json"

    # How many times a store read is attempted when the store is unavailable.
    store_retry_attempts: int = 2

    log_level: str = "INFO"

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)


def _parse_positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default).strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer.") from e
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        raise RuntimeError(f"Invalid LOG_LEVEL value: {log_level!r}")

    return Settings(
        state_file=os.getenv("STATE_FILE", "bookings.json"),
        store_retry_attempts=_parse_positive_int("STORE_RETRY_ATTEMPTS", "2"),
        log_level=log_level,
    )
