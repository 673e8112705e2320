# backend/comanda/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # development | production | testing
    APP_ENV = os.environ.get("APP_ENV", "development")

    # SQLite DB stored in backend/instance/comanda.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///comanda.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Comma-separated list of origins allowed by the CORS hook
    FRONTEND_URL = os.environ.get(
        "FRONTEND_URL",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
    )

    SESSION_ABSOLUTE_HOURS = _int_env("SESSION_ABSOLUTE_HOURS", 24)
    SESSION_IDLE_HOURS = _int_env("SESSION_IDLE_HOURS", 8)

    DEFAULT_PAGE_SIZE = _int_env("DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE = _int_env("MAX_PAGE_SIZE", 100)

    # bcrypt cost factor; tests lower it to keep fixtures fast
    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 12)

    # Upper bound on rows returned by the low-stock alert scan
    LOW_STOCK_SCAN_LIMIT = _int_env("LOW_STOCK_SCAN_LIMIT", 200)
