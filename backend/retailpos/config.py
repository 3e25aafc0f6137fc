# backend/retailpos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retailpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retailpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Durable tier for ledger entities: sql | json | none
    STORAGE_BACKEND = os.environ.get("RETAILPOS_STORAGE", "sql")
    LOCAL_STORAGE_DIR = os.environ.get("RETAILPOS_DATA_DIR", os.path.join("instance", "data"))

    EXPENSE_REQUIRE_FUNDS = _env_flag("RETAILPOS_EXPENSE_REQUIRE_FUNDS", True)
    # coerce | strict
    CLOSE_CASH_POLICY = os.environ.get("RETAILPOS_CLOSE_CASH_POLICY", "coerce")
    LOW_STOCK_THRESHOLD = int(os.environ.get("RETAILPOS_LOW_STOCK_THRESHOLD", "5"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", "120"))

    AUTO_CREATE_SCHEMA = _env_flag("RETAILPOS_AUTO_CREATE_SCHEMA", True)
    LEDGER_AUTOLOAD = _env_flag("RETAILPOS_LEDGER_AUTOLOAD", True)
    # Re-read the shared store before a request when the last read is older (0 = off)
    LEDGER_REFRESH_SECONDS = float(os.environ.get("RETAILPOS_LEDGER_REFRESH_SECONDS", "0"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
