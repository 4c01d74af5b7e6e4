# backend/ezorder/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ezorder.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ezorder.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Civil-day boundaries (cash reconciliation windows, date filters)
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/Tegucigalpa")

    # Upper bound for the sales/expense aggregation run at close time
    LEDGER_QUERY_TIMEOUT_MS = int(os.environ.get("LEDGER_QUERY_TIMEOUT_MS", "5000"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Development-mode flag: include exception text in 500 responses
    EXPOSE_ERROR_DETAILS = _env_flag("EXPOSE_ERROR_DETAILS")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]
