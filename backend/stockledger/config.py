# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Currency symbol used for new owners and invoices that don't set one
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "Rs")

    # Live feeds: transactions feed page size and polling cadence
    TRANSACTION_FEED_LIMIT = int(os.environ.get("TRANSACTION_FEED_LIMIT", "100"))
    FEED_POLL_INTERVAL_SECONDS = float(os.environ.get("FEED_POLL_INTERVAL_SECONDS", "2.0"))

    # Transport-level retry for concurrent-write conflicts
    CONFLICT_RETRY_ATTEMPTS = int(os.environ.get("CONFLICT_RETRY_ATTEMPTS", "3"))
    CONFLICT_RETRY_BACKOFF = float(os.environ.get("CONFLICT_RETRY_BACKOFF", "0.1"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    }
