# backend/canteen/config.py
from __future__ import annotations
import os

from .time_utils import DEFAULT_BUSINESS_DAY_START_HOUR, DEFAULT_BUSINESS_TIMEZONE


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///canteen_store.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Business day starts at 02:00 in this zone; sales made between midnight
    # and 02:00 belong to the previous day.
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE)
    BUSINESS_DAY_START_HOUR = int(os.environ.get("BUSINESS_DAY_START_HOUR", DEFAULT_BUSINESS_DAY_START_HOUR))

    # cash + online + other may differ from the total by at most this much
    PAYMENT_TOLERANCE_CENTS = int(os.environ.get("PAYMENT_TOLERANCE_CENTS", "1"))

    CONFLICT_RETRY_ATTEMPTS = int(os.environ.get("CONFLICT_RETRY_ATTEMPTS", "3"))
    CONFLICT_RETRY_BACKOFF = float(os.environ.get("CONFLICT_RETRY_BACKOFF", "0.1"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",")
        if origin.strip()
    )
