# backend/salesops/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salesops.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salesops.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar day boundaries for loading logs and daily summaries
    SALESOPS_TIMEZONE = os.environ.get("SALESOPS_TIMEZONE", "Asia/Bangkok")

    # Quiet period before a route reorder is persisted by the operator client
    ROUTE_ORDER_DEBOUNCE_SECONDS = float(os.environ.get("ROUTE_ORDER_DEBOUNCE_SECONDS", "0.8"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "12"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
