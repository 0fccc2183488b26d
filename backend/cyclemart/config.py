# backend/cyclemart/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cyclemart.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cyclemart.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Billing defaults. Tax rates are fractions (0.18 == 18%).
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.18")
    SERVICE_TAX_RATE = os.environ.get("SERVICE_TAX_RATE", "0.08")
    INVOICE_DUE_DAYS = int(os.environ.get("INVOICE_DUE_DAYS", "30"))

    NEW_CUSTOMER_WINDOW_DAYS = int(os.environ.get("NEW_CUSTOMER_WINDOW_DAYS", "7"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed to call the API (dev frontend servers)
    CORS_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    )
