# backend/stockcore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockcore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Invoice numbering: PREFIX-YEAR-NN
    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "INV")
    EMPLOYEE_INVOICE_PREFIX = os.environ.get("EMPLOYEE_INVOICE_PREFIX", "EMP")
    INVOICE_PAD = int(os.environ.get("INVOICE_PAD", "2"))
    INVOICE_MAX_ATTEMPTS = int(os.environ.get("INVOICE_MAX_ATTEMPTS", "5"))

    # >1 fans batch synchronization out over a thread pool
    STOCK_SYNC_WORKERS = int(os.environ.get("STOCK_SYNC_WORKERS", "1"))

    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
