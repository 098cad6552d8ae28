# backend/assetdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/assetdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///assetdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Single administrator account guarding the dashboard API
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@assetdesk.local")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "change-me")

    # Invoice numbers look like INV-2026-0001
    INVOICE_NUMBER_PREFIX = os.environ.get("INVOICE_NUMBER_PREFIX", "INV")
    INVOICE_NUMBER_PAD = int(os.environ.get("INVOICE_NUMBER_PAD", "4"))

    # Used by the printable invoice to build the public verification link
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000")

    PDF_RENDER_TIMEOUT_SECONDS = float(os.environ.get("PDF_RENDER_TIMEOUT_SECONDS", "60"))

    MOVEMENTS_LIST_LIMIT = 500
    VERIFICATION_LOGS_LIMIT = 100

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")  # optional rotating log file


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ADMIN_EMAIL = "admin@test.local"
    ADMIN_PASSWORD = "Password123!"
    PUBLIC_BASE_URL = "http://testserver"
    PDF_RENDER_TIMEOUT_SECONDS = 5
    LOG_FILE = None
