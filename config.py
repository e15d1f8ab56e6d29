"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
logging and the workflow policy switches. It uses environment variables for sensitive information and defaults for
development. In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'po_workflow.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Header carrying the acting user's id. Stand-in for a real identity provider.
    IDENTITY_HEADER = os.environ.get("IDENTITY_HEADER", "X-User-Id")

    # Line items may only be added to DRAFT estimates. False restores the legacy unguarded insert.
    LINE_ITEM_CREATE_REQUIRES_DRAFT = _env_bool("LINE_ITEM_CREATE_REQUIRES_DRAFT", True)

    # Estimate total when an update omits total_cost and no line items exist:
    #   "zero"     -> total_cost becomes 0.00
    #   "preserve" -> the stored total is kept
    COST_ESTIMATE_EMPTY_TOTAL_POLICY = os.environ.get("COST_ESTIMATE_EMPTY_TOTAL_POLICY", "zero")

    # App name (health endpoint)
    APP_NAME = "Purchase Order Workflow"


class TestConfig(Config):
    """In-memory database for the test suite."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "DEBUG"
    LINE_ITEM_CREATE_REQUIRES_DRAFT = True
    COST_ESTIMATE_EMPTY_TOTAL_POLICY = "zero"
