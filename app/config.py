"""Configuration defaults for the SalonHub booking backend."""
from __future__ import annotations

import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///salonhub.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Step between candidate slot start times, independent of service duration.
    SLOT_GRID_MINUTES = int(os.environ.get("SLOT_GRID_MINUTES", 30))
    MIN_SERVICE_DURATION_MINUTES = int(os.environ.get("MIN_SERVICE_DURATION_MINUTES", 15))
    # Salons without their own timezone fall back to this one.
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")
    AVAILABILITY_TIMEOUT_SECONDS = float(os.environ.get("AVAILABILITY_TIMEOUT_SECONDS", 5.0))

    AUTH_TOKEN_MAX_AGE = int(os.environ.get("AUTH_TOKEN_MAX_AGE", 86400))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
