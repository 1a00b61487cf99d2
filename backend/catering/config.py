# backend/catering/config.py
from __future__ import annotations
import json
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_json(name: str, default=None):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError(f"{name} must be valid JSON: {e}") from e


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/catering.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///catering.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Order numbering
    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "KA")
    ORDER_NUMBER_MAX_ATTEMPTS = int(os.environ.get("ORDER_NUMBER_MAX_ATTEMPTS", "3"))

    # Transient persistence failures are retried once
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "2"))

    DEFAULT_DELIVERY_CHARGE = os.environ.get("DEFAULT_DELIVERY_CHARGE", "0.00")
    REQUIRE_PAYMENT_FOR_COMPLETION = _env_bool("REQUIRE_PAYMENT_FOR_COMPLETION", True)

    # JSON {order_type: {status: [next_status, ...]}}; unset keeps the built-in table
    ORDER_WORKFLOW_TRANSITIONS = _env_json("ORDER_WORKFLOW_TRANSITIONS")
