# backend/stockroom/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the instance folder unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///stockroom.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Reorder level given to stock entries created without a product threshold
    STOCKROOM_DEFAULT_REORDER_LEVEL = int(os.environ.get("STOCKROOM_DEFAULT_REORDER_LEVEL", "10"))

    # False: every threshold-crossing mutation inserts a new alert row.
    # True: an existing active alert for the stock entry is refreshed instead.
    STOCKROOM_ALERT_DEDUPLICATE = _env_bool("STOCKROOM_ALERT_DEDUPLICATE", False)

    # "reject" raises OverSettlementError, "clamp" floors the balance at zero
    STOCKROOM_CREDIT_OVERSETTLEMENT = os.environ.get("STOCKROOM_CREDIT_OVERSETTLEMENT", "reject")

    # Credit limits are advisory unless this is switched on
    STOCKROOM_ENFORCE_CREDIT_LIMIT = _env_bool("STOCKROOM_ENFORCE_CREDIT_LIMIT", False)

    # Unit-of-work retry on lock conflicts / stale versions
    STOCKROOM_RETRY_ATTEMPTS = int(os.environ.get("STOCKROOM_RETRY_ATTEMPTS", "5"))
    STOCKROOM_RETRY_BACKOFF = float(os.environ.get("STOCKROOM_RETRY_BACKOFF", "0.05"))

    STOCKROOM_LOG_LEVEL = os.environ.get("STOCKROOM_LOG_LEVEL", "INFO")
