# backend/pharmpos/config.py
from __future__ import annotations
import os


class Config:
    # SQLite DB stored in backend/instance/pharmpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Money is rounded half away from zero to this many decimal digits
    POS_ROUNDING_SCALE = int(os.environ.get("POS_ROUNDING_SCALE", "2"))

    # Stock screen thresholds
    POS_EXPIRY_NEAR_DAYS = int(os.environ.get("POS_EXPIRY_NEAR_DAYS", "60"))
    POS_LOW_STOCK_THRESHOLD = int(os.environ.get("POS_LOW_STOCK_THRESHOLD", "5"))

    POS_TOP_ITEMS_LIMIT = int(os.environ.get("POS_TOP_ITEMS_LIMIT", "10"))
