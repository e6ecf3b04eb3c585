# backend/hotelops/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///hotelops.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Transfer protocol: bounded retry around preflight + commit
    TRANSFER_MAX_ATTEMPTS = _env_int("TRANSFER_MAX_ATTEMPTS", 3)
    TRANSFER_BACKOFF_BASE_SECONDS = _env_float("TRANSFER_BACKOFF_BASE_SECONDS", 0.25)
    TRANSFER_TX_TIMEOUT_SECONDS = _env_float("TRANSFER_TX_TIMEOUT_SECONDS", 15.0)

    # Single-line fulfillment never retries; a timeout is a hard failure
    FULFILLMENT_TX_TIMEOUT_SECONDS = _env_float("FULFILLMENT_TX_TIMEOUT_SECONDS", 10.0)
    ORDER_TX_TIMEOUT_SECONDS = _env_float("ORDER_TX_TIMEOUT_SECONDS", 10.0)

    # Product types whose lines decrement stock when fulfilled
    INVENTORY_BACKED_PRODUCT_TYPES = ("inventoryItem", "drink", "food")

    LOW_STOCK_THRESHOLD = _env_int("LOW_STOCK_THRESHOLD", 5)

    # Capability -> roles allowed to exercise it. Role enumeration lives with
    # the auth layer; these defaults only drive the header-based authorizer.
    CAPABILITY_ROLES = {
        "view_operations": {"admin", "manager", "staff"},
        "mutate_orders": {"admin", "manager", "staff"},
        "mutate_fulfillment": {"admin", "manager", "staff"},
        "mutate_inventory": {"admin", "manager"},
        "mutate_transfers": {"admin", "manager"},
        "approve_transfers": {"admin", "manager"},
    }

    # Callable (request, capability) -> bool. None selects the header-based default.
    AUTHORIZER = None
