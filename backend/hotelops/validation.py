from __future__ import annotations

from typing import Any

from .errors import ValidationError


def require_fields(payload: dict, *names: str) -> None:
    missing = [name for name in names if payload.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def as_int(value: Any, label: str, *, required: bool = True) -> int | None:
    """
    Strict integer coercion for JSON bodies and query strings.

    Rejects bools, floats, decimals and scientific notation ("1e3").
    """
    if value is None or value == "":
        if required:
            raise ValidationError(f"{label} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{label} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{label} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{label} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{label} must be an integer")
    raise ValidationError(f"{label} must be an integer")


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def json_body(request) -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
