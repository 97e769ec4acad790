"""Request payload validation shared by the routes."""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from services.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^[0-9]{9,15}$")
_CODE_RE = re.compile(r"^[0-9]{6}$")


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match((value or "").strip()))


def is_valid_phone(value: str) -> bool:
    return bool(_PHONE_RE.match((value or "").strip()))


def get_json_body(request) -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("No data provided")
    return data


def require_fields(data: dict, fields: Iterable[str]) -> None:
    missing = [f for f in fields if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def clean_str(data: dict, key: str, max_length: int, *, required: bool = True, label: Optional[str] = None) -> Optional[str]:
    raw = data.get(key)
    if raw is None or str(raw).strip() == "":
        if required:
            raise ValidationError(f"{label or key} is required")
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{label or key} must be a string")
    value = raw.strip()
    if len(value) > max_length:
        raise ValidationError(f"{label or key} must be at most {max_length} characters")
    return value


def clean_email(data: dict, key: str = "email") -> str:
    value = clean_str(data, key, 255, label="Email")
    if not is_valid_email(value):
        raise ValidationError("Invalid email format")
    return value.lower()


def clean_phone(data: dict, key: str = "phone") -> str:
    value = clean_str(data, key, 15, label="Phone")
    if not is_valid_phone(value):
        raise ValidationError("Phone must be 9-15 digits")
    return value


def clean_code(data: dict, key: str = "code") -> str:
    value = str(data.get(key) or "").strip()
    if not _CODE_RE.match(value):
        raise ValidationError("Code must be 6 digits")
    return value


def clean_int(value: Any, label: str, *, minimum: Optional[int] = None, allow_none: bool = False) -> Optional[int]:
    if value is None and allow_none:
        return None
    # JSON booleans are ints in Python; reject them explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{label} must be at least {minimum}")
    return value


def query_int(args, key: str, default: int, *, minimum: int = 0, maximum: Optional[int] = None) -> int:
    raw = args.get(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value
