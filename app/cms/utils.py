from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from flask import jsonify, request

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """Invalid client input; carries a list of human-readable errors."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class SlugConflictError(ValueError):
    def __init__(self, entity: str, slug: str):
        self.entity = entity
        self.slug = slug
        super().__init__(f"{entity} with slug {slug!r} already exists")


def generate_slug(title: str | None) -> str:
    """Lowercase, runs of non-alphanumerics collapsed to '-', trimmed."""
    return _SLUG_STRIP.sub("-", (title or "").lower()).strip("-")


def normalize_slug(raw: str | None, *, fallback_title: str | None = None) -> str:
    slug = generate_slug(raw) if raw and raw.strip() else generate_slug(fallback_title)
    return slug


def is_valid_email(value: str | None) -> bool:
    return bool(value and _EMAIL_RE.match(value.strip()))


def parse_iso_datetime(value: Any) -> datetime | None:
    """Accepts ISO-8601 date or datetime strings (trailing 'Z' allowed). Returns naive UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        from datetime import timezone

        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_positive_int(value: Any, default: int, *, maximum: int | None = None) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    if n < 1:
        return default
    if maximum is not None and n > maximum:
        return maximum
    return n


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def request_payload() -> dict[str, Any]:
    """JSON body when present, otherwise form fields."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationError("Malformed JSON body.")
        if not isinstance(data, dict):
            raise ValidationError("JSON body must be an object.")
        return data
    return request.form.to_dict()


def json_error(message: str, status: int, *, errors: list[str] | None = None):
    body: dict[str, Any] = {"message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status
