from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.cms.audit import record_event
from app.cms.utils import ValidationError, iso, is_valid_email, parse_iso_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cms.models import User
    from app.cms.modules.consultations.models import Consultation


VALID_STATUSES = ("pending", "confirmed", "completed", "cancelled")


def validate_booking(payload: dict) -> list[str]:
    """Validate a public booking request. Returns list of errors."""
    errors = []
    name = str(payload.get("name") or "").strip()
    if len(name) < 2:
        errors.append("Name must be at least 2 characters.")
    if not is_valid_email(str(payload.get("email") or "")):
        errors.append("A valid email is required.")
    if not str(payload.get("service") or "").strip():
        errors.append("Service is required.")
    raw_when = payload.get("scheduled_at")
    if raw_when not in (None, ""):
        try:
            parse_iso_datetime(raw_when)
        except (TypeError, ValueError):
            errors.append("scheduled_at must be an ISO-8601 date or datetime.")
    return errors


def create_consultation(s: "Session", payload: dict) -> "Consultation":
    from app.cms.modules.consultations.models import Consultation

    errors = validate_booking(payload)
    if errors:
        raise ValidationError(errors)

    now = datetime.utcnow()
    c = Consultation(
        name=str(payload.get("name")).strip(),
        email=str(payload.get("email")).strip().lower(),
        company=(str(payload.get("company") or "").strip() or None),
        service=str(payload.get("service")).strip(),
        message=(str(payload.get("message") or "").strip() or None),
        status="pending",
        scheduled_at=parse_iso_datetime(payload.get("scheduled_at")),
        created_at=now,
        updated_at=now,
    )
    s.add(c)
    s.flush()
    return c


def update_status(s: "Session", c: "Consultation", status: str, user: "User", *, reason: str | None = None) -> "Consultation":
    status = (status or "").strip().lower()
    if status not in VALID_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
    if status == c.status:
        return c

    old = c.status
    c.status = status
    c.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="consultation.status",
        entity_type="Consultation",
        entity_id=str(c.id),
        reason=reason,
        metadata={"old": old, "new": status},
    )
    return c


def list_consultations(s: "Session", *, status: str | None = None) -> list["Consultation"]:
    from app.cms.modules.consultations.models import Consultation

    q = s.query(Consultation)
    if status:
        if status not in VALID_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
        q = q.filter(Consultation.status == status)
    return q.order_by(Consultation.created_at.desc(), Consultation.id.desc()).all()


def serialize_consultation(c: "Consultation") -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "company": c.company,
        "service": c.service,
        "message": c.message,
        "status": c.status,
        "scheduled_at": iso(c.scheduled_at),
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }
