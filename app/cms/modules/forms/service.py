from __future__ import annotations

import json
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func

from app.cms.audit import record_event
from app.cms.utils import ValidationError, iso, is_valid_email, parse_bool, parse_iso_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cms.models import User
    from app.cms.modules.forms.models import Form, FormSubmission


FIELD_TYPES = ("text", "email", "phone", "textarea", "select", "checkbox", "radio", "date")
CHOICE_TYPES = frozenset({"select", "radio"})

DEFAULT_SETTINGS = {
    "submit_text": "Submit",
    "success_message": "Thank you! Your request has been sent.",
    "email_notifications": True,
    "telegram_notifications": True,
    "redirect_url": None,
}

_PHONE_RE = re.compile(r"^\+?[\d\s().-]{6,20}$")


def _as_json(raw: Any, what: str) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"{what} is not valid JSON: {e}") from e
    return raw


def normalize_fields(raw: Any) -> list[dict]:
    """
    Validate a form's field schema and return it in canonical form.

    Each field needs a unique `id`, a `label` and a known `type`; select and
    radio fields need a non-empty list of string options.
    """
    raw = _as_json(raw, "fields")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("fields must be a list.")

    errors: list[str] = []
    seen: set[str] = set()
    out: list[dict] = []
    for idx, f in enumerate(raw):
        if not isinstance(f, dict):
            errors.append(f"Field {idx} must be an object.")
            continue
        fid = str(f.get("id") or "").strip()
        ftype = str(f.get("type") or "").strip()
        label = str(f.get("label") or "").strip()
        if not fid:
            errors.append(f"Field {idx} is missing an id.")
        elif fid in seen:
            errors.append(f"Duplicate field id {fid!r}.")
        seen.add(fid)
        if ftype not in FIELD_TYPES:
            errors.append(f"Field {fid or idx} has invalid type {ftype!r}. Must be one of: {', '.join(FIELD_TYPES)}")
        if not label:
            errors.append(f"Field {fid or idx} is missing a label.")
        options = f.get("options")
        if options is not None and (
            not isinstance(options, list) or not all(isinstance(o, str) for o in options)
        ):
            errors.append(f"Field {fid or idx} options must be a list of strings.")
            options = None
        if ftype in CHOICE_TYPES and not options:
            errors.append(f"Field {fid or idx} ({ftype}) needs at least one option.")
        out.append(
            {
                "id": fid,
                "type": ftype,
                "label": label,
                "placeholder": str(f.get("placeholder") or "") or None,
                "required": parse_bool(f.get("required")),
                "options": list(options) if options else None,
            }
        )
    if errors:
        raise ValidationError(errors)
    return out


def normalize_settings(raw: Any, *, base: dict | None = None) -> dict:
    raw = _as_json(raw, "settings")
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValidationError("settings must be an object.")
    out = dict(DEFAULT_SETTINGS)
    out.update(base or {})
    for key in ("submit_text", "success_message"):
        if key in raw:
            out[key] = str(raw.get(key) or "").strip() or DEFAULT_SETTINGS[key]
    for key in ("email_notifications", "telegram_notifications"):
        if key in raw:
            out[key] = parse_bool(raw.get(key))
    if "redirect_url" in raw:
        url = str(raw.get("redirect_url") or "").strip() or None
        if url and not (url.startswith("/") or url.startswith("http://") or url.startswith("https://")):
            raise ValidationError("redirect_url must be an absolute URL or a site path.")
        out["redirect_url"] = url
    return out


def validate_form_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    name = str(payload.get("name") or "").strip()
    if (not partial or "name" in payload) and not name:
        errors.append("Name is required.")
    return errors


def create_form(s: "Session", payload: dict, user: "User") -> "Form":
    from app.cms.modules.forms.models import Form

    errors = validate_form_payload(payload)
    if errors:
        raise ValidationError(errors)

    now = datetime.utcnow()
    form = Form(
        name=str(payload.get("name")).strip(),
        description=(str(payload.get("description") or "").strip() or None),
        fields=normalize_fields(payload.get("fields")),
        settings=normalize_settings(payload.get("settings")),
        is_active=parse_bool(payload.get("is_active"), default=True),
        created_by=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(form)
    s.flush()

    record_event(
        s,
        actor=user,
        action="form.create",
        entity_type="Form",
        entity_id=str(form.id),
        metadata={"name": form.name, "fields": len(form.fields)},
    )
    return form


def update_form(s: "Session", form: "Form", payload: dict, user: "User") -> "Form":
    errors = validate_form_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors)

    changes: dict[str, Any] = {}
    if "name" in payload:
        new = str(payload.get("name")).strip()
        if new != form.name:
            changes["name"] = {"old": form.name, "new": new}
            form.name = new
    if "description" in payload:
        new = str(payload.get("description") or "").strip() or None
        if new != form.description:
            changes["description"] = {"old": form.description, "new": new}
            form.description = new
    if "fields" in payload:
        new_fields = normalize_fields(payload.get("fields"))
        if new_fields != form.fields:
            changes["fields"] = {"old": len(form.fields or []), "new": len(new_fields)}
            form.fields = new_fields
    if "settings" in payload:
        new_settings = normalize_settings(payload.get("settings"), base=form.settings)
        if new_settings != form.settings:
            changes["settings"] = True
            form.settings = new_settings
    if "is_active" in payload:
        new_active = parse_bool(payload.get("is_active"))
        if new_active != form.is_active:
            changes["is_active"] = new_active
            form.is_active = new_active

    form.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="form.edit",
        entity_type="Form",
        entity_id=str(form.id),
        metadata={"changes": changes},
    )
    return form


def delete_form(s: "Session", form: "Form", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="form.delete",
        entity_type="Form",
        entity_id=str(form.id),
        metadata={"name": form.name, "submissions": len(form.submissions)},
    )
    s.delete(form)


def _is_blank(value: Any) -> bool:
    return value is None or value is False or (isinstance(value, (str, list)) and not value)


def validate_submission(fields: list[dict], data: Any) -> tuple[dict, list[str]]:
    """
    Check visitor data against the form's field schema.

    Returns (cleaned data keyed by field id, errors). Keys that do not
    correspond to a field are dropped.
    """
    if not isinstance(data, dict):
        return {}, ["Submission data must be an object."]

    cleaned: dict[str, Any] = {}
    errors: list[str] = []
    for f in fields:
        fid, ftype, label = f["id"], f["type"], f.get("label") or f["id"]
        value = data.get(fid)
        if isinstance(value, str):
            value = value.strip()

        if ftype == "checkbox" and not f.get("options") and value is not None:
            value = parse_bool(value)

        if _is_blank(value):
            if f.get("required"):
                errors.append(f"{label} is required.")
            continue

        if ftype == "email":
            if not is_valid_email(str(value)):
                errors.append(f"{label} must be a valid email address.")
                continue
        elif ftype == "phone":
            if not _PHONE_RE.match(str(value)):
                errors.append(f"{label} must be a valid phone number.")
                continue
        elif ftype in CHOICE_TYPES:
            if value not in (f.get("options") or []):
                errors.append(f"{label} must be one of: {', '.join(f.get('options') or [])}")
                continue
        elif ftype == "checkbox" and f.get("options"):
            values = value if isinstance(value, list) else [value]
            bad = [v for v in values if v not in f["options"]]
            if bad:
                errors.append(f"{label} has invalid choices: {', '.join(str(b) for b in bad)}")
                continue
            value = values
        elif ftype == "date":
            try:
                value = parse_iso_datetime(str(value)).date().isoformat()
            except ValueError:
                errors.append(f"{label} must be a date (YYYY-MM-DD).")
                continue
        elif ftype in ("text", "textarea"):
            value = str(value)

        cleaned[fid] = value
    return cleaned, errors


def submit_form(
    s: "Session",
    form: "Form",
    data: Any,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> "FormSubmission":
    from app.cms.modules.forms.models import FormSubmission

    cleaned, errors = validate_submission(form.fields or [], data)
    if errors:
        raise ValidationError(errors)

    sub = FormSubmission(
        form_id=form.id,
        data=cleaned,
        user_agent=user_agent or "",
        ip_address=ip_address or "unknown",
        is_read=False,
        created_at=datetime.utcnow(),
    )
    s.add(sub)
    s.flush()
    return sub


def mark_submission_read(s: "Session", sub: "FormSubmission", user: "User", *, read: bool = True) -> "FormSubmission":
    if bool(sub.is_read) != read:
        sub.is_read = read
        record_event(
            s,
            actor=user,
            action="form_submission.read" if read else "form_submission.unread",
            entity_type="FormSubmission",
            entity_id=str(sub.id),
            metadata={"form_id": sub.form_id},
        )
    return sub


def list_forms(s: "Session") -> list[tuple["Form", int, int]]:
    """Forms with (total, unread) submission counts, newest update first."""
    from app.cms.modules.forms.models import Form, FormSubmission

    forms = s.query(Form).order_by(Form.updated_at.desc(), Form.id.desc()).all()
    rows = (
        s.query(
            FormSubmission.form_id,
            func.count(FormSubmission.id),
            func.sum(case((FormSubmission.is_read.is_(False), 1), else_=0)),
        )
        .group_by(FormSubmission.form_id)
        .all()
    )
    counts = {form_id: (int(total or 0), int(unread or 0)) for form_id, total, unread in rows}
    return [(f, *counts.get(f.id, (0, 0))) for f in forms]


def list_submissions(s: "Session", form: "Form", *, unread_only: bool = False) -> list["FormSubmission"]:
    from app.cms.modules.forms.models import FormSubmission

    q = s.query(FormSubmission).filter(FormSubmission.form_id == form.id)
    if unread_only:
        q = q.filter(FormSubmission.is_read.is_(False))
    return q.order_by(FormSubmission.created_at.desc(), FormSubmission.id.desc()).all()


def serialize_form(form: "Form", *, total: int | None = None, unread: int | None = None) -> dict:
    out = {
        "id": form.id,
        "name": form.name,
        "description": form.description,
        "fields": form.fields or [],
        "settings": form.settings or dict(DEFAULT_SETTINGS),
        "is_active": bool(form.is_active),
        "created_by": form.created_by,
        "created_at": iso(form.created_at),
        "updated_at": iso(form.updated_at),
    }
    if total is not None:
        out["submission_count"] = total
        out["unread_count"] = unread or 0
    return out


def public_form(form: "Form") -> dict:
    """What the site needs to render a form; no admin metadata."""
    settings = form.settings or dict(DEFAULT_SETTINGS)
    return {
        "id": form.id,
        "name": form.name,
        "description": form.description,
        "fields": form.fields or [],
        "submit_text": settings.get("submit_text") or DEFAULT_SETTINGS["submit_text"],
    }


def serialize_submission(sub: "FormSubmission") -> dict:
    return {
        "id": sub.id,
        "form_id": sub.form_id,
        "data": sub.data,
        "user_agent": sub.user_agent,
        "ip_address": sub.ip_address,
        "is_read": bool(sub.is_read),
        "created_at": iso(sub.created_at),
    }
