from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_
from werkzeug.utils import secure_filename

from app.cms.audit import record_event
from app.cms.storage import Storage, storage_from_config
from app.cms.utils import ValidationError, iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cms.models import User
    from app.cms.modules.media_library.models import Media


logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"jpeg", "jpg", "png", "gif", "webp", "svg", "pdf", "doc", "docx"})
ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


class MediaTooLargeError(ValueError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"File is {format_file_size(size)}; the limit is {format_file_size(limit)}.")


def format_file_size(num_bytes: int) -> str:
    """1536 -> '1.5 KB'. Two decimals at most, trailing zeros dropped."""
    if num_bytes <= 0:
        return "0 Bytes"
    i = 0
    while num_bytes >= 1024 ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = round(num_bytes / (1024**i), 2)
    return f"{value:g} {_SIZE_UNITS[i]}"


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[1].lower() if "." in filename else ""


def validate_upload(filename: str, mime_type: str | None, size: int) -> list[str]:
    """Validate an upload before anything is written. Size is checked separately (413)."""
    errors = []
    if not filename:
        errors.append("No file uploaded.")
        return errors
    if _extension(filename) not in ALLOWED_EXTENSIONS:
        errors.append(f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")
    if (mime_type or "").split(";")[0].strip().lower() not in ALLOWED_MIME_TYPES:
        errors.append(f"MIME type not allowed: {mime_type or 'unknown'}")
    if size == 0:
        errors.append("File is empty.")
    return errors


def stored_filename(original_name: str, *, now_ms: int | None = None, token: str | None = None) -> str:
    """`<epoch-ms>-[<token>-]<sanitized name>`; keeps the extension even when the stem sanitizes away."""
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    safe = secure_filename(original_name or "")
    if not safe or "." not in safe:
        ext = _extension(original_name or "")
        safe = f"upload.{ext}" if ext else "upload"
    return f"{ts}-{token}-{safe}" if token else f"{ts}-{safe}"


def _free_filename(s: "Session", storage: Storage, original_name: str) -> str:
    """A stored filename with neither a Media row nor a blob behind it yet."""
    from app.cms.modules.media_library.models import Media

    name = stored_filename(original_name)
    while storage.exists(f"media/{name}") or s.query(Media.id).filter(Media.filename == name).first():
        name = stored_filename(original_name, token=secrets.token_hex(4))
    return name


def discard_blob(app_config: dict, key: str) -> None:
    """Best-effort removal of a blob whose row was never committed or has just been deleted."""
    try:
        storage_from_config(app_config).delete(key)
    except Exception:
        logger.exception("Could not remove media blob %s", key)


def upload_media(
    s: "Session",
    *,
    data: bytes,
    filename: str,
    mime_type: str | None,
    alt: str | None,
    user: "User",
    app_config: dict,
) -> "Media":
    from app.cms.modules.media_library.models import Media

    max_bytes = int(app_config.get("MEDIA_MAX_BYTES") or 10 * 1024 * 1024)
    errors = validate_upload(filename, mime_type, len(data))
    if errors:
        raise ValidationError(errors)
    if len(data) > max_bytes:
        raise MediaTooLargeError(len(data), max_bytes)

    storage = storage_from_config(app_config)
    name = _free_filename(s, storage, filename)
    key = f"media/{name}"
    mime = (mime_type or "").split(";")[0].strip().lower()
    storage.put_bytes(key, data, content_type=mime)

    m = Media(
        filename=name,
        original_name=filename,
        mime_type=mime,
        size=len(data),
        url=f"/uploads/{name}",
        alt=(alt or "").strip() or None,
        storage_key=key,
        uploaded_by=user.id,
        created_at=datetime.utcnow(),
    )
    try:
        s.add(m)
        s.flush()
    except Exception:
        discard_blob(app_config, key)
        raise

    record_event(
        s,
        actor=user,
        action="media.upload",
        entity_type="Media",
        entity_id=str(m.id),
        metadata={"filename": m.filename, "mime_type": m.mime_type, "size": m.size, "storage_key": key},
    )
    return m


def update_media_alt(s: "Session", m: "Media", alt: str | None, user: "User") -> "Media":
    new_alt = (alt or "").strip() or None
    if new_alt != m.alt:
        record_event(
            s,
            actor=user,
            action="media.edit",
            entity_type="Media",
            entity_id=str(m.id),
            metadata={"changes": {"alt": {"old": m.alt, "new": new_alt}}},
        )
        m.alt = new_alt
    return m


def delete_media(s: "Session", m: "Media", user: "User") -> str:
    """Stage the row deletion and return the blob key; the caller discards the blob after commit."""
    key = m.storage_key
    record_event(
        s,
        actor=user,
        action="media.delete",
        entity_type="Media",
        entity_id=str(m.id),
        metadata={"filename": m.filename, "storage_key": m.storage_key},
    )
    s.delete(m)
    return key


def list_media(s: "Session", *, q: str | None = None) -> list["Media"]:
    from app.cms.modules.media_library.models import Media

    query = s.query(Media)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Media.original_name.ilike(like), Media.alt.ilike(like)))
    return query.order_by(Media.created_at.desc(), Media.id.desc()).all()


def get_media_by_filename(s: "Session", filename: str) -> "Media | None":
    from app.cms.modules.media_library.models import Media

    return s.query(Media).filter(Media.filename == filename).one_or_none()


def serialize_media(m: "Media") -> dict:
    return {
        "id": m.id,
        "filename": m.filename,
        "original_name": m.original_name,
        "mime_type": m.mime_type,
        "size": m.size,
        "size_label": format_file_size(m.size),
        "url": m.url,
        "alt": m.alt,
        "uploaded_by": m.uploaded_by,
        "created_at": iso(m.created_at),
    }
