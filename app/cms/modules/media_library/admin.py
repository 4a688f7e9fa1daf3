from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request

from app.cms.db import db_session
from app.cms.modules.media_library.models import Media
from app.cms.modules.media_library.service import (
    MediaTooLargeError,
    delete_media,
    discard_blob,
    list_media,
    serialize_media,
    update_media_alt,
    upload_media,
)
from app.cms.rbac import current_user, require_permission
from app.cms.utils import ValidationError, request_payload

bp = Blueprint("media_admin", __name__)


def _get_media_or_404(s, media_id: int) -> Media:
    m = s.get(Media, media_id)
    if not m:
        abort(404)
    return m


@bp.get("/media")
@require_permission("media.view")
def media_list():
    s = db_session()
    q = (request.args.get("q") or "").strip() or None
    return jsonify([serialize_media(m) for m in list_media(s, q=q)])


@bp.post("/media/upload")
@require_permission("media.upload")
def media_upload():
    f = request.files.get("file")
    if not f or not f.filename:
        raise ValidationError("No file uploaded.")

    s = db_session()
    try:
        m = upload_media(
            s,
            data=f.read(),
            filename=f.filename,
            mime_type=f.mimetype,
            alt=request.form.get("alt"),
            user=current_user(),
            app_config=current_app.config,
        )
    except MediaTooLargeError as e:
        current_app.logger.info("Rejected upload %r: %s", f.filename, e)
        abort(413)
    key = m.storage_key
    try:
        s.commit()
    except Exception:
        s.rollback()
        discard_blob(current_app.config, key)
        raise
    return jsonify(serialize_media(m)), 201


@bp.patch("/media/<int:media_id>")
@bp.put("/media/<int:media_id>")
@require_permission("media.upload")
def media_update(media_id: int):
    s = db_session()
    m = _get_media_or_404(s, media_id)
    update_media_alt(s, m, request_payload().get("alt"), current_user())
    s.commit()
    return jsonify(serialize_media(m))


@bp.delete("/media/<int:media_id>")
@require_permission("media.upload")
def media_delete(media_id: int):
    s = db_session()
    m = _get_media_or_404(s, media_id)
    key = delete_media(s, m, current_user())
    s.commit()
    discard_blob(current_app.config, key)
    return "", 204
