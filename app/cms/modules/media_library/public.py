from __future__ import annotations

from flask import Blueprint, current_app, send_file

from app.cms.db import db_session
from app.cms.modules.media_library.service import get_media_by_filename
from app.cms.storage import storage_from_config
from app.cms.utils import json_error

bp = Blueprint("media_public", __name__)


@bp.get("/uploads/<path:filename>")
def uploaded_file(filename: str):
    s = db_session()
    m = get_media_by_filename(s, filename)
    if not m:
        return json_error("File not found", 404)

    storage = storage_from_config(current_app.config)
    if not storage.exists(m.storage_key):
        current_app.logger.warning("Media %s has no blob at %s", m.id, m.storage_key)
        return json_error("File not found", 404)
    return send_file(storage.open(m.storage_key), mimetype=m.mime_type, download_name=m.filename, max_age=3600)
