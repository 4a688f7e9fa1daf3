from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from flask import Blueprint, abort, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash

from app.cms.audit import record_event
from app.cms.constants import UNTRACKED_PATH_PREFIXES
from app.cms.db import db_session
from app.cms.models import User
from app.cms.security import ensure_csrf_token, rotate_csrf_token
from app.cms.utils import json_error, request_payload

bp = Blueprint("auth", __name__)


def _login_attempts() -> dict[str, list[datetime]]:
    # Per-app so separate app instances (tests, workers) do not share counters.
    return current_app.extensions.setdefault("login_attempts", {})


def _check_rate_limit(ip: str) -> bool:
    limit = int(current_app.config.get("LOGIN_RATE_LIMIT") or 5)
    window = int(current_app.config.get("LOGIN_RATE_WINDOW") or 300)
    attempts = _login_attempts()
    cutoff = datetime.utcnow() - timedelta(seconds=window)
    # Forget clients whose attempts have all aged out.
    for key in list(attempts):
        recent = [t for t in attempts[key] if t > cutoff]
        if recent:
            attempts[key] = recent
        else:
            del attempts[key]
    return len(attempts.get(ip, ())) >= limit


def _record_attempt(ip: str) -> None:
    _login_attempts().setdefault(ip, []).append(datetime.utcnow())


def load_current_user() -> None:
    """before_request: tag the request with an id and resolve g.current_user from the session cookie."""
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(UNTRACKED_PATH_PREFIXES):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/login")
def login_post():
    payload = request_payload()
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        current_app.logger.warning("Login rate limit hit (ip=%s)", ip)
        minutes = max(1, int(current_app.config.get("LOGIN_RATE_WINDOW") or 300) // 60)
        return json_error(f"Too many login attempts. Please wait {minutes} minutes.", 429)

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            current_app.logger.info("Failed login (email=%s)", email)
            return json_error("Invalid credentials.", 401)

        session.clear()
        session["user_id"] = user.id
        session.permanent = True
        _login_attempts().pop(ip, None)
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        return jsonify({"success": True, "user": user.to_dict(), "csrf_token": rotate_csrf_token()})
    except Exception:
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.get("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return jsonify({"success": True})


@bp.get("/auth/user")
def current_user_get():
    user = getattr(g, "current_user", None)
    if not user:
        abort(401)
    return jsonify(user.to_dict())


@bp.get("/auth/csrf")
def csrf_token_get():
    return jsonify({"csrf_token": ensure_csrf_token()})
