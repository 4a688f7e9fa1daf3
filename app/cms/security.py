import secrets

from flask import Request, current_app, request, session

from app.cms.utils import json_error

CSRF_HEADER = "X-CSRF-Token"
_SESSION_KEY = "csrf_token"
_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def ensure_csrf_token() -> str:
    token = session.get(_SESSION_KEY)
    if not token:
        token = rotate_csrf_token()
    return token


def rotate_csrf_token() -> str:
    token = secrets.token_urlsafe(32)
    session[_SESSION_KEY] = token
    return token


def submitted_csrf_token(req: Request) -> str | None:
    """Header first; multipart uploads may send it as a form field instead."""
    return req.headers.get(CSRF_HEADER) or req.form.get(_SESSION_KEY) or None


def validate_csrf(req: Request) -> bool:
    token = submitted_csrf_token(req)
    expected = session.get(_SESSION_KEY)
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def admin_csrf_guard():
    """
    before_request hook: mutating /api/admin requests from a signed-in
    session must echo the session's CSRF token.

    Anonymous requests pass through and are rejected with 401 by
    require_permission().
    """
    if request.method not in _MUTATING_METHODS or not request.path.startswith("/api/admin"):
        return None
    if not session.get("user_id"):
        return None
    if validate_csrf(request):
        return None
    current_app.logger.warning("CSRF check failed: %s %s", request.method, request.path)
    return json_error("CSRF token missing or invalid.", 400)
