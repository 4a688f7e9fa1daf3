from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.cms.models import User


def user_permissions(user: User | None) -> set[str]:
    """Union of permission keys over the user's roles; empty for anonymous or disabled users."""
    if not user or not user.is_active:
        return set()
    return {perm.key for role in user.roles for perm in role.permissions}


def user_has_permission(user: User | None, permission_key: str) -> bool:
    return permission_key in user_permissions(user)


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    401 for anonymous callers (the admin app then shows its login screen),
    403 for signed-in users without `permission_key`.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                abort(401)
            if not user_has_permission(user, permission_key):
                # Picked up by the 403 handler for the response and the log line.
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u
