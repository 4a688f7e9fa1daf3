"""
Seed permissions, roles and the admin user (idempotent).

Usage:
  python scripts/init_db.py

ADMIN_EMAIL / ADMIN_PASSWORD choose the admin account. An existing admin's
password is never overwritten.
"""

import os
import sys
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cms.constants import EDITOR_PERMISSIONS, PERMISSIONS  # noqa: E402
from app.cms.models import Permission, Role, User  # noqa: E402
from scripts._db_utils import database_url, script_session  # noqa: E402


def seed_permissions(s: Session, *, admin_email: str, admin_password: str) -> User:
    def ensure_perm(key: str, name: str) -> Permission:
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        return p

    def ensure_role(key: str, name: str) -> Role:
        r = s.query(Role).filter(Role.key == key).one_or_none()
        if not r:
            r = Role(key=key, name=name)
            s.add(r)
        return r

    perms = {key: ensure_perm(key, name) for key, name in PERMISSIONS.items()}

    role_admin = ensure_role("admin", "Administrator")
    for p in perms.values():
        if p not in role_admin.permissions:
            role_admin.permissions.append(p)

    role_editor = ensure_role("editor", "Content editor")
    for key in sorted(EDITOR_PERMISSIONS):
        if perms[key] not in role_editor.permissions:
            role_editor.permissions.append(perms[key])

    user = s.query(User).filter(User.email == admin_email).one_or_none()
    if not user:
        user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
        s.add(user)
    if role_admin not in user.roles:
        user.roles.append(role_admin)
    return user


def seed_only(*, database_url_override: str | None = None) -> None:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    with script_session(database_url(database_url_override)) as s:
        seed_permissions(s, admin_email=admin_email, admin_password=admin_password)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only()


if __name__ == "__main__":
    main()
