"""
Central constants for the CMS application.
"""
from __future__ import annotations

# Permission catalogue: key -> human label. Seeded by scripts/init_db.py.
PERMISSIONS = {
    "pages.view": "Pages: view",
    "pages.edit": "Pages: create/edit/publish",
    "posts.view": "Posts: view",
    "posts.edit": "Posts: create/edit/publish",
    "taxonomy.edit": "Categories & tags: edit",
    "media.view": "Media: view",
    "media.upload": "Media: upload/edit/delete",
    "forms.view": "Forms: view forms and submissions",
    "forms.edit": "Forms: create/edit",
    "consultations.view": "Consultations: view",
    "consultations.edit": "Consultations: update status",
    "analytics.view": "Analytics: view",
    "audit.view": "Audit trail: view",
}

# Editors manage content but not leads or analytics.
EDITOR_PERMISSIONS = frozenset(
    {
        "pages.view",
        "pages.edit",
        "posts.view",
        "posts.edit",
        "taxonomy.edit",
        "media.view",
        "media.upload",
    }
)

# Paths that skip session/CSRF handling.
UNTRACKED_PATH_PREFIXES = ("/static/", "/health", "/healthz")
