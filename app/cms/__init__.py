import logging
import os
from datetime import timedelta

from flask import Flask, g
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect
from werkzeug.exceptions import HTTPException

from app.cms.config import load_config, load_settings
from app.cms.db import check_db_connectivity, init_db, teardown_db_session
from app.cms.routes import bp as routes_bp
from app.cms.auth import bp as auth_bp, load_current_user
from app.cms.admin import bp as admin_bp
from app.cms.modules.pages.admin import bp as pages_admin_bp
from app.cms.modules.pages.public import bp as pages_public_bp
from app.cms.modules.blog.admin import bp as blog_admin_bp
from app.cms.modules.blog.public import bp as blog_public_bp
from app.cms.modules.media_library.admin import bp as media_admin_bp
from app.cms.modules.media_library.public import bp as media_public_bp
from app.cms.modules.forms.admin import bp as forms_admin_bp
from app.cms.modules.forms.public import bp as forms_public_bp
from app.cms.modules.consultations.admin import bp as consultations_admin_bp
from app.cms.modules.consultations.public import bp as consultations_public_bp
from app.cms.modules.analytics.admin import bp as analytics_admin_bp
from app.cms.modules.analytics.public import bp as analytics_public_bp
from app.cms.modules.unit_economics.calculator import CalculatorInputError
from app.cms.modules.unit_economics.public import bp as unit_economics_bp
from app.cms.security import admin_csrf_guard
from app.cms.utils import SlugConflictError, ValidationError, json_error

PUBLIC_BLUEPRINTS = (
    pages_public_bp,
    blog_public_bp,
    forms_public_bp,
    consultations_public_bp,
    analytics_public_bp,
    unit_economics_bp,
)
ADMIN_BLUEPRINTS = (
    admin_bp,
    pages_admin_bp,
    blog_admin_bp,
    media_admin_bp,
    forms_admin_bp,
    consultations_admin_bp,
    analytics_admin_bp,
)


def create_app() -> Flask:
    load_dotenv()
    settings = load_settings()

    # Production guardrails (fail fast with clear logs)
    problems = settings.production_problems()
    if problems:
        raise RuntimeError(" ".join(problems))

    app = Flask(__name__)
    app.config.from_mapping(load_config(settings))
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=settings.session_days)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(settings.log_level)

    init_db(app)

    if hasattr(os, "register_at_fork"):
        # gunicorn --preload forks after the engine exists; children must not share its pool.
        def _after_fork_child():
            engine = app.extensions.get("sqlalchemy_engine")
            if engine:
                engine.dispose(close=False)
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)

    missing_s3 = settings.storage.missing_s3_vars()
    if missing_s3:
        app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    for bp in PUBLIC_BLUEPRINTS:
        app.register_blueprint(bp, url_prefix="/api")
    # Serves /uploads/<filename> at the site root, where stored media URLs point.
    app.register_blueprint(media_public_bp)
    for bp in ADMIN_BLUEPRINTS:
        app.register_blueprint(bp, url_prefix="/api/admin")

    # Development fallback: serve demo content when there is no database to talk to.
    if settings.env.lower() == "development":
        use_mock = settings.use_mock_data
        if not use_mock and not check_db_connectivity(app):
            app.logger.warning("Database unreachable in development; serving mock content at /api/mock-*")
            use_mock = True
        if use_mock:
            from app.cms.mock_data import bp as mock_bp

            app.register_blueprint(mock_bp, url_prefix="/api")
            app.extensions["mock_data_enabled"] = True

    app.before_request(load_current_user)
    app.before_request(admin_csrf_guard)
    app.teardown_appcontext(teardown_db_session)

    @app.after_request
    def _request_id_header(resp):
        rid = getattr(g, "request_id", None)
        if rid:
            resp.headers["X-Request-ID"] = rid
        return resp

    # Schema drift: log tables the models expect but the database lacks.
    if not app.extensions.get("mock_data_enabled"):
        try:
            from app.cms.models import Base

            insp = sa_inspect(app.extensions["sqlalchemy_engine"])
            missing = sorted(t for t in Base.metadata.tables if not insp.has_table(t))
            if missing:
                app.logger.warning("DB schema out of date; run `alembic upgrade head`. Missing tables: %s", ", ".join(missing))
        except Exception as e:
            app.logger.warning("Schema health check failed: %s", e)

    @app.errorhandler(ValidationError)
    def _err_validation(e: ValidationError):
        return json_error("Invalid data", 400, errors=e.errors)

    @app.errorhandler(CalculatorInputError)
    def _err_calculator(e: CalculatorInputError):
        return json_error("Invalid data", 400, errors=e.errors)

    @app.errorhandler(SlugConflictError)
    def _err_slug_conflict(e: SlugConflictError):
        return json_error(str(e), 409)

    @app.errorhandler(401)
    def _err_401(e):
        return json_error("Authentication required.", 401)

    @app.errorhandler(403)
    def _err_403(e):
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
            return json_error(f"Missing permission: {missing}", 403)
        return json_error("Forbidden.", 403)

    @app.errorhandler(413)
    def _err_413(e):
        limit_mb = int(app.config.get("MEDIA_MAX_BYTES") or 0) // (1024 * 1024)
        return json_error(f"File too large. Maximum size is {limit_mb}MB.", 413)

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        return json_error(e.description or e.name, e.code or 500)

    @app.errorhandler(500)
    def _err_500(e):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return json_error("Internal server error.", 500)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
