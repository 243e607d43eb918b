import os
import logging
import secrets
from datetime import timedelta
from flask import Flask, session, request
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.errors import RateLimitExceeded
from flask_caching import Cache
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

# Global extensions
db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()


def _rate_key():
    try:
        ip = (request.headers.get("X-Forwarded-For") or request.remote_addr or "local")
        token = (session.get("rlid") or "")
        path = (getattr(request, "path", "/") or "/")
        return f"{ip}|{token}|{path}"
    except Exception:
        return "local"


limiter = Limiter(key_func=_rate_key)
cache = Cache()


def create_app(test_config=None):
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")

    # Session Timeout: 30 minutes
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(minutes=30)

    REDIS_URL = os.environ.get("REDIS_URL")
    if REDIS_URL:
        app.config["CACHE_TYPE"] = "RedisCache"
        app.config["CACHE_REDIS_URL"] = REDIS_URL
        app.config["RATELIMIT_STORAGE_URI"] = REDIS_URL
    else:
        app.config["CACHE_TYPE"] = "SimpleCache"

    # Workbook upload cap (internal marks import)
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", str(8 * 1024 * 1024)))

    # Grade card tunables
    app.config["GRADECARD_EXTERNAL_SCALE"] = int(os.environ.get("GRADECARD_EXTERNAL_SCALE", "70"))
    app.config["GRADECARD_INTERNAL_MAX"] = int(os.environ.get("GRADECARD_INTERNAL_MAX", "30"))
    app.config["GRADECARD_SEMESTER_EXAM_KEYWORD"] = os.environ.get("GRADECARD_SEMESTER_EXAM_KEYWORD", "semester")

    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Database configuration: use DATABASE_URL if provided, else sqlite file
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        db_path = os.path.join(os.path.dirname(__file__), "..", "portal.db")
        database_url = f"sqlite:///{os.path.abspath(db_path)}"

    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cache.init_app(app)

    # Auth: Flask-Login
    login_manager.init_app(app)

    # Import models so they are registered with SQLAlchemy
    from . import models  # noqa: F401

    @app.before_request
    def ensure_rate_key():
        if not session.get("rlid"):
            session["rlid"] = secrets.token_urlsafe(16)

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            return db.session.get(models.User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        from .api_utils import api_error
        return api_error("Unauthorized", 401)

    # Blueprints
    from .main.routes import main_bp
    app.register_blueprint(main_bp)

    from .grading import grading_bp
    app.register_blueprint(grading_bp)

    from .exams import exams_bp
    app.register_blueprint(exams_bp)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_large_upload(e):
        from .api_utils import api_error
        limit_bytes = app.config.get("MAX_CONTENT_LENGTH") or (8 * 1024 * 1024)
        limit_mb = max(1, int(limit_bytes / (1024 * 1024)))
        return api_error(f"Upload exceeds the size limit (max {limit_mb} MB).", 413)

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(e):
        from .api_utils import api_error
        return api_error("Too many requests", 429)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        from .api_utils import api_error
        return api_error(e.description or e.name, e.code)

    # Create tables on first run (dev convenience)
    with app.app_context():
        db.create_all()

    return app
