from flask import Blueprint, request, current_app
from flask_login import login_user, logout_user, current_user
from sqlalchemy import select
from werkzeug.security import check_password_hash

from .. import db, limiter
from ..models import User
from ..api_utils import api_success, api_error

main_bp = Blueprint("main", __name__)


@main_bp.route("/", methods=["GET"])
def index():
    return api_success({"status": "ok", "message": "College Portal API"})


# Authentication routes
@main_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return api_error("Username and password are required.", 400)
    user = db.session.execute(select(User).filter_by(username=username)).scalars().first()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
        current_app.logger.info("Failed login for %s", username)
        return api_error("Invalid credentials.", 401)
    if not user.is_active:
        return api_error("Account disabled.", 403)
    login_user(user)
    return api_success({
        "message": "Logged in successfully.",
        "user": {"id": user.user_id, "role": user.role, "collegeId": user.college_id_fk},
    })


@main_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        logout_user()
    return api_success({"message": "Logged out."})
