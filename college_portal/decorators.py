from functools import wraps
from flask import current_app
from flask_login import current_user

from .api_utils import api_error


def college_required(func):
    """
    Decorator to ensure the current user is logged in and tied to a college.
    The college is taken from the session user, never from the request.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        if not getattr(current_user, "college_id_fk", None):
            return api_error("No college ID in session", 400)
        return func(*args, **kwargs)
    return wrapper


def role_required(*roles):
    """
    Decorator to ensure the current user has one of the allowed roles.
    Must be placed *after* @college_required.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()

            user_role = (getattr(current_user, "role", "") or "").strip().upper()
            allowed = {r.strip().upper() for r in roles}

            if user_role not in allowed:
                return api_error("Forbidden", 403)

            return func(*args, **kwargs)
        return wrapper
    return decorator
