"""
Access control decorators for the JSON API.
Identity is Flask-Login's session user; authorization is by role.
"""
from functools import wraps
from flask_login import current_user

from dairyops.exceptions import PermissionDenied
from dairyops.extensions import login_manager
from dairyops.models import AppUser


def roles_required(*roles):
    """
    Allow the view only to users holding one of `roles`.
    company_admin passes every check.

    Usage:
        @roles_required(AppUser.ROLE_MANUFACTURER)
        def create_batch():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if not current_user.has_role(*roles):
                raise PermissionDenied('You do not have permission to perform this action')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Only company admins"""
    return roles_required(AppUser.ROLE_ADMIN)(f)
