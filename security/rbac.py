from functools import wraps

from flask import g

from models.user import ADMIN_ROLE
from services.outcomes import ErrorKind
from utils.responses import error_response


def has_role(principal, role_name: str) -> bool:
    if principal is None:
        return False
    return any(r.name == role_name for r in principal.roles)


def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return error_response(ErrorKind.UNAUTHORIZED)

            if not any(has_role(user, name) for name in role_names):
                return error_response(ErrorKind.FORBIDDEN)

            return fn(*args, **kwargs)
        return wrapper
    return decorator


require_admin = require_roles(ADMIN_ROLE)
