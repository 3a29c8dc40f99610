from functools import wraps

from flask import g

from security.session import bearer_token_from_request, resolve_principal
from services.outcomes import ErrorKind
from utils.responses import error_response


def load_current_user():
    g.user = resolve_principal(bearer_token_from_request())


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return error_response(ErrorKind.UNAUTHORIZED)
        return fn(*args, **kwargs)
    return wrapper
