from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from bizconsole.services.scope import current_scope
from bizconsole.services.permissions import scope_has_capability


def require_capability(module: str, capability: str):
    """Owner, or an employee whose roles grant ``capability`` on ``module``."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not scope_has_capability(current_scope(), module, capability):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_owner(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if not current_scope().is_owner:
            abort(403, description='Business owner required')
        return fn(*args, **kwargs)
    return wrapper
