from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app


def authenticate_request():
    """
    before_request hook: resolve the bearer credential once per request.
    Rejected credentials raise an AuthError, rendered as 401 by api.errors.
    """
    authenticator = current_app.extensions["request_authenticator"]
    g.identity = authenticator.authenticate(
        request.headers.get("Authorization"),
        g.get("identity"),
    )
    if g.identity is not None:
        g.current_user = g.identity.user
        g.current_user_roles = list(g.identity.roles)


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if g.get("identity") is None:
                abort(401, description="Authentication is required to access this resource")
            return fn(*args, **kwargs)

        return wrapper

    return decorator

def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = set(getattr(g, "current_user_roles", []))
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
