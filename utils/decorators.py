from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from utils.exceptions import InvalidToken


def get_auth_flow():
    """The AuthenticationFlow created by create_app()."""
    return current_app.extensions["auth_flow"]


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                raise InvalidToken()
            token = auth.split(" ", 1)[1].strip()
            user = get_auth_flow().current_user(token)
            g.current_user = user
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def client_ip() -> str:
    """
    Source address of the current request: the first X-Forwarded-For entry
    if present, else the peer address. Provenance only, never authorization.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or ""
