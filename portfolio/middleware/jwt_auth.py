"""
JWT Auth Middleware: parses the Bearer token and sets g.jwt_*.

An absent or invalid token leaves g.jwt_user_id = None; each blueprint
decides whether the endpoint needs an authenticated caller.
"""

import logging
from functools import wraps

import jwt as pyjwt
from flask import g, request

from portfolio.services.jwt_service import decode_access_token
from portfolio.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_roles = []

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s %s", request.method, path)
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Invalid access token on %s %s: %s", request.method, path, exc)
            return

        try:
            g.jwt_user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            logger.info("Access token with non-numeric subject on %s", path)
            return
        g.jwt_roles = payload.get("roles", [])


def current_user():
    """Active User for the request's JWT subject, or None."""
    from portfolio.models import db
    from portfolio.models.auth import User

    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def login_required(fn):
    """Reject the request with 401 unless a valid token names an active user.

    The loaded user is available as ``g.current_user``.
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = current_user()
        if user is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        g.current_user = user
        return fn(*args, **kwargs)

    return wrapper
