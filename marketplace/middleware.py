"""Middleware for the authenticated principal and resource ownership."""
from functools import wraps
from flask import session, g, current_app
from marketplace.exceptions import UnauthorizedError


def load_current_user():
    """
    Load the acting user id into g (Flask's per-request global).

    Token verification happens upstream; whatever user id the auth layer put
    in the session is trusted as the principal and never re-derived here.
    """
    g.user_id = None

    user_id = session.get('user_id')
    if user_id is None:
        return
    try:
        g.user_id = int(user_id)
    except (TypeError, ValueError):
        current_app.logger.warning(f"Ignoring malformed user_id in session: {user_id!r}")


def require_login(f):
    """
    Decorator: Require an authenticated principal.

    Raises UnauthorizedError (401) when no user is attached to the request.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None:
            raise UnauthorizedError('You must be logged in', status_code=401)
        return f(*args, **kwargs)
    return decorated_function


def ensure_owner(owner_id):
    """Raise UnauthorizedError (403) unless the principal owns the resource."""
    if owner_id is None or int(owner_id) != g.get('user_id'):
        raise UnauthorizedError()
