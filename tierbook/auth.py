"""
Tierbook
Authentication & Authorization Middleware.

Provides:
    - Actor resolution from the X-User-Id header (looked up in ``users``)
    - ``require_auth`` / ``require_admin`` view decorators

Security model:
    - Every /api/v1/* endpoint except /api/v1/health requires an actor
    - Structural admin operations (reorder, field definitions, project
      delete/duplicate, import) additionally require ``is_admin``
    - Session cookies and password login live in front of this service;
      it only trusts the resolved user id

Configuration (env vars / app config):
    API_AUTH_ENABLED  -- "false" attaches an admin dev actor to every request
"""

import functools
import logging

from flask import current_app, g, request

from tierbook.core.exceptions import PermissionDeniedError, UnauthorizedError
from tierbook.models import db
from tierbook.models.project import User

logger = logging.getLogger(__name__)

DEV_ACTOR = {"id": None, "email": "dev@localhost", "is_admin": True}


def _is_auth_enabled() -> bool:
    raw = str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return raw.lower() not in ("false", "0", "no", "off")


def _lookup_actor() -> dict | None:
    """Resolve ``X-User-Id`` to ``{id, email, is_admin}`` or None."""
    raw = request.headers.get("X-User-Id", "").strip()
    if not raw:
        return None
    try:
        user_id = int(raw)
    except ValueError:
        logger.warning("Malformed X-User-Id header: %.16s", raw)
        return None
    user = db.session.get(User, user_id)
    if user is None:
        logger.warning("Unknown user id in X-User-Id: %s", user_id)
        return None
    return user.to_dict()


def current_actor() -> dict | None:
    return getattr(g, "current_user", None)


# ── Decorators ───────────────────────────────────────────────────────────────

def require_auth(f):
    """
    Decorator: require a resolved actor.

    Raises UnauthorizedError (→ 401) so the blueprint's error handlers
    produce the standard error body.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_actor() is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)

    return decorated


def require_admin(f):
    """
    Decorator: require an admin actor.

    Usage:
        @tier_bp.route("/tiers/<int:tier_id>/reorder", methods=["PATCH"])
        @require_admin
        def reorder_tier_route(tier_id): ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        actor = current_actor()
        if actor is None:
            raise UnauthorizedError()
        if not actor["is_admin"]:
            logger.warning(
                "Access denied: user %s tried admin endpoint %s %s",
                actor["id"], request.method, request.path,
            )
            raise PermissionDeniedError("Admin access required")
        return f(*args, **kwargs)

    return decorated


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install actor resolution on the Flask app.

    The hook never rejects a request itself; views opt in with
    ``require_auth`` / ``require_admin``.
    """
    @app.before_request
    def _before_request_auth():
        g.current_user = None
        if not request.path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None
        if not _is_auth_enabled():
            g.current_user = dict(DEV_ACTOR)
            return None
        g.current_user = _lookup_actor()
        return None

    logger.info("Auth middleware installed (enabled=%s)", app.config.get("API_AUTH_ENABLED"))
