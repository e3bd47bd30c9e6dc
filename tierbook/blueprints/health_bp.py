"""
Health check blueprint.

Endpoints:
    GET /api/v1/health       -- simple 200 for load balancers
    GET /api/v1/health/live  -- database round-trip with latency
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from tierbook.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def ready():
    return jsonify({"status": "ok", "app": "tierbook"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check including the database."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        database = {"status": "ok", "latency_ms": round(db_ms, 1)}
        healthy = True
    except SQLAlchemyError as exc:
        logger.error("Health check: database failed: %s", exc)
        database = {"status": "error", "detail": str(exc)}
        healthy = False

    body = {
        "status": "ok" if healthy else "degraded",
        "checks": {
            "database": database,
            "app": {"debug": current_app.debug, "testing": current_app.testing},
        },
    }
    return jsonify(body), 200 if healthy else 503
