"""
Tier tree

Blueprint: tier_bp
Prefix: /api/v1

Endpoints:
    GET/POST          /projects/<project_id>/tiers  -- Flat list / create tier
    GET/PATCH/DELETE  /tiers/<tier_id>              -- Single tier (PATCH: name, allow_child_creation)
    POST              /tiers/<tier_id>/duplicate    -- Deep copy of the subtree
    PATCH             /tiers/<tier_id>/reorder      -- {newIndex, parentId?, newParentId?} (admin)
    POST              /tiers/<tier_id>/move         -- {direction: up|down|indent|outdent} (admin)
    GET               /tiers/<tier_id>/aggregate    -- Displayed values and totals
"""

import logging

from flask import Blueprint, g, jsonify

from tierbook.auth import require_admin, require_auth
from tierbook.blueprints import (
    BadRequest,
    json_body,
    optional_int,
    register_error_handlers,
    require_int,
)
from tierbook.services import aggregation, tier_service
from tierbook.utils.helpers import parse_bool

logger = logging.getLogger(__name__)

tier_bp = Blueprint("tiers", __name__, url_prefix="/api/v1")
register_error_handlers(tier_bp)


@tier_bp.route("/projects/<int:project_id>/tiers", methods=["GET"])
@require_auth
def list_tiers_route(project_id):
    tiers = tier_service.list_tiers(project_id)
    return jsonify({"tiers": tiers, "total": len(tiers)}), 200


@tier_bp.route("/projects/<int:project_id>/tiers", methods=["POST"])
@require_auth
def create_tier_route(project_id):
    data = json_body()
    if "name" not in data:
        raise BadRequest("name is required", field="name")
    tier = tier_service.create_tier(
        project_id,
        data["name"],
        g.current_user,
        parent_id=optional_int(data, "parent_id"),
        allow_child_creation=parse_bool(data.get("allow_child_creation"), default=True),
    )
    return jsonify(tier), 201


@tier_bp.route("/tiers/<int:tier_id>", methods=["GET"])
@require_auth
def get_tier_route(tier_id):
    return jsonify(tier_service.get_tier(tier_id)), 200


@tier_bp.route("/tiers/<int:tier_id>", methods=["PATCH"])
@require_auth
def update_tier_route(tier_id):
    """Rename and/or toggle allow_child_creation. Open to every authenticated user."""
    data = json_body()
    changes = {}
    if "name" in data:
        changes["name"] = data["name"]
    if "allow_child_creation" in data:
        if not isinstance(data["allow_child_creation"], bool):
            raise BadRequest("allow_child_creation must be a boolean", field="allow_child_creation")
        changes["allow_child_creation"] = data["allow_child_creation"]
    if not changes:
        raise BadRequest("Nothing to update: send name and/or allow_child_creation")
    return jsonify(tier_service.update_tier(tier_id, **changes)), 200


@tier_bp.route("/tiers/<int:tier_id>", methods=["DELETE"])
@require_auth
def delete_tier_route(tier_id):
    return jsonify(tier_service.delete_tier(tier_id)), 200


@tier_bp.route("/tiers/<int:tier_id>/duplicate", methods=["POST"])
@require_auth
def duplicate_tier_route(tier_id):
    return jsonify(tier_service.duplicate_tier(tier_id)), 201


@tier_bp.route("/tiers/<int:tier_id>/reorder", methods=["PATCH"])
@require_admin
def reorder_tier_route(tier_id):
    """Reorder within the current sibling group or reparent.

    ``parentId`` is the caller's view of the current parent; ``newParentId``
    (null = root) moves the tier. Omitting ``newParentId`` keeps the parent.
    """
    data = json_body()
    kwargs = {}
    if "parentId" in data:
        kwargs["current_parent_id"] = optional_int(data, "parentId")
    if "newParentId" in data:
        kwargs["new_parent_id"] = optional_int(data, "newParentId")
    result = tier_service.reorder_tier(tier_id, require_int(data, "newIndex"), **kwargs)
    return jsonify(result), 200


@tier_bp.route("/tiers/<int:tier_id>/move", methods=["POST"])
@require_admin
def move_tier_route(tier_id):
    data = json_body()
    direction = data.get("direction")
    if not isinstance(direction, str) or not direction:
        raise BadRequest("direction is required", field="direction")
    return jsonify(tier_service.move_tier(tier_id, direction)), 200


@tier_bp.route("/tiers/<int:tier_id>/aggregate", methods=["GET"])
@require_auth
def aggregate_tier_route(tier_id):
    return jsonify(aggregation.display_values(tier_id)), 200
