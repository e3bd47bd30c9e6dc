"""
Tier fields and values

Blueprint: field_bp
Prefix: /api/v1

Endpoints:
    GET/POST  /tiers/<tier_id>/fields               -- List / add field (add: admin)
    DELETE    /tiers/<tier_id>/fields/<field_id>    -- Delete field (admin)
    DELETE    /tiers/<tier_id>/fields?fieldId=<id>  -- Same, query-string form
    POST      /tiers/<tier_id>/import-template      -- {templateId}
    GET/PUT   /tiers/<tier_id>/data                 -- Read values / write leaf values
"""

import logging

from flask import Blueprint, jsonify, request

from tierbook.auth import require_admin, require_auth
from tierbook.blueprints import (
    BadRequest,
    json_body,
    register_error_handlers,
    require_int,
)
from tierbook.services import field_service, value_service

logger = logging.getLogger(__name__)

field_bp = Blueprint("fields", __name__, url_prefix="/api/v1")
register_error_handlers(field_bp)


@field_bp.route("/tiers/<int:tier_id>/fields", methods=["GET"])
@require_auth
def list_fields_route(tier_id):
    return jsonify({"fields": field_service.list_fields(tier_id)}), 200


@field_bp.route("/tiers/<int:tier_id>/fields", methods=["POST"])
@require_admin
def add_field_route(tier_id):
    data = json_body()
    if "field_name" not in data:
        raise BadRequest("field_name is required", field="field_name")
    field = field_service.add_field(
        tier_id,
        data["field_name"],
        field_type=data.get("field_type") or "string",
        field_options=data.get("field_options"),
    )
    return jsonify(field), 201


@field_bp.route("/tiers/<int:tier_id>/fields/<int:field_id>", methods=["DELETE"])
@require_admin
def delete_field_route(tier_id, field_id):
    field_service.delete_field(tier_id, field_id)
    return jsonify({"success": True}), 200


@field_bp.route("/tiers/<int:tier_id>/fields", methods=["DELETE"])
@require_admin
def delete_field_by_query_route(tier_id):
    field_id = request.args.get("fieldId", type=int)
    if field_id is None:
        raise BadRequest("fieldId query parameter is required", field="fieldId")
    field_service.delete_field(tier_id, field_id)
    return jsonify({"success": True}), 200


@field_bp.route("/tiers/<int:tier_id>/import-template", methods=["POST"])
@require_auth
def import_template_route(tier_id):
    data = json_body()
    template_id = require_int(data, "templateId")
    return jsonify(field_service.import_template(tier_id, template_id)), 200


@field_bp.route("/tiers/<int:tier_id>/data", methods=["GET"])
@require_auth
def read_values_route(tier_id):
    return jsonify({"data": value_service.read_values(tier_id)}), 200


@field_bp.route("/tiers/<int:tier_id>/data", methods=["PUT"])
@require_auth
def write_values_route(tier_id):
    """Write ``{field_id, value|text_value}`` or ``{values: [...]}`` to a leaf tier."""
    data = json_body()
    if "values" in data:
        entries = data["values"]
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise BadRequest("values must be a list of objects", field="values")
    else:
        require_int(data, "field_id")
        entries = [data]
    written = value_service.write_values(tier_id, entries)
    return jsonify({"success": True, "data": written}), 200
