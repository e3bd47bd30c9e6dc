"""
Field templates

Blueprint: template_bp
Prefix: /api/v1

Endpoints:
    GET/POST        /field-templates                            -- List / create
    GET/PUT/DELETE  /field-templates/<template_id>              -- Single template (PUT/DELETE: admin)
    GET/POST        /field-templates/<template_id>/fields       -- List / add template field
    DELETE          /field-templates/<template_id>/fields/<id>  -- Remove template field
"""

import logging

from flask import Blueprint, g, jsonify

from tierbook.auth import require_admin, require_auth
from tierbook.blueprints import BadRequest, json_body, register_error_handlers
from tierbook.services import template_service

logger = logging.getLogger(__name__)

template_bp = Blueprint("templates", __name__, url_prefix="/api/v1")
register_error_handlers(template_bp)


@template_bp.route("/field-templates", methods=["GET"])
@require_auth
def list_templates_route():
    return jsonify({"templates": template_service.list_templates()}), 200


@template_bp.route("/field-templates", methods=["POST"])
@require_auth
def create_template_route():
    data = json_body()
    if "name" not in data:
        raise BadRequest("name is required", field="name")
    fields = data.get("fields") or []
    if not isinstance(fields, list) or not all(isinstance(f, dict) for f in fields):
        raise BadRequest("fields must be a list of objects", field="fields")
    template = template_service.create_template(
        data["name"],
        g.current_user,
        description=data.get("description") or "",
        fields=fields,
    )
    return jsonify(template), 201


@template_bp.route("/field-templates/<int:template_id>", methods=["GET"])
@require_auth
def get_template_route(template_id):
    return jsonify(template_service.get_template(template_id)), 200


@template_bp.route("/field-templates/<int:template_id>", methods=["PUT"])
@require_admin
def update_template_route(template_id):
    data = json_body()
    changes = {k: data[k] for k in ("name", "description") if k in data}
    if not changes:
        raise BadRequest("Nothing to update: send name and/or description")
    return jsonify(template_service.update_template(template_id, **changes)), 200


@template_bp.route("/field-templates/<int:template_id>", methods=["DELETE"])
@require_admin
def delete_template_route(template_id):
    template_service.delete_template(template_id)
    return jsonify({"success": True}), 200


@template_bp.route("/field-templates/<int:template_id>/fields", methods=["GET"])
@require_auth
def list_template_fields_route(template_id):
    return jsonify({"fields": template_service.list_template_fields(template_id)}), 200


@template_bp.route("/field-templates/<int:template_id>/fields", methods=["POST"])
@require_auth
def add_template_field_route(template_id):
    data = json_body()
    if "field_name" not in data:
        raise BadRequest("field_name is required", field="field_name")
    field = template_service.add_template_field(
        template_id,
        data["field_name"],
        field_type=data.get("field_type") or "string",
        field_options=data.get("field_options"),
    )
    return jsonify(field), 201


@template_bp.route("/field-templates/<int:template_id>/fields/<int:field_id>", methods=["DELETE"])
@require_auth
def remove_template_field_route(template_id, field_id):
    template_service.remove_template_field(template_id, field_id)
    return jsonify({"success": True}), 200
