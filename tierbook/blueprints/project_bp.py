"""
Projects

Blueprint: project_bp
Prefix: /api/v1

Endpoints:
    GET/POST    /projects                        -- List/create projects
    GET/DELETE  /projects/<project_id>           -- Single project (delete: admin)
    POST        /projects/<project_id>/duplicate -- Deep copy (admin)
    GET         /projects/<project_id>/tree      -- Nested tree with display values
"""

import logging

from flask import Blueprint, g, jsonify

from tierbook.auth import require_admin, require_auth
from tierbook.blueprints import BadRequest, json_body, register_error_handlers
from tierbook.services import aggregation, project_service

logger = logging.getLogger(__name__)

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


@project_bp.route("/projects", methods=["GET"])
@require_auth
def list_projects_route():
    projects = project_service.list_projects()
    return jsonify({"projects": projects, "total": len(projects)}), 200


@project_bp.route("/projects", methods=["POST"])
@require_auth
def create_project_route():
    data = json_body()
    if "name" not in data:
        raise BadRequest("name is required", field="name")
    project = project_service.create_project(data["name"], g.current_user)
    return jsonify(project), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_auth
def get_project_route(project_id):
    return jsonify(project_service.get_project(project_id)), 200


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@require_admin
def delete_project_route(project_id):
    project_service.delete_project(project_id)
    return jsonify({"success": True}), 200


@project_bp.route("/projects/<int:project_id>/duplicate", methods=["POST"])
@require_admin
def duplicate_project_route(project_id):
    data = json_body()
    project = project_service.duplicate_project(project_id, g.current_user, name=data.get("name"))
    return jsonify(project), 201


@project_bp.route("/projects/<int:project_id>/tree", methods=["GET"])
@require_auth
def project_tree_route(project_id):
    """Nested tiers with stored values on leaves and aggregated totals on parents."""
    return jsonify({"tree": aggregation.project_tree(project_id)}), 200
