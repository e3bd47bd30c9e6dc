"""
Spreadsheet export / import

Blueprint: transfer_bp
Prefix: /api/v1

Endpoints:
    GET   /tiers/<tier_id>/export?format=xlsx|csv  -- Subtree download
    POST  /projects/<project_id>/import            -- Streamed .xlsx import (admin)

The import responds with ``text/event-stream``: one ``data: {json}`` event
per record ({current, total, created, updated, skipped, message[, error]})
followed by ``{complete: true, created, updated, skipped, errors}``.
"""

import json
import logging

from flask import Blueprint, Response, current_app, request, stream_with_context

from tierbook.auth import require_admin, require_auth
from tierbook.blueprints import BadRequest, register_error_handlers
from tierbook.services import export_service, import_service

logger = logging.getLogger(__name__)

transfer_bp = Blueprint("transfer", __name__, url_prefix="/api/v1")
register_error_handlers(transfer_bp)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@transfer_bp.route("/tiers/<int:tier_id>/export", methods=["GET"])
@require_auth
def export_tier_route(tier_id):
    """Download a tier subtree.

    Query params:
        format -- "xlsx" (default): one sheet per tier with live parent formulas
                 "csv": one row per tier with computed values
    """
    fmt = request.args.get("format", "xlsx").lower()
    if fmt == "xlsx":
        content = export_service.generate_tier_workbook(tier_id)
        filename = export_service.export_filename(tier_id, "xlsx")
        return Response(
            content,
            mimetype=XLSX_MIMETYPE,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    if fmt == "csv":
        content = export_service.generate_tier_csv(tier_id)
        filename = export_service.export_filename(tier_id, "csv")
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    raise BadRequest("format must be xlsx or csv", field="format")


def _extract_upload() -> bytes | None:
    """Workbook bytes from a multipart ``file`` field or the raw body."""
    if request.files:
        upload = request.files.get("file")
        if upload:
            return upload.read()
    if request.data:
        return request.data
    return None


@transfer_bp.route("/projects/<int:project_id>/import", methods=["POST"])
@require_admin
def import_project_route(project_id):
    raw_parent = request.args.get("parent_id") or request.form.get("parent_id")
    parent_id = None
    if raw_parent not in (None, "", "null"):
        try:
            parent_id = int(raw_parent)
        except ValueError:
            raise BadRequest("parent_id must be an integer", field="parent_id") from None

    content = _extract_upload()
    if not content:
        raise BadRequest(".xlsx file is required (multipart 'file' or raw body)", field="file")

    import_service.validate_target(project_id, parent_id)
    records = import_service.parse_workbook(content)
    pacing = float(current_app.config.get("IMPORT_PACING_SECONDS", 0) or 0)
    logger.info("Import started project=%s parent=%s records=%d", project_id, parent_id, len(records))

    def _events():
        for event in import_service.run_import(project_id, records, parent_id=parent_id, pacing=pacing):
            yield f"data: {json.dumps(event)}\n\n"

    response = Response(stream_with_context(_events()), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response
