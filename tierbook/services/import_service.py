"""
Spreadsheet import: rebuild a tier subtree from a workbook in export layout.

The import runs in two steps so that a malformed upload is rejected with a
normal error response before any progress is streamed:

    records = parse_workbook(content)                  # may raise ValidationError
    for event in run_import(project_id, records, ...): # one dict per record
        ...

Each record is applied in its own transaction. A record that fails is
rolled back, noted in ``errors`` and the import moves on; the final event
always reports created/updated/skipped counts.
"""

import io
import logging
import time
import zipfile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from tierbook.core.exceptions import (
    ConflictError,
    NotFoundError,
    ParentTierReadOnlyError,
    ValidationError,
)
from tierbook.core.field_types import FieldType
from tierbook.models import db
from tierbook.models.project import Project
from tierbook.models.tier import Tier
from tierbook.services.export_service import (
    LEAF_ROWS,
    NAME_HEADER,
    PARENT_NOTE,
    PARENT_ROWS,
    PATH_HEADER,
    PATH_SEPARATOR,
)
from tierbook.services.field_service import ensure_field
from tierbook.services.helpers.scoped_queries import get_or_raise, get_scoped
from tierbook.services.tier_service import add_tier, child_count
from tierbook.services.value_service import upsert_in_transaction
from tierbook.utils.helpers import atomic

logger = logging.getLogger(__name__)

_UNRESOLVED = object()

_RECORD_ERRORS = (
    ValidationError,
    NotFoundError,
    ParentTierReadOnlyError,
    ConflictError,
    SQLAlchemyError,
)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_sheet(ws) -> dict | None:
    note = ws.cell(row=1, column=1).value
    is_parent = isinstance(note, str) and note.strip() == PARENT_NOTE
    header_row, data_row = PARENT_ROWS if is_parent else LEAF_ROWS

    headers = [cell.value for cell in ws[header_row]]
    if len(headers) < 2 or headers[0] != NAME_HEADER or headers[1] != PATH_HEADER:
        logger.debug("Sheet %r skipped: no tier header row", ws.title)
        return None

    row = [cell.value for cell in ws[data_row]]
    name = str(row[0]).strip() if row and row[0] is not None else ""
    if not name:
        return None
    raw_path = str(row[1]) if len(row) > 1 and row[1] is not None else name
    path = [p.strip() for p in raw_path.split(PATH_SEPARATOR) if p.strip()]
    if not path or path[-1] != name:
        path.append(name)

    values = {}
    if not is_parent:
        for header, cell in zip(headers[2:], row[2:]):
            if header is None or str(header).strip() == "":
                continue
            values[str(header).strip()] = cell
    return {"sheet": ws.title, "name": name, "path": path, "values": values, "is_parent": is_parent}


def parse_workbook(content: bytes) -> list[dict]:
    """Turn an uploaded workbook into tier records ordered parents-first.

    Raises:
        ValidationError: Not a readable .xlsx, or no sheet in tier layout.
    """
    try:
        wb = load_workbook(io.BytesIO(content), data_only=False, read_only=False)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ValidationError("File is not a readable .xlsx workbook", details={"file": str(exc)}) from None

    records = [r for r in (_parse_sheet(ws) for ws in wb.worksheets) if r is not None]
    if not records:
        raise ValidationError(
            "Workbook contains no tier sheets",
            details={"file": f"expected '{NAME_HEADER}' and '{PATH_HEADER}' headers"},
        )
    records.sort(key=lambda r: len(r["path"]))
    return records


def validate_target(project_id: int, parent_id: int | None) -> None:
    get_or_raise(Project, project_id)
    if parent_id is not None:
        get_scoped(Tier, parent_id, project_id=project_id)


def _find_child(project_id: int, parent_id: int | None, name: str) -> Tier | None:
    stmt = select(Tier).where(Tier.project_id == project_id, Tier.name == name)
    if parent_id is None:
        stmt = stmt.where(Tier.parent_id.is_(None))
    else:
        stmt = stmt.where(Tier.parent_id == parent_id)
    return db.session.execute(stmt.order_by(Tier.display_order, Tier.id)).scalars().first()


def _apply_record(project_id: int, parent_id: int | None, record: dict) -> tuple[int, bool]:
    """Create or update one tier and its leaf values. Returns (tier id, created?)."""
    with atomic("import_record"):
        tier = _find_child(project_id, parent_id, record["name"])
        created = tier is None
        if created:
            level = 0
            if parent_id is not None:
                level = db.session.get(Tier, parent_id).level + 1
            tier = add_tier(project_id, parent_id, record["name"], level)

        if record["values"]:
            children = child_count(tier.id)
            if children:
                raise ParentTierReadOnlyError(tier.id, children)
            for field_name, raw in record["values"].items():
                field_type = FieldType.NUMBER.value if _is_number(raw) else FieldType.STRING.value
                field = ensure_field(tier.id, field_name, field_type)
                upsert_in_transaction(tier.id, field, raw)
        return tier.id, created


def run_import(project_id: int, records: list[dict], parent_id: int | None = None, pacing: float = 0.0):
    """Apply parsed records, yielding a progress event after each one.

    Records are matched by name under their already-resolved parent:
    an existing tier is updated, a missing one is created. A record whose
    parent path was never resolved is skipped.
    """
    total = len(records)
    created = updated = skipped = 0
    errors: list[str] = []
    # path relative to the import root → tier id; the root path of the
    # workbook itself attaches to ``parent_id``
    resolved: dict[tuple, int | None] = {(): parent_id}

    for current, record in enumerate(records, start=1):
        path = tuple(record["path"])
        event = {"current": current, "total": total}
        target_parent = resolved.get(path[:-1], _UNRESOLVED)

        if target_parent is _UNRESOLVED:
            skipped += 1
            event["message"] = f"Skipped '{record['name']}': parent '{PATH_SEPARATOR.join(path[:-1])}' not imported"
        else:
            try:
                tier_id, was_created = _apply_record(project_id, target_parent, record)
            except _RECORD_ERRORS as exc:
                message = f"{record['sheet']}: {exc}"
                errors.append(message)
                event["error"] = message
                event["message"] = f"Failed '{record['name']}'"
                logger.warning("Import record failed project=%s: %s", project_id, message)
            else:
                resolved[path] = tier_id
                if was_created:
                    created += 1
                    event["message"] = f"Created '{record['name']}'"
                else:
                    updated += 1
                    event["message"] = f"Updated '{record['name']}'"

        event.update({"created": created, "updated": updated, "skipped": skipped})
        yield event
        if pacing:
            time.sleep(pacing)

    logger.info(
        "Import finished project=%s created=%d updated=%d skipped=%d errors=%d",
        project_id, created, updated, skipped, len(errors),
    )
    yield {
        "complete": True,
        "created": created,
        "updated": updated,
        "skipped": skipped,
        "errors": errors,
    }
