"""
Field catalog: per-tier typed field definitions.

Fields belong to exactly one tier and are never inherited. New fields are
appended (display_order = current max + 1) and gaps left by deletions are
never reused. Every db.session.commit() in this module is intentional and
owns the transaction for its operation.
"""

import logging

from sqlalchemy import delete, func, select

from tierbook.core.exceptions import ValidationError
from tierbook.core.field_types import FieldType, parse_options
from tierbook.models import db
from tierbook.models.field_template import FieldTemplate
from tierbook.models.tier import Tier, TierData, TierField
from tierbook.services.helpers.scoped_queries import get_or_raise, get_scoped
from tierbook.utils.helpers import atomic

logger = logging.getLogger(__name__)

MAX_FIELD_NAME_LENGTH = 255


def validate_definition(field_name, field_type="string", field_options=None) -> tuple[str, FieldType, str | None]:
    """Normalise a field definition shared by tier fields and template fields.

    Returns:
        (trimmed name, FieldType, newline-joined options or None)

    Raises:
        ValidationError: Empty/long name, unknown type, dropdown without options.
    """
    if not isinstance(field_name, str) or not field_name.strip():
        raise ValidationError("Field name is required", details={"field_name": "required"})
    field_name = field_name.strip()
    if len(field_name) > MAX_FIELD_NAME_LENGTH:
        raise ValidationError(
            f"Field name must be at most {MAX_FIELD_NAME_LENGTH} characters",
            details={"field_name": "too long"},
        )
    ft = FieldType.parse(field_type or "string")

    options = None
    if ft.requires_options:
        parsed = parse_options(field_options)
        if not parsed:
            raise ValidationError(
                "Dropdown fields require at least one option",
                details={"field_options": "required for dropdown"},
            )
        options = "\n".join(parsed)
    return field_name, ft, options


def _next_order(tier_id: int) -> int:
    current = db.session.execute(
        select(func.max(TierField.display_order)).where(TierField.tier_id == tier_id)
    ).scalar()
    return 0 if current is None else current + 1


def fields_for_tiers(tier_ids: list[int]) -> list[TierField]:
    if not tier_ids:
        return []
    return list(db.session.execute(
        select(TierField)
        .where(TierField.tier_id.in_(tier_ids))
        .order_by(TierField.tier_id, TierField.display_order, TierField.id)
    ).scalars())


def list_fields(tier_id: int) -> list[dict]:
    """Fields of a tier ordered by display_order."""
    get_or_raise(Tier, tier_id)
    return [f.to_dict() for f in fields_for_tiers([tier_id])]


def add_field(tier_id: int, field_name, field_type="string", field_options=None) -> dict:
    """Append a field definition to a tier."""
    get_or_raise(Tier, tier_id)
    field_name, ft, options = validate_definition(field_name, field_type, field_options)

    with atomic("add_field"):
        field = TierField(
            tier_id=tier_id,
            field_name=field_name,
            field_type=ft.value,
            field_options=options,
            display_order=_next_order(tier_id),
        )
        db.session.add(field)

    logger.info("TierField created id=%s tier=%s type=%s", field.id, tier_id, ft.value)
    return field.to_dict()


def delete_field(tier_id: int, field_id: int) -> None:
    """Delete a field and its stored values; the field must belong to ``tier_id``."""
    field = get_scoped(TierField, field_id, tier_id=tier_id)
    with atomic("delete_field"):
        db.session.execute(delete(TierData).where(TierData.field_id == field.id))
        db.session.delete(field)
    logger.info("TierField deleted id=%s tier=%s", field_id, tier_id)


def import_template(tier_id: int, template_id: int) -> dict:
    """Copy a template's fields onto a tier, after the tier's existing fields.

    Template order is preserved; the first copied field takes the next
    free display_order after the tier's current maximum.
    """
    get_or_raise(Tier, tier_id)
    template = get_or_raise(FieldTemplate, template_id)

    with atomic("import_template"):
        start = _next_order(tier_id)
        for offset, tf in enumerate(template.fields):
            db.session.add(TierField(
                tier_id=tier_id,
                field_name=tf.field_name,
                field_type=tf.field_type,
                field_options=tf.field_options,
                display_order=start + offset,
            ))
        added = len(template.fields)

    logger.info("Template %s imported into tier %s (%d fields)", template_id, tier_id, added)
    return {"success": True, "fields_added": added, "fields": list_fields(tier_id)}


def ensure_field(tier_id: int, field_name: str, field_type: str) -> TierField:
    """Find a tier field by name or append it (used by the spreadsheet importer).

    Caller owns the transaction.
    """
    existing = db.session.execute(
        select(TierField).where(TierField.tier_id == tier_id, TierField.field_name == field_name)
    ).scalars().first()
    if existing is not None:
        return existing
    field = TierField(
        tier_id=tier_id,
        field_name=field_name,
        field_type=field_type,
        display_order=_next_order(tier_id),
    )
    db.session.add(field)
    db.session.flush()
    return field
