"""
Tier value store: per-(tier, field) scalars with insert-or-update semantics.

Only leaf tiers accept writes. The field's type decides which column holds
the payload; the other column is always reset to NULL so a record never
carries both a numeric and a text value.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from tierbook.core.exceptions import ParentTierReadOnlyError, ValidationError
from tierbook.core.field_types import FieldType
from tierbook.models import db
from tierbook.models.tier import Tier, TierData, TierField
from tierbook.services.helpers.scoped_queries import get_or_raise, get_scoped
from tierbook.services.tier_service import child_count
from tierbook.utils.helpers import atomic

logger = logging.getLogger(__name__)

_MISSING = object()

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _upsert(tier_id: int, field_id: int, value, text_value) -> None:
    """INSERT ... ON CONFLICT (tier_id, field_id) DO UPDATE."""
    dialect = db.session.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        existing = db.session.execute(
            select(TierData).where(TierData.tier_id == tier_id, TierData.field_id == field_id)
        ).scalar_one_or_none()
        if existing is None:
            db.session.add(TierData(tier_id=tier_id, field_id=field_id, value=value, text_value=text_value))
        else:
            existing.value = value
            existing.text_value = text_value
        return

    stmt = insert(TierData).values(
        tier_id=tier_id, field_id=field_id, value=value, text_value=text_value,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["tier_id", "field_id"],
        set_={
            "value": stmt.excluded.value,
            "text_value": stmt.excluded.text_value,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    db.session.execute(stmt)


def _assert_leaf(tier_id: int) -> None:
    children = child_count(tier_id)
    if children:
        raise ParentTierReadOnlyError(tier_id, children)


def _payload(entry: dict):
    """Pick the raw input out of ``{value}`` / ``{text_value}``."""
    raw = entry.get("value", _MISSING)
    if raw is _MISSING or raw is None:
        raw = entry.get("text_value", raw)
    return None if raw is _MISSING else raw


def _write_one(tier_id: int, entry: dict) -> dict:
    if not isinstance(entry, dict) or "field_id" not in entry:
        raise ValidationError("field_id is required", details={"field_id": "required"})
    field_id = entry["field_id"]
    if isinstance(field_id, bool) or not isinstance(field_id, int):
        raise ValidationError("field_id must be an integer", details={"field_id": "integer"})
    field = get_scoped(TierField, field_id, tier_id=tier_id)
    ft = FieldType.parse(field.field_type)
    value, text_value = ft.coerce(_payload(entry), field.options)
    _upsert(tier_id, field.id, value, text_value)
    return {"field_id": field.id, "value": value, "text_value": text_value}


def write_values(tier_id: int, entries: list[dict]) -> list[dict]:
    """Write several values to one leaf tier in a single transaction.

    Raises:
        NotFoundError: Unknown tier, or a field not defined on this tier.
        ParentTierReadOnlyError: The tier has children (nothing is written).
        ValidationError: A value does not fit its field type.
    """
    get_or_raise(Tier, tier_id)
    _assert_leaf(tier_id)
    with atomic("write_values"):
        written = [_write_one(tier_id, entry) for entry in entries]
    logger.info("Tier %s: %d value(s) written", tier_id, len(written))
    return written


def write_value(tier_id: int, field_id: int, value=_MISSING, text_value=_MISSING) -> dict:
    entry = {"field_id": field_id}
    if value is not _MISSING:
        entry["value"] = value
    if text_value is not _MISSING:
        entry["text_value"] = text_value
    return write_values(tier_id, [entry])[0]


def read_values(tier_id: int) -> list[dict]:
    """All stored ``{field_id, value, text_value}`` rows of a tier."""
    get_or_raise(Tier, tier_id)
    rows = db.session.execute(
        select(TierData).where(TierData.tier_id == tier_id).order_by(TierData.field_id)
    ).scalars()
    return [row.to_dict() for row in rows]


def upsert_in_transaction(tier_id: int, field: TierField, raw) -> None:
    """Coerce and upsert one value; caller owns the transaction and the leaf check."""
    ft = FieldType.parse(field.field_type)
    value, text_value = ft.coerce(raw, field.options)
    _upsert(tier_id, field.id, value, text_value)
