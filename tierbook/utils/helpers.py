"""Shared utility functions.

atomic:       one transaction per multi-step mutation (commit or rollback + re-raise)
parse_date:   ISO or DD.MM.YYYY date strings, raising ValueError on bad input
parse_bool:   JSON/form truthiness for flags such as allow_child_creation
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime

from tierbook.models import db

logger = logging.getLogger(__name__)


@contextmanager
def atomic(label: str = "transaction"):
    """Run the enclosed block as one database transaction.

    Commits when the block exits normally. Any exception rolls back every
    write made inside the block and is re-raised unchanged, so service
    exceptions still reach the blueprint error handlers.

    Usage::

        with atomic("reorder_tier"):
            tier.parent_id = new_parent_id
            _reindex(old_group)
            _reindex(new_group)
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Rolled back %s", label)
        raise


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Supports YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS (→ .date()) and DD.MM.YYYY.
    Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.") from exc


def parse_bool(value, default: bool = False) -> bool:
    """Interpret JSON booleans and common string spellings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("true", "1", "yes", "on", "y")
