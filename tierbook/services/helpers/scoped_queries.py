"""
Scoped get-by-id helpers.

Child records (fields of a tier, fields of a template, tiers of a project)
are always fetched together with their owning scope so an id from another
tier or project can never be read or mutated through the wrong URL.

Usage:
    field = get_scoped(TierField, field_id, tier_id=tier_id)
    parent = get_scoped(Tier, parent_id, project_id=project_id)
    tf = get_scoped(TemplateField, tf_id, template_id=template_id)

    # Unscoped top-level lookups (projects, templates, tiers by id)
    tier = get_or_raise(Tier, tier_id)

Scope field resolution:
    Each keyword argument maps directly to a column name on the model.
    A scope keyword naming a column the model lacks raises ValueError at
    call time so the bug surfaces during development rather than silently
    performing an unscoped lookup.
"""

import logging

from sqlalchemy import select

from tierbook.core.exceptions import NotFoundError
from tierbook.models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, pk: int):
    """Fetch a top-level entity by PK or raise NotFoundError."""
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return obj


def get_scoped(model, pk: int, **scope):
    """Fetch a single entity by PK with a mandatory scope filter.

    Args:
        model: SQLAlchemy model class with an ``id`` PK column.
        pk: Primary key value to look up.
        **scope: One or more ``column=value`` filters (e.g. ``tier_id=3``).

    Returns:
        The model instance if found within the given scope.

    Raises:
        ValueError: If no scope is given or a scope names a missing column.
        NotFoundError: If the entity does not exist OR belongs to another
                       scope. The two cases are intentionally indistinguishable.
    """
    if not scope:
        raise ValueError(f"{model.__name__} id={pk} requires at least one scope filter")

    missing = sorted(f for f in scope if not hasattr(model, f))
    if missing:
        raise ValueError(f"{model.__name__} has no scope column(s) {missing}")

    stmt = select(model).where(model.id == pk)
    for field, value in scope.items():
        stmt = stmt.where(getattr(model, field) == value)

    result = db.session.execute(stmt).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, scope)
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return result
