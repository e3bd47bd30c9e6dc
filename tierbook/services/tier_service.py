"""
Tier tree engine: persistent operations on a project's tier hierarchy.

Owns every structural mutation (create, rename, delete, reorder/reparent,
move, duplicate). Each multi-step mutation runs inside one ``atomic()``
transaction, so a failure part-way leaves display_order, parent_id and
level exactly as they were.

Invariants maintained here:
  - display_order within every sibling group is dense and zero-based
  - level equals the tier's depth (recomputed for the whole moved subtree
    on reparent)
  - a tier is never reparented under itself or one of its descendants

Tree shape questions (children, descendants, walks, move targets) are
answered by the pure helpers in ``tier_tree`` over the project's flat
tier list, loaded once per operation.
"""

import logging
from collections import defaultdict

from flask import current_app
from sqlalchemy import delete, func, select

from tierbook.core.exceptions import (
    ConflictError,
    ConflictStateError,
    PermissionDeniedError,
    ValidationError,
)
from tierbook.models import db
from tierbook.models.project import Project
from tierbook.models.tier import Tier, TierData, TierField
from tierbook.services import tier_tree
from tierbook.services.helpers.scoped_queries import get_or_raise, get_scoped
from tierbook.utils.helpers import atomic

logger = logging.getLogger(__name__)

# Distinguishes "argument not supplied" from an explicit None (= root)
UNSET = object()

MAX_NAME_LENGTH = 255


# ──────────────────────────────────────────────────────────────────────────────
# Internal helpers
# ──────────────────────────────────────────────────────────────────────────────

def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Tier name is required", details={"name": "required"})
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Tier name must be at most {MAX_NAME_LENGTH} characters",
            details={"name": "too long"},
        )
    return name


def project_tiers(project_id: int) -> list[Tier]:
    """Every tier of a project, as ORM rows bound to the current session."""
    stmt = (
        select(Tier)
        .where(Tier.project_id == project_id)
        .order_by(Tier.level, Tier.display_order, Tier.id)
    )
    return list(db.session.execute(stmt).scalars())


def _siblings(project_id: int, parent_id: int | None) -> list[Tier]:
    stmt = select(Tier).where(Tier.project_id == project_id)
    if parent_id is None:
        stmt = stmt.where(Tier.parent_id.is_(None))
    else:
        stmt = stmt.where(Tier.parent_id == parent_id)
    return list(db.session.execute(stmt.order_by(Tier.display_order, Tier.id)).scalars())


def child_count(tier_id: int) -> int:
    return db.session.execute(
        select(func.count()).select_from(Tier).where(Tier.parent_id == tier_id)
    ).scalar_one()


def _reindex(ordered: list[Tier]) -> None:
    """Assign display_order = position across an already-ordered sibling list."""
    for position, tier in enumerate(ordered):
        if tier.display_order != position:
            tier.display_order = position


def _check_sibling_name(project_id, parent_id, name, exclude_id=None) -> None:
    if not current_app.config.get("ENFORCE_UNIQUE_SIBLING_NAMES"):
        return
    lowered = name.lower()
    for sibling in _siblings(project_id, parent_id):
        if sibling.id != exclude_id and sibling.name.lower() == lowered:
            raise ConflictError("Tier", "name", name)


def _data_by_tier(tier_ids: list[int]) -> dict[int, list[TierData]]:
    grouped = defaultdict(list)
    if not tier_ids:
        return grouped
    rows = db.session.execute(
        select(TierData).where(TierData.tier_id.in_(tier_ids)).order_by(TierData.field_id)
    ).scalars()
    for row in rows:
        grouped[row.tier_id].append(row)
    return grouped


# ──────────────────────────────────────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────────────────────────────────────

def list_tiers(project_id: int) -> list[dict]:
    """Flat tier list for a project, each with its stored ``data`` rows.

    Callers rebuild the tree by grouping on ``parent_id``.
    """
    get_or_raise(Project, project_id)
    tiers = project_tiers(project_id)
    data = _data_by_tier([t.id for t in tiers])
    result = []
    for tier in tiers:
        d = tier.to_dict()
        d["data"] = [row.to_dict() for row in data.get(tier.id, [])]
        result.append(d)
    return result


def get_tier(tier_id: int) -> dict:
    tier = get_or_raise(Tier, tier_id)
    d = tier.to_dict()
    d["child_count"] = child_count(tier_id)
    d["is_leaf"] = d["child_count"] == 0
    return d


# ──────────────────────────────────────────────────────────────────────────────
# Create / update / delete
# ──────────────────────────────────────────────────────────────────────────────

def add_tier(project_id, parent_id, name, level, allow_child_creation=True) -> Tier:
    """Append a tier to its sibling group and flush it (caller owns the transaction)."""
    tier = Tier(
        project_id=project_id,
        parent_id=parent_id,
        name=name,
        level=level,
        display_order=len(_siblings(project_id, parent_id)),
        allow_child_creation=bool(allow_child_creation),
    )
    db.session.add(tier)
    db.session.flush()
    return tier


def create_tier(
    project_id: int,
    name,
    actor: dict,
    parent_id: int | None = None,
    allow_child_creation: bool = True,
) -> dict:
    """Create a tier at the end of its sibling group.

    Args:
        project_id: Owning project.
        name: Display name; trimmed, must be non-empty.
        actor: Resolved ``{id, email, is_admin}``.
        parent_id: Parent tier in the same project, or None for a root.
        allow_child_creation: Whether non-admins may add children below it.

    Raises:
        NotFoundError: Unknown project, or parent not in this project.
        PermissionDeniedError: Non-admin under a parent that disallows children.
        ValidationError: Empty name.
        ConflictError: Duplicate sibling name (only when enforcement is on).
    """
    get_or_raise(Project, project_id)
    name = _clean_name(name)

    level = 0
    if parent_id is not None:
        parent = get_scoped(Tier, parent_id, project_id=project_id)
        if not actor["is_admin"] and not parent.allow_child_creation:
            raise PermissionDeniedError(
                f"Child creation is disabled under tier '{parent.name}'"
            )
        level = parent.level + 1

    _check_sibling_name(project_id, parent_id, name)

    with atomic("create_tier"):
        tier = add_tier(project_id, parent_id, name, level, allow_child_creation)

    logger.info(
        "Tier created id=%s project=%s parent=%s order=%s",
        tier.id, project_id, parent_id, tier.display_order,
    )
    return tier.to_dict()


def update_tier(tier_id: int, name=UNSET, allow_child_creation=UNSET) -> dict:
    """Partial update: rename and/or toggle ``allow_child_creation``."""
    tier = get_or_raise(Tier, tier_id)
    with atomic("update_tier"):
        if name is not UNSET:
            name = _clean_name(name)
            _check_sibling_name(tier.project_id, tier.parent_id, name, exclude_id=tier.id)
            tier.name = name
        if allow_child_creation is not UNSET:
            tier.allow_child_creation = bool(allow_child_creation)
    logger.info("Tier updated id=%s", tier_id)
    return tier.to_dict()


def delete_subtrees(tier_ids: list[int]) -> None:
    """Delete the given tiers with their fields and values (caller owns the transaction)."""
    if not tier_ids:
        return
    db.session.execute(delete(TierData).where(TierData.tier_id.in_(tier_ids)))
    db.session.execute(delete(TierField).where(TierField.tier_id.in_(tier_ids)))
    db.session.execute(delete(Tier).where(Tier.id.in_(tier_ids)))


def delete_tier(tier_id: int) -> dict:
    """Delete a tier and everything beneath it, then close the sibling gap."""
    tier = get_or_raise(Tier, tier_id)
    project_id, parent_id = tier.project_id, tier.parent_id
    ids = tier_tree.descendant_ids(project_tiers(project_id), tier_id)

    with atomic("delete_tier"):
        delete_subtrees(ids)
        db.session.expire_all()
        _reindex(_siblings(project_id, parent_id))

    logger.info("Tier deleted id=%s cascade=%d tier(s)", tier_id, len(ids))
    return {"success": True, "deleted_ids": ids}


# ──────────────────────────────────────────────────────────────────────────────
# Reorder / reparent
# ──────────────────────────────────────────────────────────────────────────────

def reorder_tier(
    tier_id: int,
    new_index,
    current_parent_id=UNSET,
    new_parent_id=UNSET,
) -> dict:
    """Move a tier to ``new_index`` within its current or a new sibling group.

    ``current_parent_id`` is the caller's view of the tier's parent; when
    supplied and no longer true, the move is refused. ``new_parent_id``
    absent (or equal to the current parent) reorders in place; ``None``
    moves the tier to the root group.

    Raises:
        ValidationError: Negative/non-integer index, or a parent that is the
            tier itself or one of its descendants.
        NotFoundError: Unknown tier, or new parent not in the same project.
        ConflictStateError: Stale ``current_parent_id``.
    """
    if isinstance(new_index, bool) or not isinstance(new_index, int):
        raise ValidationError("newIndex must be an integer", details={"newIndex": "integer"})
    if new_index < 0:
        raise ValidationError("newIndex must not be negative", details={"newIndex": ">= 0"})

    tier = get_or_raise(Tier, tier_id)
    old_parent_id = tier.parent_id
    if current_parent_id is not UNSET and current_parent_id != old_parent_id:
        raise ConflictStateError(
            "Tier parent has changed since it was loaded",
            details={"expected_parent_id": current_parent_id, "actual_parent_id": old_parent_id},
        )

    target_parent_id = old_parent_id if new_parent_id is UNSET else new_parent_id
    tiers = project_tiers(tier.project_id)

    if target_parent_id != old_parent_id and target_parent_id is not None:
        get_scoped(Tier, target_parent_id, project_id=tier.project_id)
        if target_parent_id == tier_id or tier_tree.is_descendant(tiers, tier_id, target_parent_id):
            raise ValidationError(
                "A tier cannot be moved under itself or one of its descendants",
                details={"newParentId": target_parent_id},
            )

    groups = tier_tree.children_map(tiers)
    index = tier_tree.by_id(tiers)

    with atomic("reorder_tier"):
        old_group = [t for t in groups.get(old_parent_id, []) if t.id != tier_id]
        if target_parent_id == old_parent_id:
            order = tier_tree.insert_at([t.id for t in old_group], tier_id, new_index)
            _reindex([index[i] for i in order])
        else:
            tier.parent_id = target_parent_id
            _reindex(old_group)
            new_group = [t for t in groups.get(target_parent_id, []) if t.id != tier_id]
            order = tier_tree.insert_at([t.id for t in new_group], tier_id, new_index)
            _reindex([index[i] for i in order])
            for moved_id in tier_tree.descendant_ids(tiers, tier_id):
                index[moved_id].level = tier_tree.depth_of(tiers, moved_id)

    logger.info(
        "Tier reordered id=%s parent=%s->%s index=%s",
        tier_id, old_parent_id, target_parent_id, new_index,
    )
    return {
        "success": True,
        "tier": tier.to_dict(),
        "sibling_order": order,
    }


def move_tier(tier_id: int, direction: str) -> dict:
    """One-step up/down/indent/outdent move expressed as a reorder."""
    tier = get_or_raise(Tier, tier_id)
    try:
        target = tier_tree.move_target(project_tiers(tier.project_id), tier_id, direction)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"direction": direction}) from None
    if target is None:
        raise ConflictStateError(f"Tier cannot be moved {direction} from its current position")
    return reorder_tier(
        tier_id,
        target["new_index"],
        current_parent_id=target["parent_id"],
        new_parent_id=target["new_parent_id"],
    )


# ──────────────────────────────────────────────────────────────────────────────
# Duplicate
# ──────────────────────────────────────────────────────────────────────────────

def clone_subtree(
    source_tiers: list[Tier],
    root_id: int,
    *,
    project_id: int,
    parent_id: int | None,
    root_level: int,
    root_name: str | None = None,
    root_order: int | None = None,
) -> tuple[Tier, dict]:
    """Deep-copy the subtree at ``root_id`` (tiers, fields, values).

    Tiers are created parent-first so every child can point at its parent's
    new id. Fields are remapped old→new per tier; values are copied only
    when both their tier and their field were remapped. The caller owns
    the transaction.

    Returns:
        (new root tier, {"tiers": n, "fields": n, "values": n})
    """
    ordered = list(tier_tree.walk_parent_first(source_tiers, [root_id]))
    source_ids = [t.id for t in ordered]

    fields_by_tier = defaultdict(list)
    for f in db.session.execute(
        select(TierField)
        .where(TierField.tier_id.in_(source_ids))
        .order_by(TierField.display_order, TierField.id)
    ).scalars():
        fields_by_tier[f.tier_id].append(f)
    values = list(db.session.execute(
        select(TierData).where(TierData.tier_id.in_(source_ids))
    ).scalars())

    tier_map: dict[int, int] = {}
    field_map: dict[int, int] = {}
    depth: dict[int, int] = {}
    new_root = None

    for source in ordered:
        is_root = source.id == root_id
        depth[source.id] = 0 if is_root else depth[source.parent_id] + 1
        clone = Tier(
            project_id=project_id,
            parent_id=parent_id if is_root else tier_map[source.parent_id],
            name=root_name if is_root and root_name else source.name,
            level=root_level + depth[source.id],
            display_order=root_order if is_root and root_order is not None else source.display_order,
            allow_child_creation=source.allow_child_creation,
        )
        db.session.add(clone)
        db.session.flush()
        tier_map[source.id] = clone.id
        if is_root:
            new_root = clone

        for field in fields_by_tier.get(source.id, []):
            field_clone = TierField(
                tier_id=clone.id,
                field_name=field.field_name,
                field_type=field.field_type,
                field_options=field.field_options,
                display_order=field.display_order,
            )
            db.session.add(field_clone)
            db.session.flush()
            field_map[field.id] = field_clone.id

    copied = 0
    for row in values:
        new_field_id = field_map.get(row.field_id)
        new_tier_id = tier_map.get(row.tier_id)
        if new_field_id is None or new_tier_id is None:
            continue
        db.session.add(TierData(
            tier_id=new_tier_id,
            field_id=new_field_id,
            value=row.value,
            text_value=row.text_value,
        ))
        copied += 1

    return new_root, {"tiers": len(tier_map), "fields": len(field_map), "values": copied}


def duplicate_tier(tier_id: int) -> dict:
    """Clone a tier's subtree next to it, named ``"<name> Copy"`` and appended last."""
    tier = get_or_raise(Tier, tier_id)
    tiers = project_tiers(tier.project_id)
    sibling_count = len(tier_tree.children_map(tiers).get(tier.parent_id, []))

    with atomic("duplicate_tier"):
        clone, counts = clone_subtree(
            tiers,
            tier_id,
            project_id=tier.project_id,
            parent_id=tier.parent_id,
            root_level=tier.level,
            root_name=f"{tier.name} Copy",
            root_order=sibling_count,
        )

    logger.info(
        "Tier duplicated id=%s -> %s (%d tiers, %d fields, %d values)",
        tier_id, clone.id, counts["tiers"], counts["fields"], counts["values"],
    )
    return clone.to_dict()
