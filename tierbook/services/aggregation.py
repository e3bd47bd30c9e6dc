"""
Aggregation engine: displayed values for every tier of a tree.

    aggregate(leaf)   = the leaf's numeric values (missing → 0)
    aggregate(parent) = Σ aggregate(child), merged key-wise by field name

Fields are tier-scoped, so sums are keyed by ``field_name``: a parent's
"Score" is the total of every descendant leaf's "Score" field whatever
the field ids are. Only ``number`` fields aggregate; other types have no
parent value.

Nothing is cached. Each call loads the tiers, fields and values it needs
in three bulk queries and walks the tree iteratively in post-order.
"""

import logging
from collections import defaultdict

from sqlalchemy import select

from tierbook.core.field_types import FieldType
from tierbook.models import db
from tierbook.models.project import Project
from tierbook.models.tier import Tier, TierData
from tierbook.services import tier_tree
from tierbook.services.field_service import fields_for_tiers
from tierbook.services.helpers.scoped_queries import get_or_raise
from tierbook.services.tier_service import project_tiers

logger = logging.getLogger(__name__)


class TreeSnapshot:
    """Tiers, fields and values of (part of) one project, loaded once."""

    def __init__(self, tiers: list[Tier], fields, values):
        self.tiers = tiers
        self.index = tier_tree.by_id(tiers)
        self.kids = tier_tree.children_map(tiers)
        self.fields_by_tier = defaultdict(list)
        for f in fields:
            self.fields_by_tier[f.tier_id].append(f)
        self.values = {(v.tier_id, v.field_id): v for v in values}

    @classmethod
    def load(cls, project_id: int, root_id: int | None = None) -> "TreeSnapshot":
        """Snapshot a whole project, or only the subtree under ``root_id``."""
        tiers = project_tiers(project_id)
        if root_id is not None:
            keep = set(tier_tree.descendant_ids(tiers, root_id))
            tiers = [t for t in tiers if t.id in keep]
        ids = [t.id for t in tiers]
        values = []
        if ids:
            values = list(db.session.execute(
                select(TierData).where(TierData.tier_id.in_(ids))
            ).scalars())
        return cls(tiers, fields_for_tiers(ids), values)

    def children(self, tier_id: int) -> list[Tier]:
        return self.kids.get(tier_id, [])

    def is_leaf(self, tier_id: int) -> bool:
        return not self.kids.get(tier_id)

    def stored(self, tier_id: int, field):
        row = self.values.get((tier_id, field.id))
        if row is None:
            return None
        return FieldType.parse(field.field_type).display(row.value, row.text_value)

    def leaf_numbers(self, tier_id: int) -> dict[str, float]:
        totals: dict[str, float] = {}
        for field in self.fields_by_tier.get(tier_id, []):
            if field.field_type != FieldType.NUMBER.value:
                continue
            totals[field.field_name] = totals.get(field.field_name, 0) + (self.stored(tier_id, field) or 0)
        return totals

    def aggregates(self, root_id: int) -> dict[int, dict[str, float]]:
        """``{tier_id: {field_name: total}}`` for ``root_id`` and every descendant."""
        result: dict[int, dict[str, float]] = {}
        for tier in tier_tree.post_order(self.tiers, root_id):
            children = self.children(tier.id)
            if not children:
                result[tier.id] = self.leaf_numbers(tier.id)
                continue
            merged: dict[str, float] = {}
            for child in children:
                for name, amount in result[child.id].items():
                    merged[name] = merged.get(name, 0) + amount
            result[tier.id] = merged
        return result

    def background_color(self, tier_id: int) -> str | None:
        for field in self.fields_by_tier.get(tier_id, []):
            if field.field_type == FieldType.COLOR.value:
                color = self.stored(tier_id, field)
                if color:
                    return color
        return None

    def display(self, tier_id: int, aggregated: dict[str, float]) -> dict:
        """Per-field displayed values for one tier."""
        leaf = self.is_leaf(tier_id)
        fields = []
        for field in self.fields_by_tier.get(tier_id, []):
            numeric = field.field_type == FieldType.NUMBER.value
            if leaf:
                value = self.stored(tier_id, field)
                if numeric and value is None:
                    value = 0
            else:
                value = aggregated.get(field.field_name, 0) if numeric else None
            fields.append({
                "field_id": field.id,
                "field_name": field.field_name,
                "field_type": field.field_type,
                "value": value,
                "editable": leaf,
            })
        return {
            "tier_id": tier_id,
            "is_leaf": leaf,
            "child_count": len(self.children(tier_id)),
            "fields": fields,
            "aggregated": aggregated,
        }


def aggregate(tier_id: int) -> dict[str, float]:
    """Recursive numeric totals for a tier, keyed by field name."""
    tier = get_or_raise(Tier, tier_id)
    snapshot = TreeSnapshot.load(tier.project_id, root_id=tier_id)
    return snapshot.aggregates(tier_id)[tier_id]


def display_values(tier_id: int) -> dict:
    """What a client shows for a tier: stored values on leaves, totals on parents."""
    tier = get_or_raise(Tier, tier_id)
    snapshot = TreeSnapshot.load(tier.project_id, root_id=tier_id)
    totals = snapshot.aggregates(tier_id)
    result = snapshot.display(tier_id, totals[tier_id])
    result["background_color"] = snapshot.background_color(tier_id)
    return result


def project_tree(project_id: int) -> list[dict]:
    """Nested tree of a project with ``display`` and ``background_color`` on every node."""
    get_or_raise(Project, project_id)
    snapshot = TreeSnapshot.load(project_id)
    totals: dict[int, dict[str, float]] = {}
    for root in snapshot.children(None):
        totals.update(snapshot.aggregates(root.id))

    def node(tier):
        d = tier.to_dict()
        d["display"] = snapshot.display(tier.id, totals.get(tier.id, {}))
        d["background_color"] = snapshot.background_color(tier.id)
        return d

    logger.debug("Tree computed for project %s (%d tiers)", project_id, len(snapshot.tiers))
    return tier_tree.build_tree(snapshot.tiers, node=node)
