"""
Pure tree helpers over a flat tier list.

Every function takes the tier rows it works on as an explicit argument
(ORM ``Tier`` instances or anything exposing ``id``, ``parent_id``,
``name`` and ``display_order``). Nothing here touches the database, so the
same helpers drive the persistent operations in ``tier_service``, the
aggregation walk, the spreadsheet export and the move-target computation
a client needs for up/down/indent/outdent buttons.

Traversals are iterative: tree depth is bounded by memory, not by the
interpreter's recursion limit.
"""

from collections import defaultdict, deque

DIRECTIONS = ("up", "down", "indent", "outdent")


def by_id(tiers) -> dict:
    return {t.id: t for t in tiers}


def children_map(tiers) -> dict:
    """parent_id → children sorted by display_order (id breaks ties)."""
    groups = defaultdict(list)
    for t in tiers:
        groups[t.parent_id].append(t)
    for kids in groups.values():
        kids.sort(key=lambda t: (t.display_order, t.id))
    return groups


def build_tree(tiers, node=None) -> list[dict]:
    """Nest a flat list into ``[{..., "children": [...]}]``.

    Tiers whose parent is not in the list become roots, so a subtree slice
    nests under its own top tier. ``node`` maps a tier to its dict
    (defaults to ``to_dict()``).
    """
    node = node or (lambda t: t.to_dict())
    nodes = {t.id: {**node(t), "children": []} for t in tiers}
    roots = []
    for parent_id, kids in children_map(tiers).items():
        target = nodes[parent_id]["children"] if parent_id in nodes else roots
        target.extend(nodes[k.id] for k in kids)
    roots.sort(key=lambda n: (n.get("display_order", 0), n.get("id", 0)))
    return roots


def walk_parent_first(tiers, root_ids):
    """Breadth-first walk from ``root_ids``; every parent precedes its children."""
    kids = children_map(tiers)
    index = by_id(tiers)
    queue = deque(index[r] for r in root_ids if r in index)
    while queue:
        tier = queue.popleft()
        yield tier
        queue.extend(kids.get(tier.id, ()))


def walk_pre_order(tiers, root_id):
    """Depth-first pre-order walk yielding ``(tier, path_names, depth)``.

    ``path_names`` runs from the walk root down to the tier itself.
    """
    kids = children_map(tiers)
    index = by_id(tiers)
    if root_id not in index:
        return
    stack = [(index[root_id], [index[root_id].name], 0)]
    while stack:
        tier, path, depth = stack.pop()
        yield tier, path, depth
        for child in reversed(kids.get(tier.id, ())):
            stack.append((child, path + [child.name], depth + 1))


def post_order(tiers, root_id):
    """Children before parents, starting from ``root_id`` (inclusive)."""
    return list(reversed(list(walk_parent_first(tiers, [root_id]))))


def descendant_ids(tiers, tier_id) -> list[int]:
    """Ids of ``tier_id`` and every tier beneath it, parents first."""
    return [t.id for t in walk_parent_first(tiers, [tier_id])]


def is_descendant(tiers, ancestor_id, tier_id) -> bool:
    """True when ``tier_id`` sits strictly below ``ancestor_id``."""
    index = by_id(tiers)
    seen = set()
    current = index.get(tier_id)
    while current is not None and current.parent_id is not None:
        if current.parent_id == ancestor_id:
            return True
        if current.parent_id in seen:
            break
        seen.add(current.parent_id)
        current = index.get(current.parent_id)
    return False


def depth_of(tiers, tier_id) -> int:
    """Depth from the parent chain (roots are 0)."""
    index = by_id(tiers)
    depth = 0
    current = index.get(tier_id)
    while current is not None and current.parent_id is not None:
        depth += 1
        if depth > len(index):
            raise ValueError(f"Cycle detected above tier {tier_id}")
        current = index.get(current.parent_id)
    return depth


def insert_at(ids: list, moved_id, index: int) -> list:
    """Place ``moved_id`` at ``index`` in ``ids``; indexes past the end append."""
    remaining = [i for i in ids if i != moved_id]
    position = max(0, min(index, len(remaining)))
    remaining.insert(position, moved_id)
    return remaining


def move_target(tiers, tier_id, direction: str) -> dict | None:
    """Reorder arguments for a one-step move, or None when the move is impossible.

    Returns ``{"new_index", "parent_id", "new_parent_id"}`` in the shape the
    reorder operation accepts:

    - ``up`` / ``down``: swap with the previous / next sibling
    - ``indent``: become the last child of the previous sibling
    - ``outdent``: become the next sibling of the current parent
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {', '.join(DIRECTIONS)}")
    index = by_id(tiers)
    tier = index.get(tier_id)
    if tier is None:
        return None
    kids = children_map(tiers)
    siblings = kids.get(tier.parent_id, [])
    position = [s.id for s in siblings].index(tier_id)

    if direction == "up":
        if position == 0:
            return None
        return {"new_index": position - 1, "parent_id": tier.parent_id, "new_parent_id": tier.parent_id}
    if direction == "down":
        if position >= len(siblings) - 1:
            return None
        return {"new_index": position + 1, "parent_id": tier.parent_id, "new_parent_id": tier.parent_id}
    if direction == "indent":
        if position == 0:
            return None
        new_parent = siblings[position - 1]
        return {
            "new_index": len(kids.get(new_parent.id, [])),
            "parent_id": tier.parent_id,
            "new_parent_id": new_parent.id,
        }
    # outdent
    if tier.parent_id is None:
        return None
    parent = index[tier.parent_id]
    parent_siblings = [s.id for s in kids.get(parent.parent_id, [])]
    return {
        "new_index": parent_siblings.index(parent.id) + 1,
        "parent_id": tier.parent_id,
        "new_parent_id": parent.parent_id,
    }
