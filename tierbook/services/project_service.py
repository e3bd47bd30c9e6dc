"""
Project service layer.

Projects own root tiers. Deleting one removes every tier, field and value
beneath it; duplicating one deep-clones each root subtree into a new
project through the same clone routine tier duplication uses.
"""

import logging

from sqlalchemy import select

from tierbook.core.exceptions import ValidationError
from tierbook.models import db
from tierbook.models.project import Project
from tierbook.services import tier_tree
from tierbook.services.helpers.scoped_queries import get_or_raise
from tierbook.services.tier_service import clone_subtree, delete_subtrees, project_tiers
from tierbook.utils.helpers import atomic

logger = logging.getLogger(__name__)


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Project name is required", details={"name": "required"})
    return name.strip()[:255]


def list_projects() -> list[dict]:
    """All projects, newest first, with the creator's email."""
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    return [p.to_dict() for p in db.session.execute(stmt).scalars()]


def get_project(project_id: int) -> dict:
    project = get_or_raise(Project, project_id)
    d = project.to_dict()
    d["tier_count"] = len(project_tiers(project_id))
    return d


def create_project(name, actor: dict) -> dict:
    name = _clean_name(name)
    with atomic("create_project"):
        project = Project(name=name, created_by=actor.get("id"))
        db.session.add(project)
    logger.info("Project created id=%s by user=%s", project.id, actor.get("id"))
    return project.to_dict()


def delete_project(project_id: int) -> None:
    project = get_or_raise(Project, project_id)
    ids = [t.id for t in project_tiers(project_id)]
    with atomic("delete_project"):
        delete_subtrees(ids)
        db.session.delete(project)
    logger.info("Project deleted id=%s (%d tiers)", project_id, len(ids))


def duplicate_project(project_id: int, actor: dict, name=None) -> dict:
    """Copy a project with every tier, field and value under a new id.

    Args:
        project_id: Source project.
        actor: Becomes ``created_by`` of the copy.
        name: Name of the copy; defaults to ``"<source name> Copy"``.
    """
    source = get_or_raise(Project, project_id)
    new_name = _clean_name(name) if name is not None else f"{source.name} Copy"
    tiers = project_tiers(project_id)
    roots = tier_tree.children_map(tiers).get(None, [])

    totals = {"tiers": 0, "fields": 0, "values": 0}
    with atomic("duplicate_project"):
        copy = Project(name=new_name, created_by=actor.get("id"))
        db.session.add(copy)
        db.session.flush()
        for root in roots:
            _, counts = clone_subtree(
                tiers,
                root.id,
                project_id=copy.id,
                parent_id=None,
                root_level=0,
            )
            for key, n in counts.items():
                totals[key] += n

    logger.info(
        "Project duplicated id=%s -> %s (%d tiers, %d fields, %d values)",
        project_id, copy.id, totals["tiers"], totals["fields"], totals["values"],
    )
    result = copy.to_dict()
    result["copied"] = totals
    return result
