"""
Field template service layer.

Templates are project-independent lists of field definitions. System
templates (seeded by ``flask seed-templates``) are read-only; user
templates can be renamed, deleted and have fields added or removed.
Importing a template into a tier lives in ``field_service.import_template``.
"""

import logging

from sqlalchemy import func, select

from tierbook.core.exceptions import PermissionDeniedError, ValidationError
from tierbook.models import db
from tierbook.models.field_template import FieldTemplate, TemplateField
from tierbook.services.field_service import validate_definition
from tierbook.services.helpers.scoped_queries import get_or_raise, get_scoped
from tierbook.utils.helpers import atomic

logger = logging.getLogger(__name__)

_UNSET = object()

# name → [(field_name, field_type, options)]
SYSTEM_TEMPLATES = {
    "Employee Basics": [
        ("Full Name", "string", None),
        ("Email", "email", None),
        ("Phone", "phone", None),
        ("Start Date", "date", None),
    ],
    "Weekly Hours": [
        ("Planned Hours", "number", None),
        ("Actual Hours", "number", None),
        ("Overtime Hours", "number", None),
    ],
    "Status Tracking": [
        ("Status", "dropdown", "Not Started\nIn Progress\nDone"),
        ("Color", "color", None),
        ("Notes", "textarea", None),
    ],
}


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Template name is required", details={"name": "required"})
    return name.strip()[:255]


def _editable(template_id: int) -> FieldTemplate:
    template = get_or_raise(FieldTemplate, template_id)
    if template.is_system:
        raise PermissionDeniedError("System templates cannot be modified")
    return template


def list_templates() -> list[dict]:
    """Templates with field counts: system templates first, then newest first."""
    stmt = select(FieldTemplate).order_by(
        FieldTemplate.is_system.desc(), FieldTemplate.created_at.desc(), FieldTemplate.id.desc()
    )
    return [t.to_dict() for t in db.session.execute(stmt).scalars()]


def get_template(template_id: int) -> dict:
    return get_or_raise(FieldTemplate, template_id).to_dict(include_fields=True)


def create_template(name, actor: dict, description="", fields=None, is_system=False) -> dict:
    """Create a template, optionally with its initial fields in the given order."""
    name = _clean_name(name)
    definitions = [
        validate_definition(f.get("field_name"), f.get("field_type", "string"), f.get("field_options"))
        for f in (fields or [])
    ]

    with atomic("create_template"):
        template = FieldTemplate(
            name=name,
            description=(description or "").strip(),
            created_by=actor.get("id"),
            is_system=is_system,
        )
        db.session.add(template)
        db.session.flush()
        for order, (field_name, ft, options) in enumerate(definitions):
            db.session.add(TemplateField(
                template_id=template.id,
                field_name=field_name,
                field_type=ft.value,
                field_options=options,
                display_order=order,
            ))

    logger.info("FieldTemplate created id=%s fields=%d", template.id, len(definitions))
    return get_template(template.id)


def update_template(template_id: int, name=_UNSET, description=_UNSET) -> dict:
    template = _editable(template_id)
    with atomic("update_template"):
        if name is not _UNSET:
            template.name = _clean_name(name)
        if description is not _UNSET:
            template.description = (description or "").strip()
    logger.info("FieldTemplate updated id=%s", template_id)
    return get_template(template_id)


def delete_template(template_id: int) -> None:
    template = _editable(template_id)
    with atomic("delete_template"):
        db.session.delete(template)
    logger.info("FieldTemplate deleted id=%s", template_id)


def list_template_fields(template_id: int) -> list[dict]:
    return [f.to_dict() for f in get_or_raise(FieldTemplate, template_id).fields]


def add_template_field(template_id: int, field_name, field_type="string", field_options=None) -> dict:
    _editable(template_id)
    field_name, ft, options = validate_definition(field_name, field_type, field_options)
    with atomic("add_template_field"):
        current = db.session.execute(
            select(func.max(TemplateField.display_order)).where(TemplateField.template_id == template_id)
        ).scalar()
        field = TemplateField(
            template_id=template_id,
            field_name=field_name,
            field_type=ft.value,
            field_options=options,
            display_order=0 if current is None else current + 1,
        )
        db.session.add(field)
    logger.info("TemplateField created id=%s template=%s", field.id, template_id)
    return field.to_dict()


def remove_template_field(template_id: int, field_id: int) -> None:
    _editable(template_id)
    field = get_scoped(TemplateField, field_id, template_id=template_id)
    with atomic("remove_template_field"):
        db.session.delete(field)
    logger.info("TemplateField deleted id=%s template=%s", field_id, template_id)


def seed_system_templates() -> int:
    """Create any missing system templates. Returns how many were added."""
    existing = set(db.session.execute(
        select(FieldTemplate.name).where(FieldTemplate.is_system.is_(True))
    ).scalars())
    added = 0
    for name, fields in SYSTEM_TEMPLATES.items():
        if name in existing:
            continue
        create_template(
            name,
            {"id": None},
            description=f"Built-in {name.lower()} fields",
            fields=[
                {"field_name": n, "field_type": t, "field_options": o} for n, t, o in fields
            ],
            is_system=True,
        )
        added += 1
    return added
