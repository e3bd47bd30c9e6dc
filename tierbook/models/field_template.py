"""Field templates: reusable, project-independent bundles of field definitions."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from tierbook.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class FieldTemplate(db.Model):
    __tablename__ = "field_templates"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    created_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    fields = relationship(
        "TemplateField",
        backref="template",
        cascade="all, delete-orphan",
        order_by="TemplateField.display_order",
        passive_deletes=True,
    )

    def to_dict(self, include_fields: bool = False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description or "",
            "created_by": self.created_by,
            "is_system": bool(self.is_system),
            "field_count": len(self.fields),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_fields:
            d["fields"] = [f.to_dict() for f in self.fields]
        return d


class TemplateField(db.Model):
    __tablename__ = "template_fields"

    id = Column(Integer, primary_key=True)
    template_id = Column(
        Integer,
        ForeignKey("field_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_name = Column(String(255), nullable=False)
    field_type = Column(String(30), nullable=False, default="string")
    field_options = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "field_name": self.field_name,
            "field_type": self.field_type,
            "field_options": self.field_options,
            "display_order": self.display_order,
        }
