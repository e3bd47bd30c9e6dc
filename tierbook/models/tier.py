"""Tier tree models: tiers, their per-tier field definitions, and stored values."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from tierbook.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Tier(db.Model):
    """Node in a project's hierarchy.

    ``parent_id`` NULL marks a root. ``display_order`` is the dense zero-based
    rank among siblings; ``level`` is the depth (0 for roots).
    """

    __tablename__ = "tiers"

    id = Column(Integer, primary_key=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    parent_id = Column(
        Integer, ForeignKey("tiers.id", ondelete="CASCADE"), nullable=True
    )
    name = Column(String(255), nullable=False)
    level = Column(Integer, nullable=False, default=0)
    display_order = Column(Integer, nullable=False, default=0)
    allow_child_creation = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_tiers_project_parent_order", "project_id", "parent_id", "display_order"),
        Index("ix_tiers_parent", "parent_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "parent_id": self.parent_id,
            "name": self.name,
            "level": self.level,
            "display_order": self.display_order,
            "allow_child_creation": bool(self.allow_child_creation),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Tier {self.id}: {self.name} (parent={self.parent_id})>"


class TierField(db.Model):
    """Typed data slot defined on one tier. Never inherited by parents or children."""

    __tablename__ = "tier_fields"

    id = Column(Integer, primary_key=True)
    tier_id = Column(
        Integer, ForeignKey("tiers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_name = Column(String(255), nullable=False)
    field_type = Column(String(30), nullable=False, default="string")
    field_options = Column(Text, nullable=True)  # newline-delimited, dropdown only
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def options(self) -> list[str]:
        if not self.field_options:
            return []
        return [o.strip() for o in self.field_options.split("\n") if o.strip()]

    def to_dict(self):
        return {
            "id": self.id,
            "tier_id": self.tier_id,
            "field_name": self.field_name,
            "field_type": self.field_type,
            "field_options": self.field_options,
            "options": self.options,
            "display_order": self.display_order,
        }


class TierData(db.Model):
    """Stored value for one (tier, field) pair.

    Numeric fields use ``value``; every other type uses ``text_value``.
    The writer always NULLs the column the field type does not route to.
    """

    __tablename__ = "tier_data"

    id = Column(Integer, primary_key=True)
    tier_id = Column(
        Integer, ForeignKey("tiers.id", ondelete="CASCADE"), nullable=False
    )
    field_id = Column(
        Integer, ForeignKey("tier_fields.id", ondelete="CASCADE"), nullable=False
    )
    value = Column(Float, nullable=True)
    text_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("tier_id", "field_id", name="uq_tier_data_tier_field"),
        Index("ix_tier_data_field", "field_id"),
    )

    def to_dict(self):
        return {
            "field_id": self.field_id,
            "value": self.value,
            "text_value": self.text_value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
