"""
Soft delete + scenario scoping mixins.

Scoped entities are never hard-deleted: an ``is_active`` flag is cleared
instead, so historical scenario snapshots stay queryable. Every scoped row
belongs to exactly one scenario through ``scenario_id`` (NULL only for
legacy/baseline rows).

Usage:
    class Project(ScenarioScopedMixin, db.Model):
        ...

    # Soft delete
    obj.soft_delete()
    db.session.commit()

    # Query only active records
    Project.query_active().all()

    # Active records of one scenario
    Project.in_scenario(scenario_id).all()
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr

from portfolio.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class SoftDeleteMixin:
    """Mixin that adds active-flag soft delete support to any model."""

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.is_active = False

    def restore(self):
        """Restore a soft-deleted record."""
        self.is_active = True

    @property
    def is_deleted(self):
        return not self.is_active

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.is_active.is_(True))

    @classmethod
    def query_deleted(cls):
        """Return only soft-deleted records."""
        return cls.query.filter(cls.is_active.is_(False))


class ScenarioScopedMixin(SoftDeleteMixin):
    """Soft delete plus ownership by a scenario and audit timestamps."""

    @declared_attr
    def scenario_id(cls):
        return db.Column(
            db.Integer,
            db.ForeignKey("scenarios.id"),
            nullable=True,
            index=True,
            comment="Owning scenario; NULL for legacy baseline rows",
        )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    @classmethod
    def in_scenario(cls, scenario_id):
        """Active rows owned by *scenario_id*."""
        return cls.query_active().filter(cls.scenario_id == scenario_id)

    def _timestamps(self):
        return {
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
