"""
Portfolio Scenario Planner
Scenario domain model: what-if planning snapshots.

Models:
    - Scenario: named, isolated copy of the planning graph (projects,
      resources, milestones, dependencies, allocations). Cloned from a
      parent, edited while ``planned``, eventually ``published`` as the
      scenario of record.
"""

from datetime import datetime, timezone

from portfolio.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_PLANNED = "planned"
STATUS_PUBLISHED = "published"

SCENARIO_STATUSES = {STATUS_PLANNED, STATUS_PUBLISHED}

# published is terminal; delete is a side exit handled by the service.
SCENARIO_TRANSITIONS = {
    STATUS_PLANNED:   [STATUS_PUBLISHED],
    STATUS_PUBLISHED: [],
}


def validate_scenario_transition(old_status, new_status):
    """Return True if the Scenario status transition is valid."""
    return new_status in SCENARIO_TRANSITIONS.get(old_status, [])


class Scenario(db.Model):
    """
    What-if planning snapshot.

    Lineage is single-level: ``parent_scenario_id`` points at the scenario
    this one was cloned from, nothing more. Deleting only clears
    ``is_active``; scoped rows under the scenario are left untouched.
    """

    __tablename__ = "scenarios"
    __table_args__ = (
        db.Index("ix_scenarios_owner_status", "created_by", "status", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")

    status = db.Column(
        db.String(20), nullable=False, default=STATUS_PLANNED,
        comment="planned | published",
    )

    # Ownership & publication
    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True,
    )
    published_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)

    parent_scenario_id = db.Column(
        db.Integer, db.ForeignKey("scenarios.id"), nullable=True,
        comment="Scenario this one was cloned from",
    )
    segment_function_id = db.Column(
        db.Integer, db.ForeignKey("segment_functions.id"), nullable=True,
    )
    metadata_json = db.Column("metadata", db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships
    creator = db.relationship("User", foreign_keys=[created_by])
    publisher = db.relationship("User", foreign_keys=[published_by])

    @property
    def is_published(self):
        return self.status == STATUS_PUBLISHED

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "created_by": self.created_by,
            "creator": self.creator.to_dict() if self.creator else None,
            "published_by": self.published_by,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "parent_scenario_id": self.parent_scenario_id,
            "segment_function_id": self.segment_function_id,
            "metadata": self.metadata_json,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Scenario {self.id}: {self.name} ({self.status})>"
