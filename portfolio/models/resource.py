"""
Portfolio Scenario Planner
Resource domain models: people, their capabilities and their allocations.

Models:
    - Resource: person who can be allocated (scenario-scoped)
    - ResourceCapability: declared skill (app/technology/role + proficiency)
    - ResourceAllocation: resource → project (optionally milestone) assignment

Allocation percentages are 0–100 per row; the sum across a resource may
exceed 100, which is exactly the over-allocation condition the overlap
calculator detects.
"""

from portfolio.models import db
from portfolio.models.soft_delete import ScenarioScopedMixin, SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

PROFICIENCY_LEVELS = ["Beginner", "Intermediate", "Advanced", "Expert"]

# Beginner < Intermediate < Advanced < Expert
PROFICIENCY_RANK = {level: rank for rank, level in enumerate(PROFICIENCY_LEVELS, start=1)}

ALLOCATION_TYPES = {"Shared", "Dedicated", "On-Demand"}

OVER_ALLOCATION_THRESHOLD = 100


class Resource(ScenarioScopedMixin, db.Model):
    __tablename__ = "resources"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.String(50), nullable=False)
    first_name = db.Column(db.String(100), default="")
    last_name = db.Column(db.String(100), default="")
    email = db.Column(db.String(200), default="")
    role = db.Column(db.String(100), default="")
    location = db.Column(db.String(100), default="")
    hourly_rate = db.Column(db.Float, nullable=True)

    capabilities = db.relationship(
        "ResourceCapability", backref="resource", lazy="dynamic",
    )

    @property
    def display_name(self):
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.employee_id

    def to_dict(self):
        result = {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "employee_id": self.employee_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "role": self.role,
            "location": self.location,
            "hourly_rate": self.hourly_rate,
            "is_active": self.is_active,
        }
        result.update(self._timestamps())
        return result

    def __repr__(self):
        return f"<Resource {self.id}: {self.display_name}>"


class ResourceCapability(SoftDeleteMixin, db.Model):
    """Declared skill of a resource; ``is_primary`` marks the main one."""

    __tablename__ = "resource_capabilities"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True,
    )
    app_id = db.Column(db.Integer, nullable=False)
    technology_id = db.Column(db.Integer, nullable=False)
    role_id = db.Column(db.Integer, nullable=False)
    proficiency_level = db.Column(db.String(20), nullable=False, default="Intermediate")
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    years_of_experience = db.Column(db.Integer, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "app_id": self.app_id,
            "technology_id": self.technology_id,
            "role_id": self.role_id,
            "proficiency_level": self.proficiency_level,
            "is_primary": self.is_primary,
            "years_of_experience": self.years_of_experience,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<ResourceCapability {self.id}: resource={self.resource_id}>"


class ResourceAllocation(ScenarioScopedMixin, db.Model):
    __tablename__ = "resource_allocations"
    __table_args__ = (
        db.Index("ix_alloc_resource_active", "resource_id", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True,
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True,
    )
    milestone_id = db.Column(db.Integer, db.ForeignKey("milestones.id"), nullable=True)
    resource_capability_id = db.Column(
        db.Integer, db.ForeignKey("resource_capabilities.id"), nullable=True,
    )
    project_requirement_id = db.Column(
        db.Integer, db.ForeignKey("project_requirements.id"), nullable=True,
    )

    allocation_type = db.Column(db.String(20), default="Shared")
    allocation_percentage = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    match_score = db.Column(db.Integer, nullable=True)
    role_on_project = db.Column(db.String(100), default="")

    def to_dict(self):
        result = {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "resource_id": self.resource_id,
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "resource_capability_id": self.resource_capability_id,
            "project_requirement_id": self.project_requirement_id,
            "allocation_type": self.allocation_type,
            "allocation_percentage": self.allocation_percentage,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "match_score": self.match_score,
            "role_on_project": self.role_on_project,
            "is_active": self.is_active,
        }
        result.update(self._timestamps())
        return result

    def __repr__(self):
        return (
            f"<ResourceAllocation {self.id}: resource={self.resource_id}"
            f" project={self.project_id} {self.allocation_percentage}%>"
        )
