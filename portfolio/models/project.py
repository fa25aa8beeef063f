"""
Portfolio Scenario Planner
Project domain models: the scenario-scoped planning graph.

Models:
    - SegmentFunction: organisational grouping used for aggregate risk
    - Project: portfolio project (scenario-scoped, project number unique per scenario)
    - Milestone: project milestone (scenario-scoped)
    - ProjectDependency: typed edge between projects and/or milestones
    - ProjectRequirement: staffing requirement (app/technology/role + proficiency)

Dependency endpoints are polymorphic: each side is an ``EntityRef``
(kind, id, anchor point) rather than two nullable foreign keys.
"""

from dataclasses import dataclass

from portfolio.models import db
from portfolio.models.soft_delete import ScenarioScopedMixin, SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

KIND_PROJECT = "project"
KIND_MILESTONE = "milestone"
ENTITY_KINDS = {KIND_PROJECT, KIND_MILESTONE}

ANCHOR_POINTS = {"start", "end"}

DEPENDENCY_TYPES = {
    "FS",  # finish-to-start
    "SS",  # start-to-start
    "FF",  # finish-to-finish
    "SF",  # start-to-finish
}

HEALTH_STATUSES = {"Green", "Yellow", "Red"}

PROJECT_STATUSES = {
    "Planning", "Not Started", "In Progress", "On Hold", "Completed", "Cancelled",
}

PROJECT_NUMBER_PREFIX = "PROJ"


def format_project_number(counter: int) -> str:
    """PROJ-001, PROJ-002, ... (pads to three digits, grows beyond)."""
    return f"{PROJECT_NUMBER_PREFIX}-{counter:03d}"


@dataclass(frozen=True)
class EntityRef:
    """One endpoint of a dependency: ``{kind: project|milestone, id, point}``."""

    kind: str
    id: int
    point: str = "end"

    def to_dict(self):
        return {"type": self.kind, "id": self.id, "point": self.point}


# ═════════════════════════════════════════════════════════════════════════════
# SegmentFunction
# ═════════════════════════════════════════════════════════════════════════════


class SegmentFunction(SoftDeleteMixin, db.Model):
    """Organisational grouping of projects; the unit of aggregate risk."""

    __tablename__ = "segment_functions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<SegmentFunction {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# Project
# ═════════════════════════════════════════════════════════════════════════════


class Project(ScenarioScopedMixin, db.Model):
    """Portfolio project. ``project_number`` is unique within its scenario."""

    __tablename__ = "projects"
    __table_args__ = (
        db.UniqueConstraint(
            "scenario_id", "project_number", name="uq_project_scenario_number",
        ),
        db.Index("ix_projects_segment_scenario", "segment_function_id", "scenario_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_number = db.Column(db.String(30), nullable=True)
    segment_function_id = db.Column(
        db.Integer, db.ForeignKey("segment_functions.id"), nullable=True,
    )

    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(30), default="Planning")
    priority = db.Column(db.String(20), default="Medium")
    health_status = db.Column(
        db.String(10), default="Green", comment="Manual RAG; auto status overrides",
    )
    progress = db.Column(db.Integer, default=0)

    # Financials
    budget = db.Column(db.Float, nullable=True)
    actual_cost = db.Column(db.Float, nullable=True)
    forecasted_cost = db.Column(db.Float, nullable=True)

    # Schedule
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    desired_start_date = db.Column(db.Date, nullable=True)
    desired_completion_date = db.Column(db.Date, nullable=True)
    actual_start_date = db.Column(db.Date, nullable=True)
    actual_end_date = db.Column(db.Date, nullable=True)

    def to_dict(self):
        result = {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "project_number": self.project_number,
            "segment_function_id": self.segment_function_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "health_status": self.health_status,
            "progress": self.progress,
            "budget": self.budget,
            "actual_cost": self.actual_cost,
            "forecasted_cost": self.forecasted_cost,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "desired_start_date": (
                self.desired_start_date.isoformat() if self.desired_start_date else None
            ),
            "desired_completion_date": (
                self.desired_completion_date.isoformat()
                if self.desired_completion_date else None
            ),
            "actual_end_date": (
                self.actual_end_date.isoformat() if self.actual_end_date else None
            ),
            "is_active": self.is_active,
        }
        result.update(self._timestamps())
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.project_number} {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# Milestone
# ═════════════════════════════════════════════════════════════════════════════


class Milestone(ScenarioScopedMixin, db.Model):
    __tablename__ = "milestones"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    phase = db.Column(db.String(50), default="")
    status = db.Column(db.String(30), default="Not Started")
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)
    actual_end_date = db.Column(db.Date, nullable=True)

    def to_dict(self):
        result = {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "project_id": self.project_id,
            "name": self.name,
            "phase": self.phase,
            "status": self.status,
            "planned_start_date": (
                self.planned_start_date.isoformat() if self.planned_start_date else None
            ),
            "planned_end_date": (
                self.planned_end_date.isoformat() if self.planned_end_date else None
            ),
            "is_active": self.is_active,
        }
        result.update(self._timestamps())
        return result

    def __repr__(self):
        return f"<Milestone {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# ProjectDependency
# ═════════════════════════════════════════════════════════════════════════════


class ProjectDependency(ScenarioScopedMixin, db.Model):
    """
    Typed edge between two scheduling anchors.

    ``predecessor_type``/``successor_type`` say which table the matching id
    lives in; the ids are deliberately not foreign keys.
    """

    __tablename__ = "project_dependencies"
    __table_args__ = (
        db.Index("ix_dep_predecessor", "predecessor_type", "predecessor_id"),
        db.Index("ix_dep_successor", "successor_type", "successor_id"),
    )

    id = db.Column(db.Integer, primary_key=True)

    predecessor_type = db.Column(db.String(20), nullable=False, comment="project | milestone")
    predecessor_id = db.Column(db.Integer, nullable=False)
    predecessor_point = db.Column(db.String(10), nullable=False, default="end")

    successor_type = db.Column(db.String(20), nullable=False, comment="project | milestone")
    successor_id = db.Column(db.Integer, nullable=False)
    successor_point = db.Column(db.String(10), nullable=False, default="start")

    dependency_type = db.Column(db.String(5), nullable=False, default="FS")
    lag_days = db.Column(
        db.Integer, default=0, comment="Positive = delay, negative = lead",
    )

    @property
    def predecessor(self) -> EntityRef:
        return EntityRef(self.predecessor_type, self.predecessor_id, self.predecessor_point)

    @property
    def successor(self) -> EntityRef:
        return EntityRef(self.successor_type, self.successor_id, self.successor_point)

    def to_dict(self):
        result = {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "predecessor": self.predecessor.to_dict(),
            "successor": self.successor.to_dict(),
            "dependency_type": self.dependency_type,
            "lag_days": self.lag_days,
            "is_active": self.is_active,
        }
        result.update(self._timestamps())
        return result

    def __repr__(self):
        return (
            f"<ProjectDependency {self.id}: {self.predecessor_type}:{self.predecessor_id}"
            f" -{self.dependency_type}-> {self.successor_type}:{self.successor_id}>"
        )


# ═════════════════════════════════════════════════════════════════════════════
# ProjectRequirement
# ═════════════════════════════════════════════════════════════════════════════


class ProjectRequirement(SoftDeleteMixin, db.Model):
    """Staffing requirement of a project: (app, technology, role) + proficiency."""

    __tablename__ = "project_requirements"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True,
    )
    app_id = db.Column(db.Integer, nullable=False)
    technology_id = db.Column(db.Integer, nullable=False)
    role_id = db.Column(db.Integer, nullable=False)
    proficiency_level = db.Column(db.String(20), nullable=False, default="Intermediate")
    required_count = db.Column(db.Integer, nullable=False, default=1)
    fulfilled_count = db.Column(db.Integer, nullable=False, default=0)
    min_years_exp = db.Column(db.Integer, nullable=True)
    priority = db.Column(db.String(20), default="Medium")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "app_id": self.app_id,
            "technology_id": self.technology_id,
            "role_id": self.role_id,
            "proficiency_level": self.proficiency_level,
            "required_count": self.required_count,
            "fulfilled_count": self.fulfilled_count,
            "min_years_exp": self.min_years_exp,
            "priority": self.priority,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<ProjectRequirement {self.id}: project={self.project_id}>"
