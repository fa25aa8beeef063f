"""initial_scenario_engine

Create the scenario engine schema: users, segment functions, scenarios and
the scenario-scoped planning graph (projects, resources, milestones,
dependencies, requirements, capabilities, allocations) plus the audit log.

Revision ID: 5e1a9c3d7b20
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5e1a9c3d7b20"
down_revision = None
branch_labels = None
depends_on = None


def _scoped_columns():
    """scenario_id / is_active / timestamps shared by every scoped table."""
    return [
        sa.Column("scenario_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _scoped_indexes(table):
    op.create_index(f"ix_{table}_scenario_id", table, ["scenario_id"])
    op.create_index(f"ix_{table}_is_active", table, ["is_active"])


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=50), nullable=False, server_default="Viewer"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "segment_functions" not in existing_tables:
        op.create_table(
            "segment_functions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_segment_functions_is_active", "segment_functions", ["is_active"])

    if "scenarios" not in existing_tables:
        op.create_table(
            "scenarios",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="planned"),
            sa.Column("created_by", sa.Integer(), nullable=False),
            sa.Column("published_by", sa.Integer(), nullable=True),
            sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("parent_scenario_id", sa.Integer(), nullable=True),
            sa.Column("segment_function_id", sa.Integer(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
            sa.ForeignKeyConstraint(["published_by"], ["users.id"]),
            sa.ForeignKeyConstraint(["parent_scenario_id"], ["scenarios.id"]),
            sa.ForeignKeyConstraint(["segment_function_id"], ["segment_functions.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_scenarios_created_by", "scenarios", ["created_by"])
        op.create_index(
            "ix_scenarios_owner_status", "scenarios", ["created_by", "status", "is_active"],
        )

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            *_scoped_columns(),
            sa.Column("project_number", sa.String(length=30), nullable=True),
            sa.Column("segment_function_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=True),
            sa.Column("health_status", sa.String(length=10), nullable=True),
            sa.Column("progress", sa.Integer(), nullable=True),
            sa.Column("budget", sa.Float(), nullable=True),
            sa.Column("actual_cost", sa.Float(), nullable=True),
            sa.Column("forecasted_cost", sa.Float(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("desired_start_date", sa.Date(), nullable=True),
            sa.Column("desired_completion_date", sa.Date(), nullable=True),
            sa.Column("actual_start_date", sa.Date(), nullable=True),
            sa.Column("actual_end_date", sa.Date(), nullable=True),
            sa.ForeignKeyConstraint(["scenario_id"], ["scenarios.id"]),
            sa.ForeignKeyConstraint(["segment_function_id"], ["segment_functions.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("scenario_id", "project_number", name="uq_project_scenario_number"),
        )
        _scoped_indexes("projects")
        op.create_index(
            "ix_projects_segment_scenario", "projects", ["segment_function_id", "scenario_id"],
        )

    if "resources" not in existing_tables:
        op.create_table(
            "resources",
            sa.Column("id", sa.Integer(), nullable=False),
            *_scoped_columns(),
            sa.Column("employee_id", sa.String(length=50), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=100), nullable=True),
            sa.Column("location", sa.String(length=100), nullable=True),
            sa.Column("hourly_rate", sa.Float(), nullable=True),
            sa.ForeignKeyConstraint(["scenario_id"], ["scenarios.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        _scoped_indexes("resources")

    if "milestones" not in existing_tables:
        op.create_table(
            "milestones",
            sa.Column("id", sa.Integer(), nullable=False),
            *_scoped_columns(),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("phase", sa.String(length=50), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=True),
            sa.Column("planned_start_date", sa.Date(), nullable=True),
            sa.Column("planned_end_date", sa.Date(), nullable=True),
            sa.Column("actual_end_date", sa.Date(), nullable=True),
            sa.ForeignKeyConstraint(["scenario_id"], ["scenarios.id"]),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        _scoped_indexes("milestones")
        op.create_index("ix_milestones_project_id", "milestones", ["project_id"])

    if "project_dependencies" not in existing_tables:
        op.create_table(
            "project_dependencies",
            sa.Column("id", sa.Integer(), nullable=False),
            *_scoped_columns(),
            sa.Column("predecessor_type", sa.String(length=20), nullable=False),
            sa.Column("predecessor_id", sa.Integer(), nullable=False),
            sa.Column("predecessor_point", sa.String(length=10), nullable=False, server_default="end"),
            sa.Column("successor_type", sa.String(length=20), nullable=False),
            sa.Column("successor_id", sa.Integer(), nullable=False),
            sa.Column("successor_point", sa.String(length=10), nullable=False, server_default="start"),
            sa.Column("dependency_type", sa.String(length=5), nullable=False, server_default="FS"),
            sa.Column("lag_days", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["scenario_id"], ["scenarios.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        _scoped_indexes("project_dependencies")
        op.create_index(
            "ix_dep_predecessor", "project_dependencies", ["predecessor_type", "predecessor_id"],
        )
        op.create_index(
            "ix_dep_successor", "project_dependencies", ["successor_type", "successor_id"],
        )

    if "project_requirements" not in existing_tables:
        op.create_table(
            "project_requirements",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("app_id", sa.Integer(), nullable=False),
            sa.Column("technology_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("proficiency_level", sa.String(length=20), nullable=False),
            sa.Column("required_count", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("fulfilled_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("min_years_exp", sa.Integer(), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_requirements_project_id", "project_requirements", ["project_id"])
        op.create_index("ix_project_requirements_is_active", "project_requirements", ["is_active"])

    if "resource_capabilities" not in existing_tables:
        op.create_table(
            "resource_capabilities",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("app_id", sa.Integer(), nullable=False),
            sa.Column("technology_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("proficiency_level", sa.String(length=20), nullable=False),
            sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("years_of_experience", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.ForeignKeyConstraint(["resource_id"], ["resources.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_resource_capabilities_resource_id", "resource_capabilities", ["resource_id"])
        op.create_index("ix_resource_capabilities_is_active", "resource_capabilities", ["is_active"])

    if "resource_allocations" not in existing_tables:
        op.create_table(
            "resource_allocations",
            sa.Column("id", sa.Integer(), nullable=False),
            *_scoped_columns(),
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("milestone_id", sa.Integer(), nullable=True),
            sa.Column("resource_capability_id", sa.Integer(), nullable=True),
            sa.Column("project_requirement_id", sa.Integer(), nullable=True),
            sa.Column("allocation_type", sa.String(length=20), nullable=True),
            sa.Column("allocation_percentage", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("match_score", sa.Integer(), nullable=True),
            sa.Column("role_on_project", sa.String(length=100), nullable=True),
            sa.ForeignKeyConstraint(["scenario_id"], ["scenarios.id"]),
            sa.ForeignKeyConstraint(["resource_id"], ["resources.id"]),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.ForeignKeyConstraint(["milestone_id"], ["milestones.id"]),
            sa.ForeignKeyConstraint(["resource_capability_id"], ["resource_capabilities.id"]),
            sa.ForeignKeyConstraint(["project_requirement_id"], ["project_requirements.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        _scoped_indexes("resource_allocations")
        op.create_index("ix_resource_allocations_resource_id", "resource_allocations", ["resource_id"])
        op.create_index("ix_resource_allocations_project_id", "resource_allocations", ["project_id"])
        op.create_index("ix_alloc_resource_active", "resource_allocations", ["resource_id", "is_active"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("scenario_id", sa.Integer(), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_scenario", "audit_logs", ["scenario_id"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    for table in (
        "audit_logs",
        "resource_allocations",
        "resource_capabilities",
        "project_requirements",
        "project_dependencies",
        "milestones",
        "resources",
        "projects",
        "scenarios",
        "segment_functions",
        "users",
    ):
        op.drop_table(table)
