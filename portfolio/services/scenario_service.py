"""
Scenario Lifecycle Service.

Business logic for:
    - Permission checks:     can_view / can_modify (creator or elevated role)
    - Planned-scenario quota (advisory count check, SCENARIO_PLANNED_LIMIT)
    - Lifecycle transitions: planned → published (terminal), soft delete
    - CRUD operations:       create / get / list / update
    - Stats:                 active scoped-entity counts per scenario

Every successful mutation commits, then records a best-effort AuditLog row.
Services return model instances; blueprints serialise them.
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import and_, func, or_

from portfolio.core.exceptions import (
    AlreadyPublishedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from portfolio.models import db
from portfolio.models.audit import record_audit
from portfolio.models.project import Milestone, Project, ProjectDependency
from portfolio.models.resource import Resource, ResourceAllocation
from portfolio.models.scenario import (
    STATUS_PLANNED,
    STATUS_PUBLISHED,
    Scenario,
    validate_scenario_transition,
)
from portfolio.services import cache_service

logger = logging.getLogger(__name__)

DEFAULT_PLANNED_LIMIT = 2


# ── Permission checks ────────────────────────────────────────────────────────


def _is_owner_or_elevated(scenario: Scenario, user) -> bool:
    return user is not None and (scenario.created_by == user.id or user.is_elevated)


def can_view(scenario: Scenario, user) -> bool:
    """Published scenarios are visible to everyone; planned ones to owner and elevated roles."""
    return scenario.status == STATUS_PUBLISHED or _is_owner_or_elevated(scenario, user)


def can_modify(scenario: Scenario, user) -> bool:
    """Owner or elevated role, and only while the scenario is still planned."""
    return _is_owner_or_elevated(scenario, user) and scenario.status != STATUS_PUBLISHED


def require_modifiable(scenario: Scenario, user) -> None:
    """Raise the matching domain error when *user* may not edit *scenario*.

    Used by every service that mutates scoped entities.
    """
    if not _is_owner_or_elevated(scenario, user):
        raise ForbiddenError("You do not have permission to modify this scenario")
    if scenario.status == STATUS_PUBLISHED:
        raise InvalidStateError("Published scenarios cannot be modified")


def require_scope_modifiable(scenario_id, user):
    """Check edit rights on the scenario owning a scoped row.

    Baseline rows (no scenario) are editable by elevated roles only.
    Returns the Scenario, or None for baseline rows.
    """
    if scenario_id is None:
        if not user.is_elevated:
            raise ForbiddenError("Only administrators and domain managers can modify baseline data")
        return None
    scenario = load_scenario(scenario_id)
    require_modifiable(scenario, user)
    return scenario


# ── Quota ────────────────────────────────────────────────────────────────────


def planned_limit() -> int:
    return current_app.config.get("SCENARIO_PLANNED_LIMIT", DEFAULT_PLANNED_LIMIT)


def count_planned_scenarios(user_id: int) -> int:
    return (
        db.session.query(func.count(Scenario.id))
        .filter(
            Scenario.created_by == user_id,
            Scenario.status == STATUS_PLANNED,
            Scenario.is_active.is_(True),
        )
        .scalar()
    ) or 0


def check_planned_quota(user) -> None:
    """Raise QuotaExceededError when *user* already owns the maximum of planned scenarios.

    Count-then-create: two concurrent requests from one user may both pass.
    """
    limit = planned_limit()
    if count_planned_scenarios(user.id) >= limit:
        logger.info("Planned-scenario quota reached for user %s (limit=%d)", user.id, limit)
        raise QuotaExceededError(limit)


# ── Lookup ───────────────────────────────────────────────────────────────────


def load_scenario(scenario_id: int) -> Scenario:
    """Active scenario by id, without permission checks."""
    scenario = db.session.get(Scenario, scenario_id)
    if scenario is None or not scenario.is_active:
        raise NotFoundError(resource="Scenario", resource_id=scenario_id)
    return scenario


def get_scenario(scenario_id: int, user) -> Scenario:
    scenario = load_scenario(scenario_id)
    if not can_view(scenario, user):
        raise ForbiddenError("You do not have permission to view this scenario")
    return scenario


def list_scenarios(user) -> list[Scenario]:
    """Elevated users see every active scenario; others see published plus their own planned."""
    q = Scenario.query.filter(Scenario.is_active.is_(True))
    if not user.is_elevated:
        q = q.filter(
            or_(
                Scenario.status == STATUS_PUBLISHED,
                and_(Scenario.created_by == user.id, Scenario.status == STATUS_PLANNED),
            )
        )
    return q.order_by(Scenario.created_at.desc(), Scenario.id.desc()).all()


# ── Mutations ────────────────────────────────────────────────────────────────


def _clean_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Scenario name is required", details={"name": "required"})
    return name[:200]


def create_scenario(
    user,
    name: str,
    description: str = "",
    *,
    segment_function_id: int | None = None,
    metadata: dict | None = None,
) -> Scenario:
    """Create a new planned scenario owned by *user*.

    Raises:
        ValidationError: blank name.
        QuotaExceededError: user already owns the maximum of planned scenarios.
    """
    name = _clean_name(name)
    check_planned_quota(user)

    scenario = Scenario(
        name=name,
        description=description or "",
        status=STATUS_PLANNED,
        created_by=user.id,
        segment_function_id=segment_function_id,
        metadata_json=metadata,
        is_active=True,
    )
    db.session.add(scenario)
    db.session.commit()
    record_audit(
        entity_type="scenario",
        entity_id=scenario.id,
        action="scenario.create",
        actor_user_id=user.id,
        scenario_id=scenario.id,
        diff={"name": name},
    )
    logger.info(
        "Scenario %s created by user %s", scenario.id, user.id,
        extra={"scenario_id": scenario.id, "actor_id": user.id, "event_type": "scenario.create"},
    )
    return scenario


def update_scenario(scenario_id: int, user, data: dict) -> Scenario:
    """Update name / description / metadata of a planned scenario."""
    scenario = load_scenario(scenario_id)
    require_modifiable(scenario, user)

    changes = {}
    if "name" in data:
        name = _clean_name(data.get("name"))
        if name != scenario.name:
            changes["name"] = {"old": scenario.name, "new": name}
            scenario.name = name
    if "description" in data:
        description = data.get("description") or ""
        if description != scenario.description:
            changes["description"] = {"old": scenario.description, "new": description}
            scenario.description = description
    if "metadata" in data:
        changes["metadata"] = {"old": scenario.metadata_json, "new": data.get("metadata")}
        scenario.metadata_json = data.get("metadata")

    if changes:
        scenario.updated_at = datetime.now(timezone.utc)
    db.session.commit()
    if changes:
        record_audit(
            entity_type="scenario",
            entity_id=scenario.id,
            action="scenario.update",
            actor_user_id=user.id,
            scenario_id=scenario.id,
            diff=changes,
        )
        logger.info(
            "Scenario %s updated by user %s (%s)", scenario.id, user.id, ", ".join(changes),
            extra={"scenario_id": scenario.id, "actor_id": user.id, "event_type": "scenario.update"},
        )
    return scenario


def publish_scenario(scenario_id: int, user) -> Scenario:
    """Publish a planned scenario.  Terminal: nothing returns it to planned.

    Raises:
        ForbiddenError: user is not Administrator / Domain Manager.
        AlreadyPublishedError: scenario is already published.
    """
    scenario = load_scenario(scenario_id)
    if not user.is_elevated:
        raise ForbiddenError("Only administrators and domain managers can publish scenarios")
    if scenario.status == STATUS_PUBLISHED:
        raise AlreadyPublishedError("Scenario is already published")
    if not validate_scenario_transition(scenario.status, STATUS_PUBLISHED):
        raise InvalidStateError(
            f"Invalid transition: {scenario.status} → {STATUS_PUBLISHED}"
        )

    old = scenario.status
    scenario.status = STATUS_PUBLISHED
    scenario.published_by = user.id
    scenario.published_at = datetime.now(timezone.utc)
    db.session.commit()
    record_audit(
        entity_type="scenario",
        entity_id=scenario.id,
        action="scenario.publish",
        actor_user_id=user.id,
        scenario_id=scenario.id,
        diff={"status": {"old": old, "new": STATUS_PUBLISHED}},
    )
    logger.info(
        "Scenario %s published by user %s", scenario.id, user.id,
        extra={"scenario_id": scenario.id, "actor_id": user.id, "event_type": "scenario.publish"},
    )
    return scenario


def delete_scenario(scenario_id: int, user) -> None:
    """Soft-delete a planned scenario.

    Scoped rows under the scenario are not touched; they simply become
    unreachable through queries that filter on an active scenario.

    Raises:
        ForbiddenError: user is neither creator nor elevated.
        InvalidStateError: scenario is published.
    """
    scenario = load_scenario(scenario_id)
    if not _is_owner_or_elevated(scenario, user):
        raise ForbiddenError("You do not have permission to delete this scenario")
    if scenario.status == STATUS_PUBLISHED:
        raise InvalidStateError("Published scenarios cannot be deleted")

    scenario.is_active = False
    db.session.commit()
    cache_service.invalidate_scenario_risk(scenario.id)
    record_audit(
        entity_type="scenario",
        entity_id=scenario.id,
        action="scenario.delete",
        actor_user_id=user.id,
        scenario_id=scenario.id,
    )
    logger.info(
        "Scenario %s deleted by user %s", scenario.id, user.id,
        extra={"scenario_id": scenario.id, "actor_id": user.id, "event_type": "scenario.delete"},
    )


# ── Stats ────────────────────────────────────────────────────────────────────


def scenario_stats(scenario_id: int, user) -> dict:
    scenario = get_scenario(scenario_id, user)
    return {
        "scenario_id": scenario.id,
        "scenario_name": scenario.name,
        "status": scenario.status,
        "project_count": Project.in_scenario(scenario.id).count(),
        "resource_count": Resource.in_scenario(scenario.id).count(),
        "milestone_count": Milestone.in_scenario(scenario.id).count(),
        "dependency_count": ProjectDependency.in_scenario(scenario.id).count(),
        "allocation_count": ResourceAllocation.in_scenario(scenario.id).count(),
    }
