"""
Resource Allocation Service.

Create / update / soft-delete allocations of a resource to a project
(optionally a milestone).  Each mutation:
    - requires edit rights on the owning scenario
    - recomputes the capability/requirement match score when both links are set
    - recomputes the resource's max concurrent allocation (over-allocation flag)
    - invalidates cached segment risk for the scenario

Allocations live in the scenario of their project.  The resource may belong
to another scenario: cloned allocations keep pointing at the source resource.
"""

import logging

from portfolio.core.exceptions import NotFoundError, ValidationError
from portfolio.models import db
from portfolio.models.audit import record_audit
from portfolio.models.project import Milestone, Project, ProjectRequirement
from portfolio.models.resource import (
    ALLOCATION_TYPES,
    Resource,
    ResourceAllocation,
    ResourceCapability,
)
from portfolio.services import cache_service, scenario_service
from portfolio.services.allocation_overlap import scoped_overlap
from portfolio.services.resource_matcher import match_score
from portfolio.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

_UPDATABLE = (
    "allocation_percentage",
    "allocation_type",
    "start_date",
    "end_date",
    "milestone_id",
    "resource_capability_id",
    "project_requirement_id",
    "role_on_project",
)


# ── Validation helpers ───────────────────────────────────────────────────────


def _active_or_404(model, pk, label):
    row = db.session.get(model, pk) if pk is not None else None
    if row is None or not row.is_active:
        raise NotFoundError(resource=label, resource_id=pk)
    return row


def _optional_int(data, key):
    value = data.get(key)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer", details={key: value})


def _percentage(value) -> int:
    try:
        pct = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "allocation_percentage must be an integer",
            details={"allocation_percentage": value},
        )
    if not 0 <= pct <= 100:
        raise ValidationError(
            "allocation_percentage must be between 0 and 100",
            details={"allocation_percentage": pct},
        )
    return pct


def _dates(start_raw, end_raw):
    try:
        start = parse_date_input(start_raw)
        end = parse_date_input(end_raw)
    except ValueError as exc:
        raise ValidationError(str(exc))
    if start and end and start > end:
        raise ValidationError(
            "start_date must not be after end_date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    return start, end


def _check_milestone(milestone_id, project):
    if milestone_id is None:
        return
    milestone = _active_or_404(Milestone, milestone_id, "Milestone")
    if milestone.project_id != project.id:
        raise ValidationError(
            f"Milestone {milestone_id} does not belong to project {project.id}",
            details={"milestone_id": milestone_id},
        )


def _compute_match_score(allocation):
    """Match score from the linked capability and requirement, else None."""
    if allocation.resource_capability_id is None or allocation.project_requirement_id is None:
        return None
    capability = _active_or_404(
        ResourceCapability, allocation.resource_capability_id, "ResourceCapability",
    )
    requirement = _active_or_404(
        ProjectRequirement, allocation.project_requirement_id, "ProjectRequirement",
    )
    if capability.resource_id != allocation.resource_id:
        raise ValidationError(
            "Capability does not belong to the allocated resource",
            details={"resource_capability_id": capability.id},
        )
    if requirement.project_id != allocation.project_id:
        raise ValidationError(
            "Requirement does not belong to the allocated project",
            details={"project_requirement_id": requirement.id},
        )
    return match_score(capability, requirement)


def _allocation_type(value):
    value = value or "Shared"
    if value not in ALLOCATION_TYPES:
        raise ValidationError(
            f"allocation_type must be one of: {', '.join(sorted(ALLOCATION_TYPES))}",
            details={"allocation_type": value},
        )
    return value


def _after_change(allocation, user, action) -> dict:
    logger.info(
        "%s: allocation %s by user %s (resource %s)",
        action, allocation.id, user.id, allocation.resource_id,
        extra={"scenario_id": allocation.scenario_id, "actor_id": user.id, "event_type": action},
    )
    cache_service.invalidate_scenario_risk(allocation.scenario_id)
    return scoped_overlap(allocation.resource_id, allocation.scenario_id)


# ── CRUD ─────────────────────────────────────────────────────────────────────


def create_allocation(user, data: dict):
    """Create an allocation.  Returns ``(allocation, overlap)``.

    Raises:
        NotFoundError: project / resource / milestone / links missing.
        ForbiddenError / InvalidStateError: user may not modify the scenario.
        ValidationError: bad percentage, dates, type or link ownership.
    """
    project = _active_or_404(Project, _optional_int(data, "project_id"), "Project")
    resource = _active_or_404(Resource, _optional_int(data, "resource_id"), "Resource")
    scenario_service.require_scope_modifiable(project.scenario_id, user)

    milestone_id = _optional_int(data, "milestone_id")
    _check_milestone(milestone_id, project)
    start, end = _dates(data.get("start_date"), data.get("end_date"))

    allocation = ResourceAllocation(
        scenario_id=project.scenario_id,
        resource_id=resource.id,
        project_id=project.id,
        milestone_id=milestone_id,
        resource_capability_id=_optional_int(data, "resource_capability_id"),
        project_requirement_id=_optional_int(data, "project_requirement_id"),
        allocation_type=_allocation_type(data.get("allocation_type")),
        allocation_percentage=_percentage(data.get("allocation_percentage", 0)),
        start_date=start,
        end_date=end,
        role_on_project=(data.get("role_on_project") or "")[:100],
    )
    allocation.match_score = _compute_match_score(allocation)

    db.session.add(allocation)
    db.session.commit()
    record_audit(
        entity_type="allocation",
        entity_id=allocation.id,
        action="allocation.create",
        actor_user_id=user.id,
        scenario_id=allocation.scenario_id,
        diff=allocation.to_dict(),
    )
    return allocation, _after_change(allocation, user, "allocation.create")


def update_allocation(allocation_id: int, user, data: dict):
    """Update an allocation.  Returns ``(allocation, overlap)``."""
    allocation = _active_or_404(ResourceAllocation, allocation_id, "ResourceAllocation")
    scenario_service.require_scope_modifiable(allocation.scenario_id, user)
    before = allocation.to_dict()

    # Validate everything before touching the row
    changes = {}
    if "allocation_percentage" in data:
        changes["allocation_percentage"] = _percentage(data["allocation_percentage"])
    if "allocation_type" in data:
        changes["allocation_type"] = _allocation_type(data["allocation_type"])
    if "role_on_project" in data:
        changes["role_on_project"] = (data.get("role_on_project") or "")[:100]
    if "start_date" in data or "end_date" in data:
        start_raw = data["start_date"] if "start_date" in data else allocation.start_date
        end_raw = data["end_date"] if "end_date" in data else allocation.end_date
        changes["start_date"], changes["end_date"] = _dates(start_raw, end_raw)
    if "milestone_id" in data:
        milestone_id = _optional_int(data, "milestone_id")
        _check_milestone(milestone_id, db.session.get(Project, allocation.project_id))
        changes["milestone_id"] = milestone_id
    for key in ("resource_capability_id", "project_requirement_id"):
        if key in data:
            changes[key] = _optional_int(data, key)

    if "resource_capability_id" in changes or "project_requirement_id" in changes:
        try:
            for key in ("resource_capability_id", "project_requirement_id"):
                if key in changes:
                    setattr(allocation, key, changes[key])
            changes["match_score"] = _compute_match_score(allocation)
        except Exception:
            db.session.rollback()
            raise

    for key, value in changes.items():
        setattr(allocation, key, value)

    after = allocation.to_dict()
    diff = {
        key: {"old": before[key], "new": after[key]}
        for key in _UPDATABLE + ("match_score",)
        if before[key] != after[key]
    }
    db.session.commit()
    record_audit(
        entity_type="allocation",
        entity_id=allocation.id,
        action="allocation.update",
        actor_user_id=user.id,
        scenario_id=allocation.scenario_id,
        diff=diff,
    )
    return allocation, _after_change(allocation, user, "allocation.update")


def delete_allocation(allocation_id: int, user) -> dict:
    """Soft-delete an allocation.  Returns the resource's recomputed overlap."""
    allocation = _active_or_404(ResourceAllocation, allocation_id, "ResourceAllocation")
    scenario_service.require_scope_modifiable(allocation.scenario_id, user)

    allocation.soft_delete()
    db.session.commit()
    record_audit(
        entity_type="allocation",
        entity_id=allocation.id,
        action="allocation.delete",
        actor_user_id=user.id,
        scenario_id=allocation.scenario_id,
    )
    return _after_change(allocation, user, "allocation.delete")
