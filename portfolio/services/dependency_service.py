"""
Project Dependency Service.

Dependencies are typed edges between scheduling anchors.  Each endpoint is
an ``EntityRef`` (kind, id, point) that must resolve to an active project or
milestone of the same scenario.

Functions:
    - resolve_entity_ref:  EntityRef → active row in a scenario, or None
    - create_dependency:   validate endpoints, reject self-links and duplicates
    - delete_dependency:   soft delete
    - list_dependencies:   active edges of a scenario
"""

import logging

from portfolio.core.exceptions import ConflictError, NotFoundError, ValidationError
from portfolio.models import db
from portfolio.models.audit import record_audit
from portfolio.models.project import (
    ANCHOR_POINTS,
    DEPENDENCY_TYPES,
    ENTITY_KINDS,
    KIND_MILESTONE,
    KIND_PROJECT,
    EntityRef,
    Milestone,
    Project,
    ProjectDependency,
)
from portfolio.services import cache_service, scenario_service

logger = logging.getLogger(__name__)

_MODEL_BY_KIND = {
    KIND_PROJECT: Project,
    KIND_MILESTONE: Milestone,
}


def resolve_entity_ref(ref: EntityRef, scenario_id):
    """Active project/milestone addressed by *ref* inside *scenario_id*, else None."""
    model = _MODEL_BY_KIND.get(ref.kind)
    if model is None:
        return None
    return model.in_scenario(scenario_id).filter(model.id == ref.id).first()


def _parse_ref(data: dict, side: str, default_point: str) -> EntityRef:
    """Read one endpoint from ``{side: {type, id, point}}`` or flat ``side_type`` keys."""
    nested = data.get(side)
    if isinstance(nested, dict):
        kind, ref_id, point = nested.get("type"), nested.get("id"), nested.get("point")
    else:
        kind = data.get(f"{side}_type")
        ref_id = data.get(f"{side}_id")
        point = data.get(f"{side}_point")
    point = point or default_point

    errors = {}
    if kind not in ENTITY_KINDS:
        errors[f"{side}.type"] = f"must be one of: {', '.join(sorted(ENTITY_KINDS))}"
    if point not in ANCHOR_POINTS:
        errors[f"{side}.point"] = f"must be one of: {', '.join(sorted(ANCHOR_POINTS))}"
    try:
        ref_id = int(ref_id)
    except (TypeError, ValueError):
        errors[f"{side}.id"] = "must be an integer"
    if errors:
        raise ValidationError(f"Invalid {side} reference", details=errors)
    return EntityRef(kind, ref_id, point)


def create_dependency(scenario_id: int, user, data: dict) -> ProjectDependency:
    """Create a dependency edge inside a planned scenario.

    Raises:
        ForbiddenError / InvalidStateError: user may not modify the scenario.
        ValidationError: bad kind/point/type, self-dependency, endpoint not found.
        ConflictError: an identical active edge already exists.
    """
    scenario = scenario_service.load_scenario(scenario_id)
    scenario_service.require_modifiable(scenario, user)

    predecessor = _parse_ref(data, "predecessor", "end")
    successor = _parse_ref(data, "successor", "start")

    dependency_type = data.get("dependency_type") or "FS"
    if dependency_type not in DEPENDENCY_TYPES:
        raise ValidationError(
            f"dependency_type must be one of: {', '.join(sorted(DEPENDENCY_TYPES))}",
            details={"dependency_type": dependency_type},
        )
    try:
        lag_days = int(data.get("lag_days") or 0)
    except (TypeError, ValueError):
        raise ValidationError("lag_days must be an integer", details={"lag_days": data.get("lag_days")})

    if (predecessor.kind, predecessor.id) == (successor.kind, successor.id):
        raise ValidationError("A project or milestone cannot depend on itself")

    for side, ref in (("predecessor", predecessor), ("successor", successor)):
        if resolve_entity_ref(ref, scenario.id) is None:
            raise ValidationError(
                f"{side.capitalize()} {ref.kind} {ref.id} not found in scenario {scenario.id}",
                details={side: ref.to_dict()},
            )

    duplicate = (
        ProjectDependency.in_scenario(scenario.id)
        .filter(
            ProjectDependency.predecessor_type == predecessor.kind,
            ProjectDependency.predecessor_id == predecessor.id,
            ProjectDependency.successor_type == successor.kind,
            ProjectDependency.successor_id == successor.id,
        )
        .first()
    )
    if duplicate is not None:
        raise ConflictError(
            "ProjectDependency", "edge",
            f"{predecessor.kind}:{predecessor.id}->{successor.kind}:{successor.id}",
        )

    dependency = ProjectDependency(
        scenario_id=scenario.id,
        predecessor_type=predecessor.kind,
        predecessor_id=predecessor.id,
        predecessor_point=predecessor.point,
        successor_type=successor.kind,
        successor_id=successor.id,
        successor_point=successor.point,
        dependency_type=dependency_type,
        lag_days=lag_days,
    )
    db.session.add(dependency)
    db.session.commit()
    record_audit(
        entity_type="dependency",
        entity_id=dependency.id,
        action="dependency.create",
        actor_user_id=user.id,
        scenario_id=scenario.id,
        diff=dependency.to_dict(),
    )
    cache_service.invalidate_scenario_risk(scenario.id)
    logger.info(
        "Dependency %s created in scenario %s by user %s", dependency.id, scenario.id, user.id,
        extra={"scenario_id": scenario.id, "actor_id": user.id, "event_type": "dependency.create"},
    )
    return dependency


def delete_dependency(dependency_id: int, user) -> None:
    dependency = db.session.get(ProjectDependency, dependency_id)
    if dependency is None or not dependency.is_active:
        raise NotFoundError(resource="ProjectDependency", resource_id=dependency_id)
    scenario_service.require_scope_modifiable(dependency.scenario_id, user)

    dependency.soft_delete()
    db.session.commit()
    record_audit(
        entity_type="dependency",
        entity_id=dependency.id,
        action="dependency.delete",
        actor_user_id=user.id,
        scenario_id=dependency.scenario_id,
    )
    cache_service.invalidate_scenario_risk(dependency.scenario_id)
    logger.info(
        "Dependency %s deleted by user %s", dependency.id, user.id,
        extra={
            "scenario_id": dependency.scenario_id,
            "actor_id": user.id,
            "event_type": "dependency.delete",
        },
    )


def list_dependencies(scenario_id: int, user) -> list[ProjectDependency]:
    scenario = scenario_service.get_scenario(scenario_id, user)
    return (
        ProjectDependency.in_scenario(scenario.id)
        .order_by(ProjectDependency.id)
        .all()
    )
