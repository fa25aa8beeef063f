"""
Scenario Clone Engine.

Deep-copies the active scoped-entity graph of a scenario into a brand new
planned scenario, in dependency order:

    Project → Resource → Milestone → ProjectDependency → ResourceAllocation

Every copy gets a fresh id; references are re-resolved through an ``IdMap``
keyed by (entity kind, old id) that is filled as each type is copied.
Dependency endpoints are resolved through the map of their *declared* kind.
Allocations keep their resource id (resources are shared, not remapped).

The whole clone runs in one transaction: rows are flushed to obtain ids and
committed once at the end.  Any failure rolls back every write and the
original exception propagates, so a partial clone is never visible.

Unmapped references keep the original id unless CLONE_STRICT_REFERENCES is
set, in which case the clone fails with ValidationError.
"""

import logging
import re
from collections import defaultdict

from flask import current_app
from sqlalchemy import inspect

from portfolio.core.exceptions import ForbiddenError, ValidationError
from portfolio.models import db
from portfolio.models.audit import write_audit
from portfolio.models.project import (
    KIND_MILESTONE,
    KIND_PROJECT,
    PROJECT_NUMBER_PREFIX,
    Milestone,
    Project,
    ProjectDependency,
    format_project_number,
)
from portfolio.models.resource import Resource, ResourceAllocation
from portfolio.models.scenario import STATUS_PLANNED, Scenario
from portfolio.services import scenario_service

logger = logging.getLogger(__name__)

KIND_RESOURCE = "resource"
KIND_DEPENDENCY = "dependency"
KIND_ALLOCATION = "allocation"

# Columns never carried over to a copy
_SKIP_COLUMNS = frozenset({"id", "scenario_id", "created_at", "updated_at"})

_PROJECT_NUMBER_RE = re.compile(rf"^{PROJECT_NUMBER_PREFIX}-(\d+)$")


class IdMap:
    """Per-kind old id → new id arena, filled incrementally during a clone."""

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.fallbacks = 0
        self._maps = defaultdict(dict)

    def add(self, kind: str, old_id: int, new_id: int) -> None:
        self._maps[kind][old_id] = new_id

    def get(self, kind: str, old_id: int):
        return self._maps[kind].get(old_id)

    def count(self, kind: str) -> int:
        return len(self._maps[kind])

    def resolve(self, kind: str, old_id, *, owner: str):
        """Map *old_id* of *kind*; None passes through.

        *owner* names the referencing field for log and error messages.
        """
        if old_id is None:
            return None
        new_id = self._maps[kind].get(old_id)
        if new_id is not None:
            return new_id
        if self.strict:
            raise ValidationError(
                f"Cannot clone {owner}: {kind} {old_id} is not part of the source scenario",
                details={"field": owner, "kind": kind, "id": old_id},
            )
        self.fallbacks += 1
        logger.warning("Clone fallback: %s keeps unmapped %s id %s", owner, kind, old_id)
        return old_id


# ── Helpers ──────────────────────────────────────────────────────────────────


def _column_values(row) -> dict:
    """Mapped column attributes of *row*, minus identity/scope/timestamps."""
    return {
        attr.key: getattr(row, attr.key)
        for attr in inspect(type(row)).column_attrs
        if attr.key not in _SKIP_COLUMNS
    }


def _copy_rows(model, source_scenario_id, new_scenario_id, id_map, kind, rewrite=None):
    """Copy every active *model* row of the source scenario; record ids under *kind*."""
    originals = (
        model.in_scenario(source_scenario_id).order_by(model.id).all()
    )
    copies = []
    for original in originals:
        values = _column_values(original)
        if rewrite is not None:
            values.update(rewrite(original))
        copies.append(model(scenario_id=new_scenario_id, **values))
    db.session.add_all(copies)
    db.session.flush()
    for original, copy in zip(originals, copies):
        id_map.add(kind, original.id, copy.id)
    return len(copies)


def next_project_counter(scenario_id: int) -> int:
    """Highest numeric PROJ-nnn suffix already used in *scenario_id*."""
    numbers = (
        db.session.query(Project.project_number)
        .filter(Project.scenario_id == scenario_id)
        .all()
    )
    highest = 0
    for (number,) in numbers:
        match = _PROJECT_NUMBER_RE.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


# ── Clone ────────────────────────────────────────────────────────────────────


def clone_scenario(
    source_id: int,
    user,
    name: str | None = None,
    description: str | None = None,
) -> Scenario:
    """Clone *source_id* into a new planned scenario owned by *user*.

    Raises:
        NotFoundError: source missing or inactive.
        QuotaExceededError: user already owns the maximum of planned scenarios.
        ForbiddenError: user may not view the source.
        ValidationError: strict mode and an unmapped reference.
    """
    source = scenario_service.load_scenario(source_id)
    scenario_service.check_planned_quota(user)
    if not scenario_service.can_view(source, user):
        raise ForbiddenError("You do not have permission to clone this scenario")

    new_name = (name or "").strip() or f"{source.name} (Copy)"
    strict = bool(current_app.config.get("CLONE_STRICT_REFERENCES", False))
    id_map = IdMap(strict=strict)

    try:
        target = Scenario(
            name=new_name[:200],
            description=description if description is not None else source.description,
            status=STATUS_PLANNED,
            created_by=user.id,
            parent_scenario_id=source.id,
            segment_function_id=source.segment_function_id,
            metadata_json=source.metadata_json,
            is_active=True,
        )
        db.session.add(target)
        db.session.flush()

        counter = next_project_counter(target.id)

        def _project_number(_original):
            nonlocal counter
            counter += 1
            return {"project_number": format_project_number(counter)}

        _copy_rows(Project, source.id, target.id, id_map, KIND_PROJECT, _project_number)
        _copy_rows(Resource, source.id, target.id, id_map, KIND_RESOURCE)
        _copy_rows(
            Milestone, source.id, target.id, id_map, KIND_MILESTONE,
            lambda m: {
                "project_id": id_map.resolve(
                    KIND_PROJECT, m.project_id, owner=f"milestone {m.id} project_id",
                ),
            },
        )
        _copy_rows(
            ProjectDependency, source.id, target.id, id_map, KIND_DEPENDENCY,
            lambda d: {
                "predecessor_id": id_map.resolve(
                    d.predecessor_type, d.predecessor_id,
                    owner=f"dependency {d.id} predecessor",
                ),
                "successor_id": id_map.resolve(
                    d.successor_type, d.successor_id,
                    owner=f"dependency {d.id} successor",
                ),
            },
        )
        _copy_rows(
            ResourceAllocation, source.id, target.id, id_map, KIND_ALLOCATION,
            lambda a: {
                "project_id": id_map.resolve(
                    KIND_PROJECT, a.project_id, owner=f"allocation {a.id} project_id",
                ),
                "milestone_id": id_map.resolve(
                    KIND_MILESTONE, a.milestone_id, owner=f"allocation {a.id} milestone_id",
                ),
            },
        )

        summary = {
            "source_scenario_id": source.id,
            "projects": id_map.count(KIND_PROJECT),
            "resources": id_map.count(KIND_RESOURCE),
            "milestones": id_map.count(KIND_MILESTONE),
            "dependencies": id_map.count(KIND_DEPENDENCY),
            "allocations": id_map.count(KIND_ALLOCATION),
            "fallback_references": id_map.fallbacks,
        }
        write_audit(
            entity_type="scenario",
            entity_id=target.id,
            action="scenario.clone",
            actor_user_id=user.id,
            scenario_id=target.id,
            diff=summary,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Clone of scenario %s by user %s failed; rolled back", source_id, user.id)
        raise

    logger.info(
        "Scenario %s cloned into %s (%d projects, %d fallbacks)",
        source_id, target.id, summary["projects"], summary["fallback_references"],
        extra={"scenario_id": target.id, "actor_id": user.id, "event_type": "scenario.clone"},
    )
    return target
