"""
Allocation Overlap Calculator.

Maximum concurrent allocation percentage of a resource, computed with a
sweep line over start/end events.  A value above 100 means the resource is
over-allocated at some point in time.
"""

import logging
from collections import defaultdict

from portfolio.core.exceptions import NotFoundError
from portfolio.models import db
from portfolio.models.resource import (
    OVER_ALLOCATION_THRESHOLD,
    Resource,
    ResourceAllocation,
)
from portfolio.models.scenario import Scenario

logger = logging.getLogger(__name__)

# Sort rank at equal timestamps: ends are processed before starts, so an
# allocation ending on the day another begins does not overlap it.
_END = 0
_START = 1


def max_concurrent_allocation(allocations) -> int:
    """Peak sum of ``allocation_percentage`` over time.

    Only allocations with both ``start_date`` and ``end_date`` take part in
    the sweep.  When none has both, the plain sum of all percentages is
    returned.  An empty input yields 0.
    """
    allocations = list(allocations)
    events = []
    for alloc in allocations:
        if alloc.start_date is None or alloc.end_date is None:
            continue
        pct = alloc.allocation_percentage or 0
        events.append((alloc.start_date, _START, pct))
        events.append((alloc.end_date, _END, -pct))

    if not events:
        return sum(a.allocation_percentage or 0 for a in allocations)

    events.sort(key=lambda e: (e[0], e[1]))
    running = 0
    peak = 0
    for _when, _kind, delta in events:
        running += delta
        if running > peak:
            peak = running
    return peak


def is_over_allocated(percentage) -> bool:
    return percentage > OVER_ALLOCATION_THRESHOLD


def resource_allocation_overlaps(allocations) -> dict:
    """Group *allocations* by resource → {resource_id: max concurrent percentage}."""
    by_resource = defaultdict(list)
    for alloc in allocations:
        by_resource[alloc.resource_id].append(alloc)
    return {
        resource_id: max_concurrent_allocation(items)
        for resource_id, items in by_resource.items()
    }


def scoped_allocations(resource_id: int, scenario_id: int | None):
    """Active allocations of a resource in one scope (None = baseline rows).

    Rows of a soft-deleted scenario are never returned.
    """
    q = ResourceAllocation.query_active().filter(
        ResourceAllocation.resource_id == resource_id,
    )
    if scenario_id is None:
        return q.filter(ResourceAllocation.scenario_id.is_(None)).all()
    return (
        q.join(Scenario, Scenario.id == ResourceAllocation.scenario_id)
        .filter(
            ResourceAllocation.scenario_id == scenario_id,
            Scenario.is_active.is_(True),
        )
        .all()
    )


def scoped_overlap(resource_id: int, scenario_id: int | None) -> dict:
    """Overlap summary for one resource inside exactly one scope."""
    allocations = scoped_allocations(resource_id, scenario_id)
    peak = max_concurrent_allocation(allocations)
    over = is_over_allocated(peak)
    if over:
        logger.info(
            "Resource %s over-allocated at %d%%", resource_id, peak,
            extra={"scenario_id": scenario_id},
        )
    return {
        "resource_id": resource_id,
        "scenario_id": scenario_id,
        "max_concurrent_allocation": peak,
        "over_allocated": over,
        "allocation_count": len(allocations),
    }


def resource_overlap(resource_id: int, scenario_id: int | None = None) -> dict:
    """Overlap summary for one resource.

    Without *scenario_id* the resource's own scenario is used, so allocations
    that clones carry over to other scenarios never add to its peak.
    """
    resource = db.session.get(Resource, resource_id)
    if resource is None:
        raise NotFoundError(resource="Resource", resource_id=resource_id)
    if scenario_id is None:
        scenario_id = resource.scenario_id
    return scoped_overlap(resource_id, scenario_id)
