"""
Risk Scoring Engine.

Per-project risk (0–100) is the sum of six capped subscores:

    health      15   auto health status Red → 15, Yellow → 8
    budget      20   cost variance >30% → 15, >15% → 10, >5% → 5
    schedule    20   delay >90d → 15, >30d → 10, >7d → 5
    resource    20   allocations/requirements <60% → 15, <80% → 10, <90% → 5
    dependency  15   incoming deps >5 → 12, >3 → 8, >1 → 4
    complexity  10   budget >10M → 7 / >5M → 4, duration >365d → +3 / >180d → +2

Segment-function risk recomputes six aggregate subscores from population
statistics (caps 25/25/20/15/15/15) instead of averaging project scores.

The scoring functions are pure: they take already-loaded projects and count
maps and never raise for missing data.  The loaders at the bottom fetch the
counts and cache segment results.
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func

from portfolio.core.exceptions import NotFoundError
from portfolio.models import db
from portfolio.models.project import (
    KIND_PROJECT,
    Project,
    ProjectDependency,
    ProjectRequirement,
)
from portfolio.models.resource import ResourceAllocation
from portfolio.models.scenario import Scenario
from portfolio.services import cache_service

logger = logging.getLogger(__name__)

HEALTH_GREEN = "Green"
HEALTH_YELLOW = "Yellow"
HEALTH_RED = "Red"

RISK_LOW = "Low"
RISK_MEDIUM = "Medium"
RISK_HIGH = "High"

AGGREGATE_CAPS = {
    "budget_risk": 25,
    "schedule_risk": 25,
    "resource_risk": 20,
    "dependency_risk": 15,
    "complexity_risk": 15,
    "health_risk": 15,
}

NO_PROJECTS = "No projects to assess"

LOW_PROGRESS_PCT = 10


def _today():
    return datetime.now(timezone.utc).date()


def risk_level(score) -> str:
    if score < 30:
        return RISK_LOW
    if score < 60:
        return RISK_MEDIUM
    return RISK_HIGH


# ── Project signals ──────────────────────────────────────────────────────────


def _budget(project) -> float:
    return float(project.budget or 0)


def cost_to_compare(project) -> float:
    """Higher of actual cost and forecast (forecast defaults to budget)."""
    budget = _budget(project)
    actual = float(project.actual_cost or 0)
    forecast = float(project.forecasted_cost or budget)
    return max(actual, forecast)


def budget_variance_pct(project):
    """Cost variance in percent of budget, or None without a budget."""
    budget = _budget(project)
    if budget <= 0:
        return None
    return (cost_to_compare(project) - budget) / budget * 100


def schedule_delay_days(project, today=None) -> int:
    """Days the project runs past its planned completion; 0 when on time.

    Planned end is the desired completion date, else the end date.  Actual
    end is the later of actual end and end date, else today for open projects.
    """
    planned_end = project.desired_completion_date or project.end_date
    if planned_end is None:
        return 0
    if project.actual_end_date and project.end_date:
        actual_end = max(project.actual_end_date, project.end_date)
    else:
        actual_end = project.actual_end_date or project.end_date or (today or _today())
    if actual_end <= planned_end:
        return 0
    return (actual_end - planned_end).days


def desired_duration_days(project):
    if project.desired_start_date and project.desired_completion_date:
        return (project.desired_completion_date - project.desired_start_date).days
    return None


def _low_progress(project) -> bool:
    return project.status == "In Progress" and (project.progress or 0) < LOW_PROGRESS_PCT


def auto_health_status(project, today=None) -> str:
    """Red on critical signals, Yellow on warnings, else the manual status.

    Critical: cost variance >50% or delay >90 days.  Warning: variance >20%,
    delay >30 days, or an "In Progress" project below 10% progress.
    """
    variance = budget_variance_pct(project)
    delay = schedule_delay_days(project, today)
    if (variance is not None and variance > 50) or delay > 90:
        return HEALTH_RED
    if (variance is not None and variance > 20) or delay > 30 or _low_progress(project):
        return HEALTH_YELLOW
    return project.health_status or HEALTH_GREEN


# ── Per-project score ────────────────────────────────────────────────────────


def project_risk_components(
    project,
    *,
    requirement_count: int = 0,
    allocation_count: int = 0,
    incoming_dependencies: int = 0,
    today=None,
) -> dict:
    health = auto_health_status(project, today)
    health_score = {HEALTH_RED: 15, HEALTH_YELLOW: 8}.get(health, 0)

    budget_score = 0
    variance = budget_variance_pct(project)
    if variance is not None:
        if variance > 30:
            budget_score = 15
        elif variance > 15:
            budget_score = 10
        elif variance > 5:
            budget_score = 5

    schedule_score = 0
    delay = schedule_delay_days(project, today)
    if delay > 90:
        schedule_score = 15
    elif delay > 30:
        schedule_score = 10
    elif delay > 7:
        schedule_score = 5

    resource_score = 0
    if requirement_count > 0:
        rate = allocation_count / requirement_count * 100
        if rate < 60:
            resource_score = 15
        elif rate < 80:
            resource_score = 10
        elif rate < 90:
            resource_score = 5

    dependency_score = 0
    if incoming_dependencies > 5:
        dependency_score = 12
    elif incoming_dependencies > 3:
        dependency_score = 8
    elif incoming_dependencies > 1:
        dependency_score = 4

    complexity_score = 0
    budget = _budget(project)
    if budget > 10_000_000:
        complexity_score += 7
    elif budget > 5_000_000:
        complexity_score += 4
    duration = desired_duration_days(project)
    if duration is not None:
        if duration > 365:
            complexity_score += 3
        elif duration > 180:
            complexity_score += 2

    return {
        "health_status": health,
        "health_risk": health_score,
        "budget_risk": budget_score,
        "schedule_risk": schedule_score,
        "resource_risk": resource_score,
        "dependency_risk": dependency_score,
        "complexity_risk": complexity_score,
    }


def project_risk(project, **counts) -> int:
    """Bounded 0–100 risk score of one project."""
    parts = project_risk_components(project, **counts)
    total = sum(v for k, v in parts.items() if k.endswith("_risk"))
    return min(100, total)


# ── Aggregate subscores ──────────────────────────────────────────────────────


def _aggregate_budget(projects):
    total_budget = 0.0
    total_cost = 0.0
    over_count = 0
    severe = 0
    for p in projects:
        budget = _budget(p)
        cost = cost_to_compare(p)
        total_budget += budget
        total_cost += cost
        if budget > 0 and cost > budget:
            over_count += 1
            if (cost - budget) / budget * 100 > 20:
                severe += 1

    if total_budget == 0:
        return 5, "No budget data available (+5 base risk)"

    variance = (total_cost - total_budget) / total_budget * 100
    over_pct = over_count / len(projects) * 100

    if variance > 30:
        score, detail = 15, f"{variance:.1f}% over budget (+15)"
    elif variance > 15:
        score, detail = 10, f"{variance:.1f}% over budget (+10)"
    elif variance > 5:
        score, detail = 5, f"{variance:.1f}% over budget (+5)"
    elif variance < -5:
        score, detail = 3, f"{abs(variance):.1f}% under budget (+3)"
    else:
        sign = "+" if variance >= 0 else ""
        score, detail = 0, f"{sign}{variance:.1f}% variance (±0)"

    if severe > 0:
        score += severe * 2
        detail += f", {severe} projects >20% over (+{severe * 2})"
    elif over_pct > 50:
        score += 5
        detail += f", {over_count}/{len(projects)} over budget (+5)"
    return score, detail


def _aggregate_schedule(projects, today):
    delays = [schedule_delay_days(p, today) for p in projects]
    delayed = [d for d in delays if d > 0]
    n = len(projects)
    delayed_pct = len(delayed) / n * 100
    avg_delay = sum(delayed) / len(delayed) if delayed else 0
    severe = sum(1 for d in delayed if d > 30)

    if delayed_pct > 60:
        score = 15
    elif delayed_pct > 30:
        score = 10
    elif delayed_pct > 10:
        score = 5
    else:
        score = 0
    detail = f"{len(delayed)}/{n} delayed ({f'+{score}' if score else '±0'})"

    if severe > 0:
        score += severe * 2
        detail += f", {severe} >30 days (+{severe * 2})"
    elif avg_delay > 15:
        score += 5
        detail += f", avg {avg_delay:.0f} days (+5)"
    return score, detail


def _aggregate_resource(projects, requirements, allocations):
    total_req = 0
    total_alloc = 0
    under = 0
    for p in projects:
        req = requirements.get(p.id, 0)
        alloc = allocations.get(p.id, 0)
        total_req += req
        total_alloc += alloc
        ratio = alloc / req * 100 if req > 0 else 100
        if ratio < 80:
            under += 1

    rate = total_alloc / total_req * 100 if total_req > 0 else 100
    if rate < 60:
        score, detail = 15, f"{rate:.0f}% allocated (+15)"
    elif rate < 80:
        score, detail = 10, f"{rate:.0f}% allocated (+10)"
    elif rate < 90:
        score, detail = 5, f"{rate:.0f}% allocated (+5)"
    elif rate > 120:
        score, detail = 8, f"{rate:.0f}% allocated - over-allocated (+8)"
    else:
        score, detail = 0, f"{rate:.0f}% allocated (±0)"

    if under > 0:
        extra = min(5, under)
        score += extra
        detail += f", {under} under-allocated (+{extra})"
    return score, detail


def _aggregate_dependency(projects, incoming, outgoing):
    n = len(projects)
    incoming_total = sum(incoming.get(p.id, 0) for p in projects)
    outgoing_total = sum(outgoing.get(p.id, 0) for p in projects)
    total = incoming_total + outgoing_total
    avg = total / n

    if avg > 5:
        score = 12
    elif avg > 3:
        score = 8
    elif avg > 1:
        score = 4
    else:
        score = 0
    if score:
        detail = f"{total} dependencies ({avg:.1f}/project) (+{score})"
    else:
        detail = f"{total} dependencies (±0)"

    if incoming_total / n > 3:
        score += 3
        detail += f", blocked by {incoming_total} (+3)"
    return score, detail


def _aggregate_complexity(projects):
    n = len(projects)
    large = sum(1 for p in projects if _budget(p) > 5_000_000)
    high_value = sum(1 for p in projects if _budget(p) > 10_000_000)
    long_running = sum(
        1 for p in projects if (desired_duration_days(p) or 0) > 180
    )

    score = 0
    factors = []
    if n > 15:
        score += 5
        factors.append(f"{n} projects (+5)")
    elif n > 10:
        score += 3
        factors.append(f"{n} projects (+3)")

    if high_value > 0:
        score += 5
        factors.append(f"{high_value} >$10M (+5)")
    elif large > 0:
        score += 3
        factors.append(f"{large} >$5M (+3)")

    if long_running > 0:
        extra = min(5, long_running * 2)
        score += extra
        factors.append(f"{long_running} >6mo (+{extra})")

    return score, ", ".join(factors) if factors else "Low complexity (±0)"


def _aggregate_health(projects, today):
    statuses = [auto_health_status(p, today) for p in projects]
    n = len(projects)
    red = statuses.count(HEALTH_RED)
    yellow = statuses.count(HEALTH_YELLOW)
    green = statuses.count(HEALTH_GREEN)
    red_pct = red / n * 100
    yellow_pct = yellow / n * 100

    if red_pct > 50:
        return 15, f"{red}/{n} Red status (+15)"
    if red_pct > 25:
        return 10, f"{red}/{n} Red status (+10)"
    if red > 0:
        return 5, f"{red}/{n} Red status (+5)"
    if yellow_pct > 50:
        return 8, f"{yellow}/{n} Yellow status (+8)"
    if yellow > 0:
        return 4, f"{yellow}/{n} Yellow status (+4)"
    return 0, f"{green}/{n} Green status (±0)"


def _empty_assessment() -> dict:
    result = {key: 0 for key in AGGREGATE_CAPS}
    result.update({
        "total_score": 0,
        "max_risk": 0,
        "distribution": {"low_risk": 0, "medium_risk": 0, "high_risk": 0, "total_projects": 0},
        "project_risks": [],
        "projects_needing_attention": 0,
        "details": {key: NO_PROJECTS for key in AGGREGATE_CAPS},
    })
    return result


def assess_projects(
    projects,
    *,
    requirements=None,
    allocations=None,
    incoming=None,
    outgoing=None,
    today=None,
) -> dict:
    """Aggregate risk of a project population.

    The count maps are ``{project_id: count}`` of active requirements,
    allocations, incoming and outgoing project dependencies.  Missing
    entries count as zero.
    """
    projects = list(projects)
    if not projects:
        return _empty_assessment()

    requirements = requirements or {}
    allocations = allocations or {}
    incoming = incoming or {}
    outgoing = outgoing or {}
    today = today or _today()

    project_risks = []
    for p in projects:
        score = project_risk(
            p,
            requirement_count=requirements.get(p.id, 0),
            allocation_count=allocations.get(p.id, 0),
            incoming_dependencies=incoming.get(p.id, 0),
            today=today,
        )
        project_risks.append({
            "project_id": p.id,
            "project_name": p.name or f"Project {p.id}",
            "risk_score": score,
            "risk_level": risk_level(score),
        })

    distribution = {
        "low_risk": sum(1 for r in project_risks if r["risk_level"] == RISK_LOW),
        "medium_risk": sum(1 for r in project_risks if r["risk_level"] == RISK_MEDIUM),
        "high_risk": sum(1 for r in project_risks if r["risk_level"] == RISK_HIGH),
        "total_projects": len(projects),
    }

    raw = {
        "budget_risk": _aggregate_budget(projects),
        "schedule_risk": _aggregate_schedule(projects, today),
        "resource_risk": _aggregate_resource(projects, requirements, allocations),
        "dependency_risk": _aggregate_dependency(projects, incoming, outgoing),
        "complexity_risk": _aggregate_complexity(projects),
        "health_risk": _aggregate_health(projects, today),
    }

    result = {}
    details = {}
    for key, (score, detail) in raw.items():
        result[key] = int(min(AGGREGATE_CAPS[key], score))
        details[key] = detail

    result.update({
        "total_score": min(100, sum(result[key] for key in AGGREGATE_CAPS)),
        "max_risk": max((r["risk_score"] for r in project_risks), default=0),
        "distribution": distribution,
        "project_risks": project_risks,
        "projects_needing_attention": distribution["medium_risk"] + distribution["high_risk"],
        "details": details,
    })
    return result


# ── Loaders ──────────────────────────────────────────────────────────────────


def _count_by(column, *criteria) -> dict:
    rows = (
        db.session.query(column, func.count())
        .filter(*criteria)
        .group_by(column)
        .all()
    )
    return {key: count for key, count in rows}


def load_risk_counts(project_ids) -> dict:
    """Active requirement / allocation / dependency counts per project id."""
    if not project_ids:
        return {"requirements": {}, "allocations": {}, "incoming": {}, "outgoing": {}}
    return {
        "requirements": _count_by(
            ProjectRequirement.project_id,
            ProjectRequirement.project_id.in_(project_ids),
            ProjectRequirement.is_active.is_(True),
        ),
        "allocations": _count_by(
            ResourceAllocation.project_id,
            ResourceAllocation.project_id.in_(project_ids),
            ResourceAllocation.is_active.is_(True),
        ),
        "incoming": _count_by(
            ProjectDependency.successor_id,
            ProjectDependency.successor_type == KIND_PROJECT,
            ProjectDependency.successor_id.in_(project_ids),
            ProjectDependency.is_active.is_(True),
        ),
        "outgoing": _count_by(
            ProjectDependency.predecessor_id,
            ProjectDependency.predecessor_type == KIND_PROJECT,
            ProjectDependency.predecessor_id.in_(project_ids),
            ProjectDependency.is_active.is_(True),
        ),
    }


def _scope_is_live(scenario_id) -> bool:
    if scenario_id is None:
        return True
    scenario = db.session.get(Scenario, scenario_id)
    return scenario is not None and scenario.is_active


def compute_segment_function_risk(segment_function_id: int, scenario_id=None, today=None) -> dict:
    if not _scope_is_live(scenario_id):
        projects = []
    else:
        if scenario_id is None:
            in_scope = Project.scenario_id.is_(None)
        else:
            in_scope = Project.scenario_id == scenario_id
        projects = (
            Project.query_active()
            .filter(Project.segment_function_id == segment_function_id, in_scope)
            .order_by(Project.id)
            .all()
        )
    counts = load_risk_counts([p.id for p in projects])
    result = assess_projects(projects, today=today, **counts)
    result["segment_function_id"] = segment_function_id
    result["scenario_id"] = scenario_id
    return result


def segment_function_risk(segment_function_id: int, scenario_id=None, today=None) -> dict:
    """Aggregate risk of a segment function within a scenario (None = baseline rows).

    Served from cache for RISK_CACHE_TTL seconds unless *today* is pinned.
    """
    if today is not None:
        return compute_segment_function_risk(segment_function_id, scenario_id, today)
    ttl = current_app.config.get("RISK_CACHE_TTL", cache_service.DEFAULT_TTL)
    return cache_service.get_cached(
        cache_service.risk_key(segment_function_id, scenario_id),
        ttl=ttl,
        loader=lambda: compute_segment_function_risk(segment_function_id, scenario_id),
    )


def batch_segment_function_risk(segment_function_ids, scenario_id=None) -> dict:
    """Risk for several segment functions; one failing id never aborts the batch."""
    results = {}
    for sf_id in segment_function_ids:
        try:
            results[str(sf_id)] = segment_function_risk(sf_id, scenario_id)
        except Exception:
            logger.exception(
                "Risk calculation failed for segment function %s", sf_id,
                extra={"scenario_id": scenario_id},
            )
    return {
        "results": results,
        "count": len(results),
        "requested": len(segment_function_ids),
    }


def project_risk_breakdown(project_id: int, today=None) -> dict:
    project = db.session.get(Project, project_id)
    if project is None or not project.is_active or not _scope_is_live(project.scenario_id):
        raise NotFoundError(resource="Project", resource_id=project_id)

    counts = load_risk_counts([project.id])
    parts = project_risk_components(
        project,
        requirement_count=counts["requirements"].get(project.id, 0),
        allocation_count=counts["allocations"].get(project.id, 0),
        incoming_dependencies=counts["incoming"].get(project.id, 0),
        today=today,
    )
    score = min(100, sum(v for k, v in parts.items() if k.endswith("_risk")))
    health = parts.pop("health_status")
    return {
        "project_id": project.id,
        "project_name": project.name,
        "scenario_id": project.scenario_id,
        "risk_score": score,
        "risk_level": risk_level(score),
        "auto_health_status": health,
        "manual_health_status": project.health_status,
        "budget_variance_pct": budget_variance_pct(project),
        "schedule_delay_days": schedule_delay_days(project, today),
        "components": parts,
    }
