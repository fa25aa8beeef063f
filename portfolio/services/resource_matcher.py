"""
Capability–Requirement Matcher.

Scores how well a resource capability fits a project requirement (0–100)
and ranks candidate capabilities for allocation suggestions.

Score components:
    exact match   40   app/technology/role; partial = matching/3 * 40
    proficiency   30   full if capability rank ≥ required, else 30 - 10*gap
    experience    20   always awarded (years are not compared)
    primary       10   capability flagged primary
"""

import logging

from flask import current_app

from portfolio.core.exceptions import NotFoundError
from portfolio.models import db
from portfolio.models.project import ProjectRequirement
from portfolio.models.resource import PROFICIENCY_RANK, Resource, ResourceCapability

logger = logging.getLogger(__name__)

EXACT_MATCH_WEIGHT = 40
PROFICIENCY_WEIGHT = 30
EXPERIENCE_WEIGHT = 20
PRIMARY_BONUS = 10

DEFAULT_MIN_SCORE = 60
DEFAULT_TOP_N = 5


def proficiency_rank(level) -> int:
    """Beginner=1 … Expert=4; unknown levels rank 0."""
    return PROFICIENCY_RANK.get(level, 0)


def match_score(capability, requirement) -> int:
    matching = sum(
        1
        for field in ("app_id", "technology_id", "role_id")
        if getattr(capability, field) == getattr(requirement, field)
    )
    score = EXACT_MATCH_WEIGHT * matching / 3

    gap = proficiency_rank(requirement.proficiency_level) - proficiency_rank(
        capability.proficiency_level
    )
    if gap <= 0:
        score += PROFICIENCY_WEIGHT
    else:
        score += max(0, PROFICIENCY_WEIGHT - 10 * gap)

    # years_of_experience vs min_years_exp is not compared
    score += EXPERIENCE_WEIGHT

    if capability.is_primary:
        score += PRIMARY_BONUS

    return max(0, min(100, round(score)))


def _min_score(min_score):
    if min_score is not None:
        return min_score
    return current_app.config.get("MATCH_MIN_SCORE", DEFAULT_MIN_SCORE)


def _candidate_capabilities(requirement):
    """Active capabilities of active resources sharing the requirement's triple."""
    return (
        ResourceCapability.query_active()
        .join(Resource, ResourceCapability.resource_id == Resource.id)
        .filter(
            Resource.is_active.is_(True),
            ResourceCapability.app_id == requirement.app_id,
            ResourceCapability.technology_id == requirement.technology_id,
            ResourceCapability.role_id == requirement.role_id,
        )
        .all()
    )


def find_matching_capabilities(requirement, capabilities=None, min_score=None) -> list[dict]:
    """Score *capabilities* against *requirement*, keep those ≥ min_score, best first."""
    threshold = _min_score(min_score)
    if capabilities is None:
        capabilities = _candidate_capabilities(requirement)

    matches = []
    for cap in capabilities:
        score = match_score(cap, requirement)
        if score < threshold:
            continue
        resource = cap.resource
        matches.append({
            "capability_id": cap.id,
            "resource_id": cap.resource_id,
            "resource_name": resource.display_name if resource else None,
            "proficiency_level": cap.proficiency_level,
            "is_primary": cap.is_primary,
            "match_score": score,
        })
    matches.sort(key=lambda m: (-m["match_score"], m["capability_id"]))
    return matches


def _load_requirement(requirement_id: int) -> ProjectRequirement:
    requirement = db.session.get(ProjectRequirement, requirement_id)
    if requirement is None or not requirement.is_active:
        raise NotFoundError(resource="ProjectRequirement", resource_id=requirement_id)
    return requirement


def _load_capability(capability_id: int) -> ResourceCapability:
    capability = db.session.get(ResourceCapability, capability_id)
    if capability is None or not capability.is_active:
        raise NotFoundError(resource="ResourceCapability", resource_id=capability_id)
    return capability


def score_by_ids(capability_id: int, requirement_id: int) -> dict:
    capability = _load_capability(capability_id)
    requirement = _load_requirement(requirement_id)
    return {
        "capability_id": capability.id,
        "requirement_id": requirement.id,
        "match_score": match_score(capability, requirement),
    }


def recommend_resources(requirement_id: int, top_n=None, min_score=None) -> dict:
    """Top-N capabilities for a requirement."""
    requirement = _load_requirement(requirement_id)
    if top_n is None:
        top_n = current_app.config.get("MATCH_TOP_N", DEFAULT_TOP_N)
    matches = find_matching_capabilities(requirement, min_score=min_score)
    logger.debug(
        "Requirement %s: %d candidate(s) above threshold", requirement_id, len(matches),
    )
    return {
        "requirement_id": requirement.id,
        "project_id": requirement.project_id,
        "recommendations": matches[:top_n],
    }
