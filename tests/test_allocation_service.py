"""Allocation service tests: validation, match score and overlap recomputation."""

from datetime import date

import pytest

from conftest import (
    make_allocation,
    make_capability,
    make_milestone,
    make_project,
    make_requirement,
    make_resource,
    make_scenario,
)
from portfolio.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from portfolio.models import db
from portfolio.models.audit import AuditLog
from portfolio.models.resource import ResourceAllocation
from portfolio.services import cache_service
from portfolio.services.allocation_service import (
    create_allocation,
    delete_allocation,
    update_allocation,
)


@pytest.fixture()
def setup(manager):
    scenario = make_scenario(manager)
    project = make_project(scenario.id, "PROJ-001")
    resource = make_resource(scenario.id)
    return scenario, project, resource


def _body(project, resource, **extra):
    data = {
        "project_id": project.id,
        "resource_id": resource.id,
        "allocation_percentage": 50,
        "start_date": "2026-01-01",
        "end_date": "2026-03-31",
    }
    data.update(extra)
    return data


class TestCreate:
    def test_creates_in_project_scenario(self, setup, manager):
        scenario, project, resource = setup
        allocation, overlap = create_allocation(manager, _body(project, resource))
        assert allocation.scenario_id == scenario.id
        assert allocation.start_date == date(2026, 1, 1)
        assert allocation.allocation_type == "Shared"
        assert allocation.match_score is None
        assert overlap["max_concurrent_allocation"] == 50
        assert overlap["over_allocated"] is False
        assert AuditLog.query.filter_by(action="allocation.create").count() == 1

    def test_overlapping_allocations_flag_over_allocation(self, setup, manager):
        _, project, resource = setup
        create_allocation(manager, _body(project, resource, allocation_percentage=60))
        _, overlap = create_allocation(
            manager,
            _body(project, resource, allocation_percentage=60,
                  start_date="2026-03-01", end_date="2026-05-31"),
        )
        assert overlap["max_concurrent_allocation"] == 120
        assert overlap["over_allocated"] is True

    @pytest.mark.parametrize("pct", [-1, 101, "lots"])
    def test_bad_percentage(self, setup, manager, pct):
        _, project, resource = setup
        with pytest.raises(ValidationError):
            create_allocation(manager, _body(project, resource, allocation_percentage=pct))

    def test_boundary_percentages_accepted(self, setup, manager):
        _, project, resource = setup
        assert create_allocation(manager, _body(project, resource, allocation_percentage=0))[0].id
        assert create_allocation(manager, _body(project, resource, allocation_percentage=100))[0].id

    def test_start_after_end(self, setup, manager):
        _, project, resource = setup
        with pytest.raises(ValidationError):
            create_allocation(
                manager, _body(project, resource, start_date="2026-04-01", end_date="2026-03-01"),
            )

    def test_unparseable_date(self, setup, manager):
        _, project, resource = setup
        with pytest.raises(ValidationError):
            create_allocation(manager, _body(project, resource, start_date="next week"))

    def test_unknown_allocation_type(self, setup, manager):
        _, project, resource = setup
        with pytest.raises(ValidationError):
            create_allocation(manager, _body(project, resource, allocation_type="Part-time"))

    def test_missing_project_or_resource(self, setup, manager):
        _, project, resource = setup
        with pytest.raises(NotFoundError):
            create_allocation(manager, _body(project, resource, project_id=9999))
        with pytest.raises(NotFoundError):
            create_allocation(manager, _body(project, resource, resource_id=9999))

    def test_milestone_must_belong_to_project(self, setup, manager):
        scenario, project, resource = setup
        other = make_project(scenario.id, "PROJ-002")
        milestone = make_milestone(scenario.id, other.id)
        with pytest.raises(ValidationError):
            create_allocation(manager, _body(project, resource, milestone_id=milestone.id))

    def test_match_score_from_links(self, setup, manager):
        _, project, resource = setup
        requirement = make_requirement(project.id, proficiency_level="Advanced")
        capability = make_capability(resource.id, proficiency_level="Expert", is_primary=True)
        allocation, _ = create_allocation(manager, _body(
            project, resource,
            resource_capability_id=capability.id,
            project_requirement_id=requirement.id,
        ))
        assert allocation.match_score == 100

    def test_capability_of_other_resource_rejected(self, setup, manager):
        scenario, project, resource = setup
        someone_else = make_resource(scenario.id, "E-002")
        requirement = make_requirement(project.id)
        capability = make_capability(someone_else.id)
        with pytest.raises(ValidationError):
            create_allocation(manager, _body(
                project, resource,
                resource_capability_id=capability.id,
                project_requirement_id=requirement.id,
            ))
        assert ResourceAllocation.query.count() == 0

    def test_stranger_forbidden(self, setup, other_manager):
        _, project, resource = setup
        with pytest.raises(ForbiddenError):
            create_allocation(other_manager, _body(project, resource))

    def test_baseline_rows_need_elevated_role(self, manager, admin):
        project = make_project(None, "PROJ-001")
        resource = make_resource(None)
        with pytest.raises(ForbiddenError):
            create_allocation(manager, _body(project, resource))
        allocation, overlap = create_allocation(admin, _body(project, resource))
        assert allocation.scenario_id is None
        assert overlap["scenario_id"] is None

    def test_invalidates_cached_risk(self, setup, manager):
        scenario, project, resource = setup
        key = cache_service.risk_key(7, scenario.id)
        cache_service.set_cached(key, {"total_score": 1})
        create_allocation(manager, _body(project, resource))
        assert cache_service.get_cached(key) is None


class TestUpdate:
    def test_update_percentage_and_audit(self, setup, manager):
        scenario, project, resource = setup
        existing = make_allocation(
            scenario.id, resource.id, project.id, 40, date(2026, 1, 1), date(2026, 3, 31),
        )
        allocation, overlap = update_allocation(existing.id, manager, {"allocation_percentage": 70})
        assert allocation.allocation_percentage == 70
        assert overlap["max_concurrent_allocation"] == 70
        log = AuditLog.query.filter_by(action="allocation.update").one()
        assert log.diff == {"allocation_percentage": {"old": 40, "new": 70}}

    def test_end_date_checked_against_stored_start(self, setup, manager):
        scenario, project, resource = setup
        existing = make_allocation(
            scenario.id, resource.id, project.id, 40, date(2026, 1, 1), date(2026, 3, 31),
        )
        with pytest.raises(ValidationError):
            update_allocation(existing.id, manager, {"end_date": "2025-12-01"})

    def test_invalid_update_leaves_row_untouched(self, setup, manager):
        scenario, project, resource = setup
        existing = make_allocation(scenario.id, resource.id, project.id, 40)
        with pytest.raises(ValidationError):
            update_allocation(
                existing.id, manager, {"allocation_percentage": 90, "allocation_type": "Nope"},
            )
        db.session.rollback()
        assert db.session.get(ResourceAllocation, existing.id).allocation_percentage == 40

    def test_bad_link_rolls_back(self, setup, manager):
        scenario, project, resource = setup
        someone_else = make_resource(scenario.id, "E-002")
        requirement = make_requirement(project.id)
        foreign_capability = make_capability(someone_else.id)
        existing = make_allocation(
            scenario.id, resource.id, project.id, 40, project_requirement_id=requirement.id,
        )
        with pytest.raises(ValidationError):
            update_allocation(
                existing.id, manager, {"resource_capability_id": foreign_capability.id},
            )
        assert db.session.get(ResourceAllocation, existing.id).resource_capability_id is None

    def test_linking_capability_sets_score(self, setup, manager):
        scenario, project, resource = setup
        requirement = make_requirement(project.id)
        capability = make_capability(resource.id)
        existing = make_allocation(
            scenario.id, resource.id, project.id, 40, project_requirement_id=requirement.id,
        )
        allocation, _ = update_allocation(
            existing.id, manager, {"resource_capability_id": capability.id},
        )
        assert allocation.match_score == 90

    def test_missing_allocation(self, manager):
        with pytest.raises(NotFoundError):
            update_allocation(9999, manager, {"allocation_percentage": 10})


class TestDelete:
    def test_delete_recomputes_overlap(self, setup, manager):
        scenario, project, resource = setup
        first = make_allocation(scenario.id, resource.id, project.id, 60, date(2026, 1, 1), date(2026, 2, 28))
        make_allocation(scenario.id, resource.id, project.id, 60, date(2026, 2, 1), date(2026, 3, 31))
        overlap = delete_allocation(first.id, manager)
        assert overlap["max_concurrent_allocation"] == 60
        assert overlap["allocation_count"] == 1
        assert db.session.get(ResourceAllocation, first.id).is_active is False

    def test_delete_twice_is_not_found(self, setup, manager):
        scenario, project, resource = setup
        existing = make_allocation(scenario.id, resource.id, project.id)
        delete_allocation(existing.id, manager)
        with pytest.raises(NotFoundError):
            delete_allocation(existing.id, manager)

    def test_delete_by_stranger_forbidden(self, setup, other_manager):
        scenario, project, resource = setup
        existing = make_allocation(scenario.id, resource.id, project.id)
        with pytest.raises(ForbiddenError):
            delete_allocation(existing.id, other_manager)
