"""Sweep-line overlap calculator tests."""

from datetime import date
from types import SimpleNamespace

import pytest

from conftest import make_allocation, make_project, make_resource, make_scenario
from portfolio.core.exceptions import NotFoundError
from portfolio.models.resource import Resource
from portfolio.services.allocation_overlap import (
    is_over_allocated,
    max_concurrent_allocation,
    resource_allocation_overlaps,
    resource_overlap,
)
from portfolio.services.scenario_clone import clone_scenario
from portfolio.services.scenario_service import delete_scenario


def _alloc(pct, start=None, end=None, resource_id=1):
    return SimpleNamespace(
        allocation_percentage=pct, start_date=start, end_date=end, resource_id=resource_id,
    )


class TestMaxConcurrentAllocation:
    def test_empty_is_zero(self):
        assert max_concurrent_allocation([]) == 0

    def test_overlapping_periods_add_up(self):
        allocations = [
            _alloc(50, date(2026, 1, 1), date(2026, 3, 31)),
            _alloc(80, date(2026, 2, 1), date(2026, 4, 30)),
        ]
        assert max_concurrent_allocation(allocations) == 130

    def test_disjoint_periods_take_the_larger(self):
        allocations = [
            _alloc(50, date(2026, 1, 1), date(2026, 1, 31)),
            _alloc(80, date(2026, 3, 1), date(2026, 3, 31)),
        ]
        assert max_concurrent_allocation(allocations) == 80

    def test_consecutive_quarters(self):
        allocations = [
            _alloc(50, date(2026, 1, 1), date(2026, 3, 31)),
            _alloc(50, date(2026, 4, 1), date(2026, 6, 30)),
        ]
        assert max_concurrent_allocation(allocations) == 50

    def test_nested_window(self):
        allocations = [
            _alloc(50, date(2026, 1, 1), date(2026, 6, 30)),
            _alloc(30, date(2026, 3, 1), date(2026, 4, 30)),
        ]
        assert max_concurrent_allocation(allocations) == 80

    def test_end_and_start_on_same_day_do_not_overlap(self):
        allocations = [
            _alloc(60, date(2026, 2, 1), date(2026, 3, 1)),
            _alloc(60, date(2026, 1, 1), date(2026, 2, 1)),
        ]
        assert max_concurrent_allocation(allocations) == 60

    def test_three_way_peak(self):
        allocations = [
            _alloc(30, date(2026, 1, 1), date(2026, 6, 30)),
            _alloc(30, date(2026, 2, 1), date(2026, 2, 28)),
            _alloc(30, date(2026, 2, 15), date(2026, 3, 15)),
            _alloc(50, date(2026, 4, 1), date(2026, 4, 30)),
        ]
        assert max_concurrent_allocation(allocations) == 90

    def test_undated_rows_sum_when_nothing_is_dated(self):
        assert max_concurrent_allocation([_alloc(30), _alloc(40)]) == 70

    def test_half_dated_row_counts_as_undated(self):
        assert max_concurrent_allocation([_alloc(30, date(2026, 1, 1)), _alloc(40)]) == 70

    def test_undated_rows_ignored_once_something_is_dated(self):
        allocations = [_alloc(50, date(2026, 1, 1), date(2026, 1, 31)), _alloc(80)]
        assert max_concurrent_allocation(allocations) == 50

    def test_accepts_a_generator(self):
        rows = (_alloc(p, date(2026, 1, 1), date(2026, 1, 2)) for p in (10, 20))
        assert max_concurrent_allocation(rows) == 30


class TestOverAllocation:
    @pytest.mark.parametrize("pct,expected", [(99, False), (100, False), (101, True), (130, True)])
    def test_threshold(self, pct, expected):
        assert is_over_allocated(pct) is expected

    def test_grouped_by_resource(self):
        allocations = [
            _alloc(60, date(2026, 1, 1), date(2026, 1, 31), resource_id=1),
            _alloc(60, date(2026, 1, 15), date(2026, 2, 15), resource_id=1),
            _alloc(40, date(2026, 1, 1), date(2026, 1, 31), resource_id=2),
        ]
        assert resource_allocation_overlaps(allocations) == {1: 120, 2: 40}


class TestResourceOverlap:
    def test_populated_scenario(self, populated_scenario):
        resource_id = Resource.in_scenario(populated_scenario.id).one().id
        result = resource_overlap(resource_id, populated_scenario.id)
        assert result["max_concurrent_allocation"] == 90
        assert result["over_allocated"] is False
        assert result["allocation_count"] == 2

    def test_scenarios_never_add_up(self, manager):
        first = make_scenario(manager, "A")
        second = make_scenario(manager, "B")
        resource = make_resource(first.id)
        p1 = make_project(first.id, "PROJ-001")
        p2 = make_project(second.id, "PROJ-001")
        make_allocation(first.id, resource.id, p1.id, 70, date(2026, 1, 1), date(2026, 1, 31))
        make_allocation(second.id, resource.id, p2.id, 70, date(2026, 1, 1), date(2026, 1, 31))

        assert resource_overlap(resource.id, second.id)["max_concurrent_allocation"] == 70
        default = resource_overlap(resource.id)
        assert default["scenario_id"] == first.id
        assert default["max_concurrent_allocation"] == 70
        assert default["over_allocated"] is False

    def test_clone_does_not_double_the_peak(self, manager):
        source = make_scenario(manager, "Source")
        resource = make_resource(source.id)
        project = make_project(source.id, "PROJ-001")
        make_allocation(source.id, resource.id, project.id, 60, date(2026, 1, 1), date(2026, 3, 31))

        clone = clone_scenario(source.id, manager)

        result = resource_overlap(resource.id)
        assert result["max_concurrent_allocation"] == 60
        assert result["over_allocated"] is False
        assert resource_overlap(resource.id, clone.id)["max_concurrent_allocation"] == 60

    def test_deleted_scenario_ignored(self, manager):
        kept = make_scenario(manager, "Kept")
        doomed = make_scenario(manager, "Doomed")
        resource = make_resource(kept.id)
        p1 = make_project(kept.id, "PROJ-001")
        p2 = make_project(doomed.id, "PROJ-001")
        make_allocation(kept.id, resource.id, p1.id, 60, date(2026, 1, 1), date(2026, 1, 31))
        make_allocation(doomed.id, resource.id, p2.id, 60, date(2026, 1, 1), date(2026, 1, 31))
        assert resource_overlap(resource.id, doomed.id)["allocation_count"] == 1

        delete_scenario(doomed.id, manager)

        assert resource_overlap(resource.id)["max_concurrent_allocation"] == 60
        gone = resource_overlap(resource.id, doomed.id)
        assert gone["max_concurrent_allocation"] == 0
        assert gone["allocation_count"] == 0

    def test_baseline_resource_sees_baseline_rows_only(self, manager):
        scenario = make_scenario(manager)
        resource = make_resource(None)
        base_project = make_project(None, "PROJ-001")
        scoped_project = make_project(scenario.id, "PROJ-001")
        make_allocation(None, resource.id, base_project.id, 40)
        make_allocation(scenario.id, resource.id, scoped_project.id, 70)

        result = resource_overlap(resource.id)
        assert result["scenario_id"] is None
        assert result["max_concurrent_allocation"] == 40
        assert resource_overlap(resource.id, scenario.id)["max_concurrent_allocation"] == 70

    def test_inactive_allocations_skipped(self, manager):
        scenario = make_scenario(manager)
        resource = make_resource(scenario.id)
        project = make_project(scenario.id, "PROJ-001")
        make_allocation(scenario.id, resource.id, project.id, 90, is_active=False)
        make_allocation(scenario.id, resource.id, project.id, 20)
        result = resource_overlap(resource.id, scenario.id)
        assert result["max_concurrent_allocation"] == 20
        assert result["allocation_count"] == 1

    def test_unknown_resource(self):
        with pytest.raises(NotFoundError):
            resource_overlap(9999)
