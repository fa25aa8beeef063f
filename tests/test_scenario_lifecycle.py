"""
Scenario lifecycle tests (service layer).

State machine:
    planned -> published   (publish, elevated roles only; terminal)
    planned -> deleted     (soft delete, creator or elevated)

Also covers the planned-scenario quota, visibility rules, update and stats.
"""

import pytest

from conftest import make_project, make_scenario
from portfolio.core.exceptions import (
    AlreadyPublishedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from portfolio.models import audit, db
from portfolio.models.audit import AuditLog
from portfolio.models.project import Project
from portfolio.models.scenario import (
    SCENARIO_TRANSITIONS,
    STATUS_PLANNED,
    STATUS_PUBLISHED,
    validate_scenario_transition,
)
from portfolio.services import scenario_service as svc


class TestTransitionTable:
    def test_planned_can_be_published(self):
        assert validate_scenario_transition(STATUS_PLANNED, STATUS_PUBLISHED)

    def test_published_is_terminal(self):
        assert SCENARIO_TRANSITIONS[STATUS_PUBLISHED] == []
        assert not validate_scenario_transition(STATUS_PUBLISHED, STATUS_PLANNED)

    def test_unknown_state_has_no_edges(self):
        assert not validate_scenario_transition("archived", STATUS_PUBLISHED)


class TestCreate:
    def test_new_scenario_is_planned_and_owned(self, manager):
        scenario = svc.create_scenario(manager, "  Plan A  ", "first cut")
        assert scenario.id is not None
        assert scenario.status == STATUS_PLANNED
        assert scenario.created_by == manager.id
        assert scenario.name == "Plan A"
        assert scenario.is_active is True

    def test_create_writes_audit_row(self, manager):
        scenario = svc.create_scenario(manager, "Plan A")
        log = AuditLog.query.filter_by(action="scenario.create").one()
        assert log.entity_id == str(scenario.id)
        assert log.actor_user_id == manager.id
        assert log.scenario_id == scenario.id

    def test_blank_name_rejected(self, manager):
        with pytest.raises(ValidationError):
            svc.create_scenario(manager, "   ")

    def test_metadata_kept(self, manager):
        scenario = svc.create_scenario(manager, "Plan A", metadata={"fy": 2027})
        assert scenario.to_dict()["metadata"] == {"fy": 2027}


class TestAuditFailure:
    """A failing audit write is logged; the mutation it describes stays committed."""

    @pytest.fixture()
    def broken_audit(self, monkeypatch):
        def _boom(**kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(audit, "write_audit", _boom)

    def test_create_survives(self, manager, broken_audit, caplog):
        scenario = svc.create_scenario(manager, "Plan A")
        assert svc.get_scenario(scenario.id, manager).name == "Plan A"
        assert AuditLog.query.count() == 0
        assert "Audit log failed for scenario.create" in caplog.text

    def test_delete_survives(self, manager, broken_audit):
        scenario = make_scenario(manager)
        svc.delete_scenario(scenario.id, manager)
        with pytest.raises(NotFoundError):
            svc.get_scenario(scenario.id, manager)

    def test_publish_survives(self, manager, admin, broken_audit):
        scenario = make_scenario(manager)
        svc.publish_scenario(scenario.id, admin)
        assert svc.get_scenario(scenario.id, admin).status == STATUS_PUBLISHED

    def test_record_audit_returns_none_on_failure(self, broken_audit):
        assert audit.record_audit(entity_type="scenario", entity_id=1, action="scenario.update") is None


class TestQuota:
    def test_third_planned_scenario_rejected(self, manager):
        svc.create_scenario(manager, "One")
        svc.create_scenario(manager, "Two")
        with pytest.raises(QuotaExceededError) as exc:
            svc.create_scenario(manager, "Three")
        assert exc.value.limit == 2

    def test_published_scenarios_do_not_count(self, manager, admin):
        first = svc.create_scenario(manager, "One")
        svc.create_scenario(manager, "Two")
        svc.publish_scenario(first.id, admin)
        assert svc.create_scenario(manager, "Three").status == STATUS_PLANNED

    def test_deleted_scenarios_do_not_count(self, manager):
        first = svc.create_scenario(manager, "One")
        svc.create_scenario(manager, "Two")
        svc.delete_scenario(first.id, manager)
        assert svc.count_planned_scenarios(manager.id) == 1
        svc.create_scenario(manager, "Three")

    def test_quota_is_per_user(self, manager, other_manager):
        svc.create_scenario(manager, "One")
        svc.create_scenario(manager, "Two")
        assert svc.create_scenario(other_manager, "Mine").created_by == other_manager.id

    def test_limit_comes_from_config(self, app, manager, monkeypatch):
        monkeypatch.setitem(app.config, "SCENARIO_PLANNED_LIMIT", 1)
        svc.create_scenario(manager, "One")
        with pytest.raises(QuotaExceededError):
            svc.create_scenario(manager, "Two")


class TestPermissions:
    def test_planned_visible_to_owner_and_elevated_only(
        self, manager, other_manager, admin, domain_manager,
    ):
        scenario = make_scenario(manager)
        assert svc.can_view(scenario, manager)
        assert svc.can_view(scenario, admin)
        assert svc.can_view(scenario, domain_manager)
        assert not svc.can_view(scenario, other_manager)

    def test_published_visible_to_everyone(self, manager, viewer):
        scenario = make_scenario(manager, status=STATUS_PUBLISHED)
        assert svc.can_view(scenario, viewer)

    def test_modify_requires_owner_or_elevated(self, manager, other_manager, admin):
        scenario = make_scenario(manager)
        assert svc.can_modify(scenario, manager)
        assert svc.can_modify(scenario, admin)
        assert not svc.can_modify(scenario, other_manager)

    def test_published_is_not_modifiable_even_by_admin(self, manager, admin):
        scenario = make_scenario(manager, status=STATUS_PUBLISHED)
        assert not svc.can_modify(scenario, admin)
        assert not svc.can_modify(scenario, manager)

    def test_get_forbidden_for_stranger(self, manager, other_manager):
        scenario = make_scenario(manager)
        with pytest.raises(ForbiddenError):
            svc.get_scenario(scenario.id, other_manager)

    def test_get_missing_is_not_found(self, manager):
        with pytest.raises(NotFoundError):
            svc.get_scenario(9999, manager)


class TestPublish:
    def test_admin_publishes(self, manager, admin):
        scenario = make_scenario(manager)
        published = svc.publish_scenario(scenario.id, admin)
        assert published.status == STATUS_PUBLISHED
        assert published.published_by == admin.id
        assert published.published_at is not None

    def test_domain_manager_publishes(self, manager, domain_manager):
        scenario = make_scenario(manager)
        assert svc.publish_scenario(scenario.id, domain_manager).is_published

    def test_owner_without_elevated_role_forbidden(self, manager):
        scenario = make_scenario(manager)
        with pytest.raises(ForbiddenError):
            svc.publish_scenario(scenario.id, manager)

    def test_second_publish_already_published(self, manager, admin):
        scenario = make_scenario(manager)
        svc.publish_scenario(scenario.id, admin)
        with pytest.raises(AlreadyPublishedError):
            svc.publish_scenario(scenario.id, admin)

    def test_already_published_is_an_invalid_state(self):
        assert issubclass(AlreadyPublishedError, InvalidStateError)

    def test_publish_is_audited(self, manager, admin):
        scenario = make_scenario(manager)
        svc.publish_scenario(scenario.id, admin)
        log = AuditLog.query.filter_by(action="scenario.publish").one()
        assert log.diff["status"] == {"old": STATUS_PLANNED, "new": STATUS_PUBLISHED}


class TestDelete:
    def test_owner_soft_deletes(self, manager):
        scenario = make_scenario(manager)
        svc.delete_scenario(scenario.id, manager)
        assert scenario.is_active is False
        with pytest.raises(NotFoundError):
            svc.get_scenario(scenario.id, manager)

    def test_scoped_rows_left_untouched(self, manager):
        scenario = make_scenario(manager)
        project = make_project(scenario.id, "PROJ-001")
        svc.delete_scenario(scenario.id, manager)
        assert db.session.get(Project, project.id).is_active is True

    def test_stranger_forbidden(self, manager, other_manager):
        scenario = make_scenario(manager)
        with pytest.raises(ForbiddenError):
            svc.delete_scenario(scenario.id, other_manager)

    def test_publish_then_delete_is_invalid_state(self, manager, admin):
        scenario = make_scenario(manager)
        svc.publish_scenario(scenario.id, admin)
        with pytest.raises(InvalidStateError):
            svc.delete_scenario(scenario.id, admin)


class TestUpdateAndList:
    def test_update_name_and_metadata(self, manager):
        scenario = make_scenario(manager)
        updated = svc.update_scenario(
            scenario.id, manager, {"name": "Renamed", "metadata": {"k": "v"}},
        )
        assert updated.name == "Renamed"
        assert updated.metadata_json == {"k": "v"}
        log = AuditLog.query.filter_by(action="scenario.update").one()
        assert log.diff["name"] == {"old": "Baseline", "new": "Renamed"}

    def test_update_published_rejected(self, manager):
        scenario = make_scenario(manager, status=STATUS_PUBLISHED)
        with pytest.raises(InvalidStateError):
            svc.update_scenario(scenario.id, manager, {"name": "x"})

    def test_list_for_regular_user(self, manager, other_manager):
        mine = make_scenario(manager, "Mine")
        make_scenario(other_manager, "Theirs")
        shared = make_scenario(other_manager, "Shared", status=STATUS_PUBLISHED)
        ids = {s.id for s in svc.list_scenarios(manager)}
        assert ids == {mine.id, shared.id}

    def test_list_for_elevated_user(self, manager, other_manager, admin):
        make_scenario(manager, "Mine")
        make_scenario(other_manager, "Theirs")
        gone = make_scenario(other_manager, "Gone", is_active=False)
        ids = {s.id for s in svc.list_scenarios(admin)}
        assert len(ids) == 2
        assert gone.id not in ids


class TestStats:
    def test_counts_active_entities(self, populated_scenario, manager):
        stats = svc.scenario_stats(populated_scenario.id, manager)
        assert stats["scenario_id"] == populated_scenario.id
        assert stats["status"] == STATUS_PLANNED
        assert stats["project_count"] == 2
        assert stats["resource_count"] == 1
        assert stats["milestone_count"] == 1
        assert stats["dependency_count"] == 2
        assert stats["allocation_count"] == 2

    def test_stats_forbidden_for_stranger(self, populated_scenario, other_manager):
        with pytest.raises(ForbiddenError):
            svc.scenario_stats(populated_scenario.id, other_manager)
