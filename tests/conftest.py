"""
Shared pytest fixtures for the Portfolio Scenario Planner test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup + cache flush (autouse)
    - client: Flask test client (function-scoped)
    - admin / domain_manager / manager / other_manager / viewer: Users per role
    - auth_header: builds an ``Authorization: Bearer`` header for a user
    - make_*: ORM factories that commit (clone rollback must not discard them)
"""

from datetime import date

import pytest

from portfolio import create_app
from portfolio.models import db as _db
from portfolio.models.auth import (
    ROLE_ADMINISTRATOR,
    ROLE_DOMAIN_MANAGER,
    ROLE_PROJECT_MANAGER,
    ROLE_VIEWER,
    User,
)
from portfolio.models.project import (
    Milestone,
    Project,
    ProjectDependency,
    ProjectRequirement,
    SegmentFunction,
)
from portfolio.models.resource import Resource, ResourceAllocation, ResourceCapability
from portfolio.models.scenario import Scenario
from portfolio.services import cache_service
from portfolio.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        cache_service.clear_all()
        yield
        cache_service.clear_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users ────────────────────────────────────────────────────────────────


def _user(email, role):
    user = User(email=email, full_name=email.split("@")[0].title(), role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    return _user("admin@example.com", ROLE_ADMINISTRATOR)


@pytest.fixture()
def domain_manager():
    return _user("domain@example.com", ROLE_DOMAIN_MANAGER)


@pytest.fixture()
def manager():
    return _user("pm@example.com", ROLE_PROJECT_MANAGER)


@pytest.fixture()
def other_manager():
    return _user("pm2@example.com", ROLE_PROJECT_MANAGER)


@pytest.fixture()
def viewer():
    return _user("viewer@example.com", ROLE_VIEWER)


@pytest.fixture()
def auth_header():
    """Return a function building a Bearer header for a user."""

    def _build(user):
        token = generate_access_token(user.id, [user.role])
        return {"Authorization": f"Bearer {token}"}

    return _build


# ── ORM factories ────────────────────────────────────────────────────────


def make_scenario(owner, name="Baseline", **kw):
    scenario = Scenario(name=name, created_by=owner.id, **kw)
    _db.session.add(scenario)
    _db.session.commit()
    return scenario


def make_segment_function(name="Finance"):
    sf = SegmentFunction(name=name)
    _db.session.add(sf)
    _db.session.commit()
    return sf


def make_project(scenario_id, number, name=None, **kw):
    project = Project(
        scenario_id=scenario_id,
        project_number=number,
        name=name or f"Project {number}",
        **kw,
    )
    _db.session.add(project)
    _db.session.commit()
    return project


def make_resource(scenario_id, employee_id="E-001", **kw):
    resource = Resource(
        scenario_id=scenario_id, employee_id=employee_id,
        first_name="Ada", last_name="Lovelace", **kw,
    )
    _db.session.add(resource)
    _db.session.commit()
    return resource


def make_milestone(scenario_id, project_id, name="Go-live", **kw):
    milestone = Milestone(scenario_id=scenario_id, project_id=project_id, name=name, **kw)
    _db.session.add(milestone)
    _db.session.commit()
    return milestone


def make_dependency(scenario_id, pred, succ, **kw):
    """*pred* / *succ* are (kind, id) tuples."""
    dep = ProjectDependency(
        scenario_id=scenario_id,
        predecessor_type=pred[0], predecessor_id=pred[1],
        successor_type=succ[0], successor_id=succ[1],
        **kw,
    )
    _db.session.add(dep)
    _db.session.commit()
    return dep


def make_allocation(scenario_id, resource_id, project_id, pct=50, start=None, end=None, **kw):
    alloc = ResourceAllocation(
        scenario_id=scenario_id,
        resource_id=resource_id,
        project_id=project_id,
        allocation_percentage=pct,
        start_date=start,
        end_date=end,
        **kw,
    )
    _db.session.add(alloc)
    _db.session.commit()
    return alloc


def make_requirement(project_id, app_id=1, technology_id=1, role_id=1,
                     proficiency_level="Intermediate", **kw):
    req = ProjectRequirement(
        project_id=project_id, app_id=app_id, technology_id=technology_id,
        role_id=role_id, proficiency_level=proficiency_level, **kw,
    )
    _db.session.add(req)
    _db.session.commit()
    return req


def make_capability(resource_id, app_id=1, technology_id=1, role_id=1,
                    proficiency_level="Intermediate", is_primary=False, **kw):
    cap = ResourceCapability(
        resource_id=resource_id, app_id=app_id, technology_id=technology_id,
        role_id=role_id, proficiency_level=proficiency_level, is_primary=is_primary, **kw,
    )
    _db.session.add(cap)
    _db.session.commit()
    return cap


@pytest.fixture()
def populated_scenario(manager):
    """A planned scenario with two projects, a resource, a milestone,
    project→milestone and project→project dependencies and two allocations."""
    scenario = make_scenario(manager, "Plan A")
    p1 = make_project(scenario.id, "PROJ-001", "ERP rollout")
    p2 = make_project(scenario.id, "PROJ-002", "CRM upgrade")
    resource = make_resource(scenario.id)
    milestone = make_milestone(scenario.id, p1.id, "Design sign-off")
    make_dependency(scenario.id, ("project", p1.id), ("project", p2.id))
    make_dependency(scenario.id, ("milestone", milestone.id), ("project", p2.id))
    make_allocation(scenario.id, resource.id, p1.id, 50,
                    date(2026, 1, 1), date(2026, 3, 31), milestone_id=milestone.id)
    make_allocation(scenario.id, resource.id, p2.id, 40,
                    date(2026, 2, 1), date(2026, 4, 30))
    return scenario
