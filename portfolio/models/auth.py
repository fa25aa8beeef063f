"""
Portfolio Scenario Planner
Identity model: the users that own, clone and publish scenarios.

Authentication itself happens upstream; this table only carries what the
scenario engine needs for permission checks (id and role).
"""

from datetime import datetime, timezone

from portfolio.models import db

# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_ADMINISTRATOR = "Administrator"
ROLE_DOMAIN_MANAGER = "Domain Manager"
ROLE_PROJECT_MANAGER = "Project Manager"
ROLE_RESOURCE_MANAGER = "Resource Manager"
ROLE_VIEWER = "Viewer"

USER_ROLES = {
    ROLE_ADMINISTRATOR,
    ROLE_DOMAIN_MANAGER,
    ROLE_PROJECT_MANAGER,
    ROLE_RESOURCE_MANAGER,
    ROLE_VIEWER,
}

# Roles allowed to see every scenario and to publish.
ELEVATED_ROLES = frozenset({ROLE_ADMINISTRATOR, ROLE_DOMAIN_MANAGER})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    full_name = db.Column(db.String(200))
    role = db.Column(
        db.String(50), nullable=False, default=ROLE_VIEWER,
        comment="Administrator | Domain Manager | Project Manager | Resource Manager | Viewer",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_elevated(self):
        return self.role in ELEVATED_ROLES

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
