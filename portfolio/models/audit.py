"""
Portfolio Scenario Planner
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for scenario and
      scoped-entity mutations.
"""

import json
import logging
from datetime import datetime, timezone

from portfolio.models import db

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"scenario", "dependency", "allocation"}

AUDIT_ACTIONS = {
    # Scenario lifecycle
    "scenario.create",
    "scenario.update",
    "scenario.clone",
    "scenario.publish",
    "scenario.delete",
    # Scoped entities
    "dependency.create",
    "dependency.delete",
    "allocation.create",
    "allocation.update",
    "allocation.delete",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every mutating engine operation.

    One row per action.  ``diff_json`` carries the old→new snapshot or the
    operation summary (e.g. clone counts).
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_scenario", "scenario_id"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    scenario_id = db.Column(db.Integer, nullable=True)

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False, comment="scenario | dependency | allocation",
    )
    entity_id = db.Column(db.String(36), nullable=False)

    action = db.Column(
        db.String(60), nullable=False, comment="scenario.publish | allocation.update | …",
    )
    actor_user_id = db.Column(db.Integer, nullable=True)

    diff_json = db.Column(db.Text, default="{}")

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor_user_id": self.actor_user_id,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    actor_user_id: int | None = None,
    scenario_id: int | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row and log the event.  Uses ``flush`` so callers
    keep transaction control.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        scenario_id=scenario_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_user_id=actor_user_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    logger.info(
        "%s %s/%s by user %s",
        action, entity_type, entity_id, actor_user_id,
        extra={"event_type": action, "scenario_id": scenario_id, "actor_id": actor_user_id},
    )
    return log


def record_audit(**kwargs) -> AuditLog | None:
    """
    Best-effort audit for an already committed mutation.

    Writes and commits the row in its own transaction.  A failure is logged
    and rolled back; the business change it describes stays committed.
    Multi-row operations that must stay atomic with their audit row (clone)
    call ``write_audit`` inside their own transaction instead.
    """
    try:
        log = write_audit(**kwargs)
        db.session.commit()
        return log
    except Exception:
        db.session.rollback()
        logger.warning(
            "Audit log failed for %s %s/%s; main flow unaffected",
            kwargs.get("action"), kwargs.get("entity_type"), kwargs.get("entity_id"),
            exc_info=True,
        )
        return None
