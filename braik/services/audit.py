"""Audit trail and structured log lines for permission, billing and AI events."""

from __future__ import annotations

from typing import Any

from flask import current_app

from braik.extensions import db
from braik.models import AuditLog


def record_audit(
    team_id: str,
    actor_user_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog | None:
    """
    Add an audit entry to the current transaction.

    The entry is committed together with the mutation it describes, so a rolled
    back mutation leaves no audit row behind.

    Args:
        team_id: Team the mutation belongs to
        actor_user_id: User who performed the action
        action: Action performed (e.g., "event.create", "depth_chart.replace")
        entity_type: Type of entity affected
        entity_id: ID of the affected entity
        metadata: Additional metadata to store
    """
    try:
        entry = AuditLog(
            team_id=team_id,
            actor_user_id=actor_user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=metadata or {},
        )
        db.session.add(entry)
        return entry
    except Exception as e:
        # Don't fail the mutation if audit logging fails
        current_app.logger.error(f"Failed to record audit entry {action}: {e}")
        return None


def log_permission_denial(
    user_id: str | None,
    team_id: str | None,
    role: str | None,
    reason: str,
    **context: Any,
) -> None:
    """Log a denied permission check with the acting user, team, role and reason."""
    fields = {"user_id": user_id, "team_id": team_id, "role": _role_value(role), "reason": reason}
    fields.update(context)
    current_app.logger.warning(f"Permission denied: {fields}")


def log_billing_transition(
    team_id: str,
    from_status: str | None,
    to_status: str,
    reason: str | None = None,
) -> None:
    current_app.logger.info(
        f"Billing status for team {team_id} changed {from_status} -> {to_status}"
        + (f" ({reason})" if reason else "")
    )


def log_ai_action(action: str, **context: Any) -> None:
    current_app.logger.info(f"AI action {action}: {context}")


def _role_value(role: Any) -> str | None:
    if role is None:
        return None
    return getattr(role, "value", role)


__all__ = [
    "record_audit",
    "log_permission_denial",
    "log_billing_transition",
    "log_ai_action",
]
