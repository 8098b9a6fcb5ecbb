"""Write access for scoped resources: ownership and hierarchy, plus the legacy lock."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from braik.models import MembershipRole
from braik.services.audit import log_permission_denial
from braik.services.errors import PermissionDenied
from braik.services.scoping import PositionGroupsScope, UnitScope, coerce_unit, normalize_position_groups

if TYPE_CHECKING:
    from braik.services.membership import MemberContext


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def _is_creator(user_id: str, resource: Any) -> bool:
    return getattr(resource, "created_by", None) == user_id


def _within_scope(context: MemberContext, resource: Any) -> bool:
    scope = context.scope
    if isinstance(scope, UnitScope):
        return coerce_unit(getattr(resource, "scoped_unit", None)) == scope.unit
    if isinstance(scope, PositionGroupsScope):
        groups = set(normalize_position_groups(getattr(resource, "scoped_position_groups", None)))
        return bool(groups & scope.groups)
    return False


def evaluate_edit(user_id: str, resource: Any, context: MemberContext) -> Decision:
    role = context.membership.role

    if role == MembershipRole.HEAD_COACH:
        return ALLOW
    if role in (MembershipRole.PLAYER, MembershipRole.PARENT):
        return Decision(False, "Players and parents cannot edit team resources")
    if role != MembershipRole.ASSISTANT_COACH:
        return Decision(False, f"{role.value} cannot edit team resources")

    if _is_creator(user_id, resource):
        return ALLOW
    if not _within_scope(context, resource):
        return Decision(False, "Resource is outside your coaching scope")
    if getattr(resource, "locked", False):
        return Decision(False, "Resource is locked by the head coach")
    return ALLOW


def evaluate_remove(user_id: str, resource: Any, context: MemberContext) -> Decision:
    role = context.membership.role

    if role == MembershipRole.HEAD_COACH:
        return ALLOW
    if role in (MembershipRole.PLAYER, MembershipRole.PARENT):
        return Decision(False, "Players and parents cannot remove team resources")
    if role != MembershipRole.ASSISTANT_COACH:
        return Decision(False, f"{role.value} cannot remove team resources")

    if not _is_creator(user_id, resource):
        return Decision(False, "Only the creator or the head coach can remove this")
    if getattr(resource, "locked", False):
        return Decision(False, "Resource is locked by the head coach")
    return ALLOW


def can_edit(user_id: str, resource: Any, context: MemberContext) -> bool:
    return evaluate_edit(user_id, resource, context).allowed


def can_remove(user_id: str, resource: Any, context: MemberContext) -> bool:
    return evaluate_remove(user_id, resource, context).allowed


def deny(context: MemberContext, reason: str, **extra: Any) -> None:
    """Log and raise PermissionDenied with ``reason``."""
    membership = context.membership
    log_permission_denial(membership.user_id, membership.team_id, membership.role, reason, **extra)
    raise PermissionDenied(reason)


def require_edit(user_id: str, resource: Any, context: MemberContext) -> None:
    decision = evaluate_edit(user_id, resource, context)
    if not decision:
        deny(context, decision.reason, action="edit", resource_id=getattr(resource, "id", None))


def require_remove(user_id: str, resource: Any, context: MemberContext) -> None:
    decision = evaluate_remove(user_id, resource, context)
    if not decision:
        deny(context, decision.reason, action="remove", resource_id=getattr(resource, "id", None))
