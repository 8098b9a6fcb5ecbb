"""Role names and static capability predicates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from braik.models import MembershipRole
from braik.services.audit import log_permission_denial
from braik.services.errors import PermissionDenied

if TYPE_CHECKING:
    from braik.services.membership import MemberContext


HEAD_COACH = MembershipRole.HEAD_COACH
ASSISTANT_COACH = MembershipRole.ASSISTANT_COACH
PLAYER = MembershipRole.PLAYER
PARENT = MembershipRole.PARENT
SCHOOL_ADMIN = MembershipRole.SCHOOL_ADMIN
PLATFORM_OWNER = MembershipRole.PLATFORM_OWNER

STAFF_ROLES = frozenset({HEAD_COACH, ASSISTANT_COACH})
COACH_ROLES = STAFF_ROLES
ADMIN_ROLES = frozenset({SCHOOL_ADMIN, PLATFORM_OWNER})


def can_manage_team(role: MembershipRole) -> bool:
    return role == HEAD_COACH


def can_edit_roster(role: MembershipRole) -> bool:
    return role in (HEAD_COACH, ASSISTANT_COACH)


def can_manage_billing(role: MembershipRole) -> bool:
    return role == HEAD_COACH


def can_post_announcements(role: MembershipRole) -> bool:
    return role in (HEAD_COACH, ASSISTANT_COACH)


def can_view_payments(role: MembershipRole) -> bool:
    return role == HEAD_COACH


def is_staff(role: MembershipRole) -> bool:
    return role in STAFF_ROLES


def user_type(role: MembershipRole) -> str:
    """Collapse a membership role into the coarse audience bucket used for messaging."""
    if role in STAFF_ROLES:
        return "coach"
    if role == PLAYER:
        return "player"
    if role == PARENT:
        return "parent"
    return "admin"


CAPABILITIES: dict[str, Callable[[MembershipRole], bool]] = {
    "manage": can_manage_team,
    "edit_roster": can_edit_roster,
    "manage_billing": can_manage_billing,
    "post_announcements": can_post_announcements,
    "view_payments": can_view_payments,
}


def require_capability(context: MemberContext, capability: str) -> None:
    """Raise PermissionDenied unless the member's role grants ``capability``."""
    check = CAPABILITIES.get(capability)
    if check is None:
        raise ValueError(f"Unknown capability: {capability}")

    membership = context.membership
    if not check(membership.role):
        reason = f"Insufficient permissions for {capability}"
        log_permission_denial(
            membership.user_id,
            membership.team_id,
            membership.role,
            reason,
            required_permission=capability,
        )
        raise PermissionDenied(reason)
