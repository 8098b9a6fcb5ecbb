"""Read access for scoped resources.

Every list handler, and the notification recipient resolver, filters through
``filter_visible`` so that the hierarchy is evaluated in one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, TypeVar

from braik.models import EventVisibility, MembershipRole
from braik.services.scoping import (
    NoScope,
    OwnChildScope,
    PositionGroupsScope,
    ProgramWide,
    Scope,
    SelfScope,
    UnitScope,
    coerce_unit,
    normalize_position_groups,
)

if TYPE_CHECKING:
    from braik.services.membership import MemberContext

T = TypeVar("T")

# Levels a role may see; roles not listed see every level
LEVELS_BY_ROLE = {
    MembershipRole.PLAYER: frozenset({EventVisibility.TEAM, EventVisibility.PARENTS_AND_TEAM}),
    MembershipRole.PARENT: frozenset({EventVisibility.TEAM, EventVisibility.PARENTS_AND_TEAM}),
}

# Roles that see unscoped resources without a resolved scope
UNSCOPED_READERS = frozenset({MembershipRole.ASSISTANT_COACH, MembershipRole.PLAYER})


def _level(value: Any) -> EventVisibility | None:
    if value is None or isinstance(value, EventVisibility):
        return value
    try:
        return EventVisibility(str(value).upper())
    except ValueError:
        return None


def level_permits(role: MembershipRole, level: Any) -> bool:
    """Coarse visibility-level check. Players and parents never see COACHES_ONLY."""
    level = _level(level)
    if level is None:
        return True
    allowed = LEVELS_BY_ROLE.get(role)
    return allowed is None or level in allowed


def is_unscoped(resource: Any) -> bool:
    return (
        getattr(resource, "scoped_unit", None) is None
        and not getattr(resource, "scoped_position_groups", None)
        and not getattr(resource, "scoped_player_ids", None)
    )


def can_view(scope: Scope, resource: Any, *, created_by_head_coach: bool = False) -> bool:
    """Scope check for one resource; the first matching rule decides."""
    if isinstance(scope, ProgramWide):
        return True

    if is_unscoped(resource):
        if isinstance(scope, (UnitScope, PositionGroupsScope, SelfScope)):
            return True
        if isinstance(scope, OwnChildScope):
            # Parents only see program-wide items from the head coach
            return created_by_head_coach
        if isinstance(scope, NoScope):
            return scope.role in UNSCOPED_READERS
        return False

    resource_unit = coerce_unit(getattr(resource, "scoped_unit", None))
    resource_groups = set(normalize_position_groups(getattr(resource, "scoped_position_groups", None)))

    if isinstance(scope, UnitScope):
        return resource_unit == scope.unit

    if isinstance(scope, PositionGroupsScope):
        return bool(resource_groups & scope.groups)

    if isinstance(scope, SelfScope):
        if resource_unit is not None and resource_unit == scope.unit:
            return True
        if scope.position_group and scope.position_group.upper() in resource_groups:
            return True
        return scope.player_id in (getattr(resource, "scoped_player_ids", None) or ())

    return False


def can_view_with_level(context: MemberContext, resource: Any, *, created_by_head_coach: bool = False) -> bool:
    """Both the coarse level and the scope must let the member see ``resource``."""
    if not level_permits(context.membership.role, getattr(resource, "visibility", None)):
        return False
    return can_view(context.scope, resource, created_by_head_coach=created_by_head_coach)


def filter_visible(context: MemberContext, resources: Iterable[T], head_coach_ids: Iterable[str]) -> list[T]:
    """Post-filter a team query down to what ``context``'s member may read."""
    head_coaches = set(head_coach_ids)
    return [
        resource
        for resource in resources
        if can_view_with_level(
            context,
            resource,
            created_by_head_coach=getattr(resource, "created_by", None) in head_coaches,
        )
    ]
