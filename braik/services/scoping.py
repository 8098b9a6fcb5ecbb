"""Staff assignments, viewer scopes and the scoping stamped on new resources.

A membership stores an opaque ``permissions`` blob plus a list of position
groups. That pair is decoded exactly once, into a ``StaffAssignment``, when the
membership is loaded. Everything downstream works with the decoded value.

Scopes describe the slice of the program a member operates on:

    ProgramWide           head coach, school admin
    UnitScope             coordinator (offense / defense / special teams)
    PositionGroupsScope   position coach
    OwnChildScope         parent, limited to linked players
    SelfScope             player
    NoScope               everyone else; never grants scoped access
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from braik.models import CoordinatorType, MembershipRole, Unit

if TYPE_CHECKING:
    from braik.services.membership import MemberContext


OFFENSIVE_POSITIONS = ("QB", "RB", "WR", "OL", "TE", "FB")
DEFENSIVE_POSITIONS = ("DL", "LB", "DB", "DE", "DT", "CB", "S", "OLB", "ILB", "FS", "SS")
SPECIAL_TEAMS_POSITIONS = ("K", "P", "LS", "KR", "PR")

POSITIONS_BY_UNIT = {
    Unit.OFFENSE: OFFENSIVE_POSITIONS,
    Unit.DEFENSE: DEFENSIVE_POSITIONS,
    Unit.SPECIAL_TEAMS: SPECIAL_TEAMS_POSITIONS,
}

UNIT_BY_POSITION = {
    position: unit
    for unit, positions in POSITIONS_BY_UNIT.items()
    for position in positions
}

COORDINATOR_UNITS = {
    CoordinatorType.OFFENSIVE_COORDINATOR: Unit.OFFENSE,
    CoordinatorType.DEFENSIVE_COORDINATOR: Unit.DEFENSE,
    CoordinatorType.SPECIAL_TEAMS_COORDINATOR: Unit.SPECIAL_TEAMS,
}

# Short codes written by older clients
LEGACY_COORDINATOR_CODES = {
    "OC": CoordinatorType.OFFENSIVE_COORDINATOR,
    "DC": CoordinatorType.DEFENSIVE_COORDINATOR,
    "ST": CoordinatorType.SPECIAL_TEAMS_COORDINATOR,
}


def unit_for_position_group(position_group: str | None) -> Unit | None:
    if not position_group:
        return None
    return UNIT_BY_POSITION.get(position_group.strip().upper())


def parse_coordinator_type(value: Any) -> CoordinatorType | None:
    """Accept a CoordinatorType, its name, or one of the legacy short codes."""
    if value is None or value == "":
        return None
    if isinstance(value, CoordinatorType):
        return value
    text = str(value).strip().upper()
    if text in LEGACY_COORDINATOR_CODES:
        return LEGACY_COORDINATOR_CODES[text]
    try:
        return CoordinatorType(text)
    except ValueError:
        return None


def coerce_unit(value: Any) -> Unit | None:
    if value is None or value == "":
        return None
    if isinstance(value, Unit):
        return value
    try:
        return Unit(str(value).strip().upper())
    except ValueError:
        return None


def normalize_position_groups(groups: Iterable[str] | None) -> tuple[str, ...]:
    """Upper-case, strip and de-duplicate position codes, keeping their order."""
    if not groups:
        return ()
    seen: list[str] = []
    for group in groups:
        if not isinstance(group, str):
            continue
        code = group.strip().upper()
        if code and code not in seen:
            seen.append(code)
    return tuple(seen)


# ---------------------------------------------------------------------------
# Staff assignments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CoordinatorAssignment:
    coordinator_type: CoordinatorType

    @property
    def unit(self) -> Unit:
        return COORDINATOR_UNITS[self.coordinator_type]


@dataclass(frozen=True)
class PositionAssignment:
    position_groups: tuple[str, ...]

    @property
    def units(self) -> frozenset[Unit]:
        return frozenset(
            unit for unit in map(unit_for_position_group, self.position_groups) if unit
        )


@dataclass(frozen=True)
class NoAssignment:
    pass


StaffAssignment = Union[CoordinatorAssignment, PositionAssignment, NoAssignment]


def decode_assignment(permissions: Any, position_groups: Any) -> StaffAssignment:
    """Decode the stored permissions blob and position groups of a membership.

    A coordinator type takes precedence over position groups.
    """
    if isinstance(permissions, dict):
        raw = permissions.get("coordinatorType", permissions.get("coordinator_type"))
        coordinator_type = parse_coordinator_type(raw)
        if coordinator_type is not None:
            return CoordinatorAssignment(coordinator_type)

    groups = normalize_position_groups(position_groups if isinstance(position_groups, (list, tuple)) else None)
    if groups:
        return PositionAssignment(groups)
    return NoAssignment()


def encode_assignment(assignment: StaffAssignment) -> tuple[dict | None, list | None]:
    """Inverse of ``decode_assignment``: the (permissions, position_groups) pair to store."""
    if isinstance(assignment, CoordinatorAssignment):
        return {"coordinatorType": assignment.coordinator_type.value}, None
    if isinstance(assignment, PositionAssignment):
        return None, list(assignment.position_groups)
    return None, None


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgramWide:
    pass


@dataclass(frozen=True)
class UnitScope:
    unit: Unit


@dataclass(frozen=True)
class PositionGroupsScope:
    groups: frozenset[str]


@dataclass(frozen=True)
class OwnChildScope:
    player_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class SelfScope:
    player_id: str
    position_group: Optional[str] = None

    @property
    def unit(self) -> Unit | None:
        return unit_for_position_group(self.position_group)


@dataclass(frozen=True)
class NoScope:
    role: MembershipRole


Scope = Union[ProgramWide, UnitScope, PositionGroupsScope, OwnChildScope, SelfScope, NoScope]


def resolve_scope(
    role: MembershipRole,
    assignment: StaffAssignment,
    *,
    self_player: Any = None,
    child_player_ids: Iterable[str] = (),
) -> Scope:
    """Compute the scope a member operates under.

    ``self_player`` is the player row linked to the member (players only) and
    ``child_player_ids`` the team's players linked through guardianship
    (parents only). Both are looked up by the caller.
    """
    if role in (MembershipRole.HEAD_COACH, MembershipRole.SCHOOL_ADMIN):
        return ProgramWide()

    if role == MembershipRole.ASSISTANT_COACH:
        if isinstance(assignment, CoordinatorAssignment):
            return UnitScope(assignment.unit)
        if isinstance(assignment, PositionAssignment):
            return PositionGroupsScope(frozenset(assignment.position_groups))
        return NoScope(role)

    if role == MembershipRole.PLAYER:
        if self_player is None:
            return NoScope(role)
        return SelfScope(self_player.id, getattr(self_player, "position_group", None))

    if role == MembershipRole.PARENT:
        return OwnChildScope(frozenset(child_player_ids))

    return NoScope(role)


def scope_covers_player(scope: Scope, player: Any) -> bool:
    """True when ``player`` falls inside the slice of the program ``scope`` describes."""
    if isinstance(scope, ProgramWide):
        return True
    if isinstance(scope, UnitScope):
        return unit_for_position_group(player.position_group) == scope.unit
    if isinstance(scope, PositionGroupsScope):
        return (player.position_group or "").upper() in scope.groups
    if isinstance(scope, OwnChildScope):
        return player.id in scope.player_ids
    if isinstance(scope, SelfScope):
        return player.id == scope.player_id
    return False


# ---------------------------------------------------------------------------
# Scoping for new resources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScopingFields:
    scoped_unit: Unit | None = None
    scoped_position_groups: list[str] | None = None
    scoped_player_ids: list[str] | None = None
    coordinator_type: CoordinatorType | None = None

    @property
    def is_unscoped(self) -> bool:
        return (
            self.scoped_unit is None
            and not self.scoped_position_groups
            and not self.scoped_player_ids
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "scoped_unit": self.scoped_unit,
            "scoped_position_groups": self.scoped_position_groups,
            "scoped_player_ids": self.scoped_player_ids,
            "coordinator_type": self.coordinator_type,
        }

    def apply(self, resource: Any) -> None:
        for key, value in self.as_dict().items():
            setattr(resource, key, value)


SCOPING_FIELD_NAMES = tuple(ScopingFields().as_dict())


def scoping_for_new_resource(context: MemberContext) -> ScopingFields:
    """Scoping stamped on a resource created by ``context``'s member."""
    role = context.membership.role
    assignment = context.assignment

    if role == MembershipRole.ASSISTANT_COACH:
        if isinstance(assignment, CoordinatorAssignment):
            return ScopingFields(
                scoped_unit=assignment.unit,
                coordinator_type=assignment.coordinator_type,
            )
        if isinstance(assignment, PositionAssignment):
            return ScopingFields(scoped_position_groups=list(assignment.position_groups))

    return ScopingFields()


@dataclass
class ScopeSummary:
    """Serializable description of a member's scope, for API responses."""

    kind: str
    unit: str | None = None
    position_groups: list[str] = field(default_factory=list)
    player_ids: list[str] = field(default_factory=list)

    @classmethod
    def of(cls, scope: Scope) -> "ScopeSummary":
        if isinstance(scope, ProgramWide):
            return cls("program")
        if isinstance(scope, UnitScope):
            return cls("unit", unit=scope.unit.value)
        if isinstance(scope, PositionGroupsScope):
            return cls("position_groups", position_groups=sorted(scope.groups))
        if isinstance(scope, OwnChildScope):
            return cls("own_child", player_ids=sorted(scope.player_ids))
        if isinstance(scope, SelfScope):
            unit = scope.unit
            return cls(
                "self",
                unit=unit.value if unit else None,
                position_groups=[scope.position_group] if scope.position_group else [],
                player_ids=[scope.player_id],
            )
        return cls("none")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "unit": self.unit,
            "position_groups": self.position_groups,
            "player_ids": self.player_ids,
        }
