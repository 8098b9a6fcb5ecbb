"""Depth chart editing authority.

Head coach edits every unit, a coordinator edits their own unit, and a
position coach edits the slots of their position groups. Everyone on the team
can read the chart.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import selectinload

from braik.extensions import db
from braik.models import DepthChartEntry, MembershipRole, Player, PlayerStatus, SideOfBall, Unit
from braik.services.audit import record_audit
from braik.services.authorization import deny
from braik.services.billing import require_billing_permission
from braik.services.errors import ValidationError
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.payloads import parse_enum, parse_int
from braik.services.scoping import CoordinatorAssignment, PositionAssignment, unit_for_position_group

SIDE_UNITS = {
    SideOfBall.OFFENSE: Unit.OFFENSE,
    SideOfBall.DEFENSE: Unit.DEFENSE,
    SideOfBall.SPECIAL_TEAMS: Unit.SPECIAL_TEAMS,
}

# Chart slots covered by each position group
POSITION_ALIASES = {
    SideOfBall.OFFENSE: {
        "OL": ("LT", "LG", "C", "RG", "RT"),
        "WR": ("WR", "WRX", "WRY", "WRZ", "WR1", "WR2", "WR3"),
        "RB": ("RB", "HB", "FB"),
        "TE": ("TE",),
        "QB": ("QB",),
    },
    SideOfBall.DEFENSE: {
        "DL": ("DE", "DT", "DL"),
        "LB": ("OLB", "ILB", "MLB", "LB"),
        "DB": ("CB", "S", "FS", "SS", "DB"),
    },
    SideOfBall.SPECIAL_TEAMS: {
        "K": ("K",),
        "P": ("P",),
        "LS": ("LS",),
    },
}


def can_edit_depth_chart_unit(context: MemberContext, unit: SideOfBall) -> bool:
    role = context.role
    if role == MembershipRole.HEAD_COACH:
        return True
    if role != MembershipRole.ASSISTANT_COACH:
        return False

    target = SIDE_UNITS[unit]
    assignment = context.assignment
    if isinstance(assignment, CoordinatorAssignment):
        return assignment.unit == target
    if isinstance(assignment, PositionAssignment):
        return any(unit_for_position_group(group) == target for group in assignment.position_groups)
    return False


def can_edit_depth_chart_position(context: MemberContext, unit: SideOfBall, position: str) -> bool:
    if not can_edit_depth_chart_unit(context, unit):
        return False
    if context.is_head_coach or context.is_coordinator:
        return True

    assignment = context.assignment
    if not isinstance(assignment, PositionAssignment):
        return False

    slot = position.strip().upper()
    aliases = POSITION_ALIASES.get(unit, {})
    for group in assignment.position_groups:
        if slot == group or slot in aliases.get(group, ()):
            return True
    return False


def _parse_entry(raw: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValidationError("Each entry must be an object")
    if not raw.get("unit") or not raw.get("position") or raw.get("string") in (None, ""):
        raise ValidationError("Each entry must have unit, position, and string")

    string = parse_int(raw["string"], "string")
    if string < 1:
        raise ValidationError("string must be 1 or greater", field="string")
    return {
        "unit": parse_enum(SideOfBall, raw["unit"], "unit"),
        "position": str(raw["position"]).strip().upper(),
        "string": string,
        "player_id": raw.get("player_id") or None,
        "special_team_type": raw.get("special_team_type") or None,
    }


class DepthChartService:
    """Service for reading and replacing depth chart slots."""

    @staticmethod
    def list_entries(team_id: str, user_id: str) -> list[DepthChartEntry]:
        require_billing_permission(team_id, "view")
        MembershipDirectory.load_context(user_id, team_id)

        stmt = (
            select(DepthChartEntry)
            .options(selectinload(DepthChartEntry.player))
            .where(DepthChartEntry.team_id == team_id)
            .order_by(
                DepthChartEntry.unit,
                DepthChartEntry.special_team_type,
                DepthChartEntry.position,
                DepthChartEntry.string,
            )
        )
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def replace_entries(team_id: str, user_id: str, entries: Iterable[dict[str, Any]]) -> list[DepthChartEntry]:
        """Replace the given slots. An entry without a player clears its slot.

        All slots are deleted and recreated in one transaction, so readers
        never see a partially emptied chart.
        """
        require_billing_permission(team_id, "edit_depth_charts")
        context = MembershipDirectory.load_context(user_id, team_id)

        if entries is None or isinstance(entries, (str, dict)):
            raise ValidationError("Entries must be an array")

        parsed = [_parse_entry(raw) for raw in entries]
        slots = [(e["unit"], e["position"], e["string"], e["special_team_type"]) for e in parsed]
        if len(set(slots)) != len(slots):
            raise ValidationError("Each depth chart slot may appear only once")
        for entry in parsed:
            unit, position = entry["unit"], entry["position"]
            if not can_edit_depth_chart_unit(context, unit):
                deny(context, f"You do not have permission to edit {unit.value} depth charts", unit=unit.value)
            if not can_edit_depth_chart_position(context, unit, position):
                deny(
                    context,
                    f"You do not have permission to edit {position} position in {unit.value}",
                    unit=unit.value,
                    position=position,
                )

        DepthChartService._validate_players(team_id, [e["player_id"] for e in parsed if e["player_id"]])

        created: list[DepthChartEntry] = []
        try:
            if parsed:
                db.session.execute(
                    delete(DepthChartEntry).where(
                        DepthChartEntry.team_id == team_id,
                        or_(*(
                            and_(
                                DepthChartEntry.unit == e["unit"],
                                DepthChartEntry.position == e["position"],
                                DepthChartEntry.string == e["string"],
                                DepthChartEntry.special_team_type.is_(None)
                                if e["special_team_type"] is None
                                else DepthChartEntry.special_team_type == e["special_team_type"],
                            )
                            for e in parsed
                        )),
                    ).execution_options(synchronize_session=False)
                )

            for entry in parsed:
                if entry["player_id"] is None:
                    continue
                row = DepthChartEntry(team_id=team_id, **entry)
                db.session.add(row)
                created.append(row)

            db.session.flush()
            record_audit(team_id, user_id, "depth_chart_updated", "depth_chart", None, {
                "entries_count": len(parsed),
                "units": sorted({e["unit"].value for e in parsed}),
            })
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return created

    @staticmethod
    def _validate_players(team_id: str, player_ids: list[str]) -> None:
        if not player_ids:
            return
        stmt = select(Player.id).where(
            Player.id.in_(player_ids),
            Player.team_id == team_id,
            Player.status == PlayerStatus.ACTIVE,
        )
        valid = set(db.session.execute(stmt).scalars())
        for player_id in player_ids:
            if player_id not in valid:
                raise ValidationError(
                    f"Player {player_id} is not in the team roster or is inactive",
                    player_id=player_id,
                )
