"""Playbook access by side of the ball."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select

from braik.blueprints.common.team import get_team_object
from braik.extensions import db
from braik.models import Play, SideOfBall
from braik.services.audit import record_audit
from braik.services.authorization import deny
from braik.services.billing import require_billing_permission
from braik.services.depth_chart import SIDE_UNITS
from braik.services.errors import ResourceNotFound, ValidationError
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.payloads import parse_enum, require_fields
from braik.services.scoping import CoordinatorAssignment


def allowed_sides(context: MemberContext) -> frozenset[SideOfBall]:
    """Sides a member may read and write. Empty for everyone but the head coach and coordinators."""
    if context.is_head_coach:
        return frozenset(SideOfBall)
    if context.is_coordinator:
        assignment: CoordinatorAssignment = context.assignment
        return frozenset(side for side, unit in SIDE_UNITS.items() if unit == assignment.unit)
    return frozenset()


class PlayService:
    """Service for playbook entries."""

    @staticmethod
    def list_plays(team_id: str, user_id: str, side: str | None = None) -> list[Play]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        sides = allowed_sides(context)
        if side:
            sides = sides & {parse_enum(SideOfBall, side, "side")}
        if not sides:
            return []

        stmt = (
            select(Play)
            .where(Play.team_id == team_id, Play.side.in_(sides))
            .order_by(Play.side, Play.name)
        )
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def get_play(team_id: str, play_id: str, user_id: str) -> Play:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)
        play = get_team_object(Play, team_id, play_id, "Play")
        if play.side not in allowed_sides(context):
            raise ResourceNotFound("Play")
        return play

    @staticmethod
    def create_play(team_id: str, user_id: str, payload: dict[str, Any]) -> Play:
        require_billing_permission(team_id, "create")
        context = MembershipDirectory.load_context(user_id, team_id)

        require_fields(payload, "side", "name")
        side = parse_enum(SideOfBall, payload["side"], "side")
        if side not in allowed_sides(context):
            deny(context, f"You don't have permission to create {side.value} plays", side=side.value)

        play = Play(
            team_id=team_id,
            created_by=user_id,
            side=side,
            name=str(payload["name"]).strip(),
            formation=payload.get("formation") or None,
            data=payload.get("data"),
        )
        db.session.add(play)
        db.session.flush()
        record_audit(team_id, user_id, "play_created", "play", play.id, {"name": play.name, "side": side.value})
        db.session.commit()
        return play

    @staticmethod
    def update_play(team_id: str, play_id: str, user_id: str, patch: dict[str, Any]) -> Play:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        play = get_team_object(Play, team_id, play_id, "Play")

        sides = allowed_sides(context)
        if play.side not in sides:
            deny(context, "You don't have permission to edit this play", resource_id=play.id)

        if "side" in patch:
            side = parse_enum(SideOfBall, patch["side"], "side", play.side)
            if side not in sides:
                deny(context, f"You don't have permission to move plays to {side.value}", resource_id=play.id)
            play.side = side
        if "name" in patch:
            name = str(patch["name"] or "").strip()
            if not name:
                raise ValidationError("name cannot be empty", field="name")
            play.name = name
        if "formation" in patch:
            play.formation = patch["formation"] or None
        if "data" in patch:
            play.data = patch["data"]

        record_audit(team_id, user_id, "play_updated", "play", play.id, {"fields": sorted(patch)})
        db.session.commit()
        return play

    @staticmethod
    def remove_play(team_id: str, play_id: str, user_id: str) -> None:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        play = get_team_object(Play, team_id, play_id, "Play")
        if not context.is_head_coach:
            deny(context, "Only the head coach can delete plays", resource_id=play.id)

        record_audit(team_id, user_id, "play_deleted", "play", play.id, {"name": play.name})
        db.session.delete(play)
        db.session.commit()
