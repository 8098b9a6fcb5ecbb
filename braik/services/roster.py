"""Roster reads and staff assignments."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import select

from braik.blueprints.common.team import get_team_object
from braik.extensions import db
from braik.models import Guardian, GuardianPlayer, Membership, MembershipRole, Player, PlayerStatus, User
from braik.services.audit import record_audit
from braik.services.authorization import deny
from braik.services.billing import require_billing_permission
from braik.services.errors import ValidationError
from braik.services.membership import MembershipDirectory, invalidate_member_context
from braik.services.payloads import parse_enum, parse_int, require_fields
from braik.services.roles import require_capability
from braik.services.scoping import (
    CoordinatorAssignment,
    NoAssignment,
    NoScope,
    PositionAssignment,
    StaffAssignment,
    encode_assignment,
    normalize_position_groups,
    parse_coordinator_type,
    scope_covers_player,
)

_ASSIGNMENT_KEYS = ("coordinatorType", "coordinator_type")


def build_assignment(coordinator_type: Any = None, position_groups: Iterable[str] | None = None) -> StaffAssignment:
    if coordinator_type:
        parsed = parse_coordinator_type(coordinator_type)
        if parsed is None:
            raise ValidationError(f"Unknown coordinator type: {coordinator_type}", field="coordinator_type")
        if position_groups:
            raise ValidationError("A coordinator cannot also have position groups")
        return CoordinatorAssignment(parsed)
    groups = normalize_position_groups(position_groups)
    if groups:
        return PositionAssignment(groups)
    return NoAssignment()


def apply_staff_assignment(membership: Membership, assignment: StaffAssignment) -> None:
    """Store ``assignment`` on ``membership``, keeping unrelated permission keys."""
    if membership.role != MembershipRole.ASSISTANT_COACH:
        raise ValidationError("Only assistant coaches can hold a staff assignment")

    permissions, position_groups = encode_assignment(assignment)
    kept = {
        key: value
        for key, value in (membership.permissions or {}).items()
        if key not in _ASSIGNMENT_KEYS
    }
    kept.update(permissions or {})
    membership.permissions = kept or None
    membership.position_groups = position_groups
    invalidate_member_context(membership.user_id, membership.team_id)


class RosterService:
    """Service for players, guardians and staff assignments."""

    @staticmethod
    def list_players(team_id: str, user_id: str, include_inactive: bool = False) -> list[Player]:
        """Players visible to the caller.

        Parents see their own children, coordinators see their unit and
        position coaches see their groups. Other members see the whole roster.
        """
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        stmt = select(Player).where(Player.team_id == team_id)
        if not include_inactive:
            stmt = stmt.where(Player.status == PlayerStatus.ACTIVE)
        stmt = stmt.order_by(Player.last_name, Player.first_name)
        players = list(db.session.execute(stmt).scalars())

        if context.role == MembershipRole.PLAYER:
            return players
        if isinstance(context.scope, NoScope):
            return players if context.role == MembershipRole.ASSISTANT_COACH else []
        return [player for player in players if scope_covers_player(context.scope, player)]

    @staticmethod
    def add_player(team_id: str, user_id: str, payload: dict[str, Any]) -> Player:
        """Add a player; with an email, also link a user account and a PLAYER membership."""
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        require_capability(context, "edit_roster")

        require_fields(payload, "first_name", "last_name")
        player = Player(
            team_id=team_id,
            first_name=str(payload["first_name"]).strip(),
            last_name=str(payload["last_name"]).strip(),
            position_group=str(payload.get("position_group") or "").strip().upper() or None,
            jersey_number=parse_int(payload.get("jersey_number"), "jersey_number"),
            status=PlayerStatus.ACTIVE,
        )

        email = (payload.get("email") or "").strip().lower()
        if email:
            user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
            if user is None:
                user = User(email=email, name=player.full_name)
                db.session.add(user)
                db.session.flush()
            player.user_id = user.id
            if MembershipDirectory.find_membership(user.id, team_id) is None:
                db.session.add(Membership(user_id=user.id, team_id=team_id, role=MembershipRole.PLAYER))

        db.session.add(player)
        db.session.flush()
        record_audit(team_id, user_id, "player_added", "player", player.id, {"player_name": player.full_name})
        db.session.commit()
        return player

    @staticmethod
    def update_player(team_id: str, player_id: str, user_id: str, patch: dict[str, Any]) -> Player:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        require_capability(context, "edit_roster")
        player = get_team_object(Player, team_id, player_id, "Player")

        in_scope = isinstance(context.scope, NoScope) or scope_covers_player(context.scope, player)
        if not in_scope:
            deny(context, "You can only edit players in your scope", player_id=player.id)

        for field in ("first_name", "last_name"):
            if field in patch:
                value = str(patch[field] or "").strip()
                if not value:
                    raise ValidationError(f"{field} cannot be empty", field=field)
                setattr(player, field, value)
        if "position_group" in patch:
            player.position_group = str(patch["position_group"] or "").strip().upper() or None
        if "jersey_number" in patch:
            player.jersey_number = parse_int(patch["jersey_number"], "jersey_number")
        if "status" in patch:
            player.status = parse_enum(PlayerStatus, patch["status"], "status", player.status)

        record_audit(team_id, user_id, "player_updated", "player", player.id, {"fields": sorted(patch)})
        db.session.commit()
        invalidate_member_context(team_id=team_id)
        return player

    @staticmethod
    def link_guardian(team_id: str, player_id: str, user_id: str, guardian_user_id: str) -> GuardianPlayer:
        """Link a parent account to a player, adding a PARENT membership when missing."""
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        require_capability(context, "edit_roster")
        player = get_team_object(Player, team_id, player_id, "Player")

        guardian_user = db.session.get(User, guardian_user_id)
        if guardian_user is None:
            raise ValidationError("Unknown guardian user", field="guardian_user_id")

        membership = MembershipDirectory.find_membership(guardian_user.id, team_id)
        if membership is None:
            db.session.add(Membership(user_id=guardian_user.id, team_id=team_id, role=MembershipRole.PARENT))
        elif membership.role != MembershipRole.PARENT:
            raise ValidationError("That user already holds a non-parent role on this team")

        guardian = db.session.execute(
            select(Guardian).where(Guardian.user_id == guardian_user.id)
        ).scalar_one_or_none()
        if guardian is None:
            guardian = Guardian(user_id=guardian_user.id)
            db.session.add(guardian)
            db.session.flush()

        link = db.session.execute(
            select(GuardianPlayer).where(
                GuardianPlayer.guardian_id == guardian.id,
                GuardianPlayer.player_id == player.id,
            )
        ).scalar_one_or_none()
        if link is None:
            link = GuardianPlayer(guardian_id=guardian.id, player_id=player.id)
            db.session.add(link)
            db.session.flush()
            record_audit(team_id, user_id, "guardian_linked", "player", player.id, {
                "guardian_user_id": guardian_user.id,
            })
        db.session.commit()
        invalidate_member_context(guardian_user.id, team_id)
        return link

    @staticmethod
    def assign_staff_role(
        team_id: str,
        actor_user_id: str,
        membership_id: str,
        coordinator_type: Any = None,
        position_groups: Iterable[str] | None = None,
    ) -> Membership:
        """Make an assistant a coordinator, a position coach, or clear the assignment."""
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(actor_user_id, team_id)
        if not context.is_head_coach:
            deny(context, "Only the head coach can assign staff roles")

        membership = get_team_object(Membership, team_id, membership_id, "Membership")
        assignment = build_assignment(coordinator_type, position_groups)
        apply_staff_assignment(membership, assignment)

        record_audit(team_id, actor_user_id, "staff_role_assigned", "membership", membership.id, {
            "user_id": membership.user_id,
            "permissions": membership.permissions,
            "position_groups": membership.position_groups,
        })
        db.session.commit()
        return membership
