"""Membership lookups and the per-request member context."""

from __future__ import annotations

from dataclasses import dataclass

from flask import g, has_request_context
from sqlalchemy import select

from braik.extensions import db
from braik.models import (
    Guardian,
    GuardianPlayer,
    Membership,
    MembershipRole,
    Player,
    Team,
)
from braik.services.audit import log_permission_denial
from braik.services.errors import MembershipNotFound, Unauthenticated
from braik.services.scoping import (
    CoordinatorAssignment,
    PositionAssignment,
    Scope,
    StaffAssignment,
    decode_assignment,
    resolve_scope,
)


@dataclass(frozen=True)
class MemberContext:
    """A loaded membership with its decoded assignment and resolved scope."""

    membership: Membership
    assignment: StaffAssignment
    scope: Scope

    @property
    def user_id(self) -> str:
        return self.membership.user_id

    @property
    def team_id(self) -> str:
        return self.membership.team_id

    @property
    def role(self) -> MembershipRole:
        return self.membership.role

    @property
    def is_head_coach(self) -> bool:
        return self.role == MembershipRole.HEAD_COACH

    @property
    def is_coordinator(self) -> bool:
        return self.role == MembershipRole.ASSISTANT_COACH and isinstance(self.assignment, CoordinatorAssignment)

    @property
    def is_position_coach(self) -> bool:
        return self.role == MembershipRole.ASSISTANT_COACH and isinstance(self.assignment, PositionAssignment)

    @property
    def is_school_team(self) -> bool:
        team = self.membership.team
        return bool(team and team.organization and team.organization.is_high_school)


def _memo() -> dict[tuple[str, str], MemberContext] | None:
    if not has_request_context():
        return None
    if "_member_contexts" not in g:
        g._member_contexts = {}
    return g._member_contexts


def invalidate_member_context(user_id: str | None = None, team_id: str | None = None) -> None:
    """Drop memoized contexts matching ``user_id`` and/or ``team_id`` (all when both are None)."""
    memo = _memo()
    if memo is None:
        return
    for key in list(memo):
        if (user_id is None or key[0] == user_id) and (team_id is None or key[1] == team_id):
            del memo[key]


class MembershipDirectory:
    """Persistence lookups behind scope resolution."""

    @staticmethod
    def find_membership(user_id: str, team_id: str) -> Membership | None:
        stmt = select(Membership).where(
            Membership.user_id == user_id,
            Membership.team_id == team_id,
        )
        return db.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def find_player_by_self(user_id: str, team_id: str) -> Player | None:
        stmt = select(Player).where(Player.user_id == user_id, Player.team_id == team_id)
        return db.session.execute(stmt).scalars().first()

    @staticmethod
    def find_guardian_links(user_id: str, team_id: str) -> list[str]:
        """IDs of the team's players linked to ``user_id`` as guardian."""
        stmt = (
            select(Player.id)
            .join(GuardianPlayer, GuardianPlayer.player_id == Player.id)
            .join(Guardian, Guardian.id == GuardianPlayer.guardian_id)
            .where(Guardian.user_id == user_id, Player.team_id == team_id)
        )
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def guardian_user_ids(player_ids: list[str]) -> dict[str, list[str]]:
        """Map player id -> guardian user ids."""
        if not player_ids:
            return {}
        stmt = (
            select(GuardianPlayer.player_id, Guardian.user_id)
            .join(Guardian, Guardian.id == GuardianPlayer.guardian_id)
            .where(GuardianPlayer.player_id.in_(player_ids))
        )
        links: dict[str, list[str]] = {}
        for player_id, user_id in db.session.execute(stmt):
            links.setdefault(player_id, []).append(user_id)
        return links

    @staticmethod
    def head_coach_ids(team_id: str) -> set[str]:
        stmt = select(Membership.user_id).where(
            Membership.team_id == team_id,
            Membership.role == MembershipRole.HEAD_COACH,
        )
        return set(db.session.execute(stmt).scalars())

    @staticmethod
    def team_members(team_id: str) -> list[Membership]:
        stmt = select(Membership).where(Membership.team_id == team_id)
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def build_context(membership: Membership) -> MemberContext:
        assignment = decode_assignment(membership.permissions, membership.position_groups)
        self_player = None
        child_ids: list[str] = []
        if membership.role == MembershipRole.PLAYER:
            self_player = MembershipDirectory.find_player_by_self(membership.user_id, membership.team_id)
        elif membership.role == MembershipRole.PARENT:
            child_ids = MembershipDirectory.find_guardian_links(membership.user_id, membership.team_id)

        scope = resolve_scope(
            membership.role,
            assignment,
            self_player=self_player,
            child_player_ids=child_ids,
        )
        return MemberContext(membership=membership, assignment=assignment, scope=scope)

    @staticmethod
    def load_context(user_id: str | None, team_id: str) -> MemberContext:
        """Load the caller's membership on ``team_id`` and resolve its scope.

        Raises:
            Unauthenticated: no user for the request
            MembershipNotFound: the user is not on the team
        """
        if not user_id:
            raise Unauthenticated()

        memo = _memo()
        key = (user_id, team_id)
        if memo is not None and key in memo:
            return memo[key]

        membership = MembershipDirectory.find_membership(user_id, team_id)
        if membership is None:
            log_permission_denial(user_id, team_id, None, "Not a member of this team")
            raise MembershipNotFound()

        context = MembershipDirectory.build_context(membership)
        if memo is not None:
            memo[key] = context
        return context

    @staticmethod
    def team_for(team_id: str) -> Team | None:
        return db.session.get(Team, team_id)
