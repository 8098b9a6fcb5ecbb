"""Messaging threads.

Coaches start threads, everyone replies in the threads they belong to. On
school teams a parent follows their child's threads read-only and can never
post into them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from braik.extensions import db
from braik.models import Membership, Message, MessageThread, MembershipRole, Player, ThreadParticipant, ThreadType
from braik.services.audit import record_audit
from braik.services.authorization import deny
from braik.services.billing import require_billing_permission
from braik.services.errors import ResourceNotFound, ValidationError
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.notifications import NotificationService
from braik.services.roles import user_type
from braik.services.scoping import OwnChildScope


class ThreadAccess(Enum):
    NONE = "none"
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


@dataclass(frozen=True)
class MessagingPolicy:
    message_types: frozenset[str] = frozenset()
    one_on_one_types: frozenset[str] = frozenset()
    can_create_thread: bool = False
    can_create_parent_only_thread: bool = False
    can_reply: bool = False

    def can_message(self, target_type: str) -> bool:
        return target_type in self.message_types

    def can_create_one_on_one(self, target_type: str) -> bool:
        return target_type in self.one_on_one_types


ALL_TYPES = frozenset({"coach", "player", "parent"})

POLICIES = {
    MembershipRole.HEAD_COACH: MessagingPolicy(
        message_types=ALL_TYPES,
        one_on_one_types=ALL_TYPES,
        can_create_thread=True,
        can_create_parent_only_thread=True,
        can_reply=True,
    ),
    MembershipRole.ASSISTANT_COACH: MessagingPolicy(
        message_types=frozenset({"coach", "player"}),
        one_on_one_types=frozenset({"coach", "player"}),
        can_create_thread=True,
        can_reply=True,
    ),
    # Players and parents reach staff only and never start threads
    MembershipRole.PLAYER: MessagingPolicy(message_types=frozenset({"coach"}), can_reply=True),
    MembershipRole.PARENT: MessagingPolicy(message_types=frozenset({"coach"}), can_reply=True),
}


def messaging_policy(role: MembershipRole) -> MessagingPolicy:
    return POLICIES.get(role, MessagingPolicy())


def validate_thread_composition(creator_role: MembershipRole, participant_roles: Iterable[MembershipRole]) -> str | None:
    """Return the reason a thread may not be formed, or None when it is valid."""
    roles = list(participant_roles)
    types = {user_type(role) for role in roles}
    has_parent = "parent" in types
    has_player = "player" in types
    has_coach = "coach" in types

    if has_parent and has_player and not has_coach:
        return "Parent and player communication must include at least one coach"
    if creator_role == MembershipRole.PARENT and len(roles) > 1:
        return "Parents cannot create group chats"
    if creator_role == MembershipRole.PLAYER and has_parent and not has_coach:
        return "Players cannot create parent-inclusive threads without a coach"
    if (
        creator_role == MembershipRole.ASSISTANT_COACH
        and has_parent
        and not has_player
        and not has_coach
    ):
        return "Assistant coaches cannot create parent-only threads"
    return None


def thread_access(context: MemberContext, thread: Any, child_user_ids: Iterable[str] = ()) -> ThreadAccess:
    """Access a member has to ``thread``.

    ``child_user_ids`` are the user accounts of the member's linked children;
    only parents on school teams use them.
    """
    for participant in thread.participants:
        if participant.user_id == context.user_id:
            return ThreadAccess.READ_ONLY if participant.read_only else ThreadAccess.READ_WRITE

    if context.role == MembershipRole.PARENT and context.is_school_team:
        children = set(child_user_ids)
        if children and any(p.user_id in children for p in thread.participants):
            return ThreadAccess.READ_ONLY
    return ThreadAccess.NONE


def _child_user_ids(context: MemberContext) -> set[str]:
    scope = context.scope
    if not isinstance(scope, OwnChildScope) or not scope.player_ids:
        return set()
    stmt = select(Player.user_id).where(
        Player.id.in_(scope.player_ids),
        Player.user_id.is_not(None),
    )
    return set(db.session.execute(stmt).scalars())


def _parent_user_ids_for(team_id: str, player_user_ids: Iterable[str]) -> set[str]:
    user_ids = list(player_user_ids)
    if not user_ids:
        return set()
    stmt = select(Player.id).where(Player.team_id == team_id, Player.user_id.in_(user_ids))
    player_ids = list(db.session.execute(stmt).scalars())
    links = MembershipDirectory.guardian_user_ids(player_ids)
    return {user_id for guardians in links.values() for user_id in guardians}


class ThreadService:
    """Service for message threads."""

    @staticmethod
    def _load_thread(team_id: str, thread_id: str) -> MessageThread:
        stmt = (
            select(MessageThread)
            .options(selectinload(MessageThread.participants))
            .where(MessageThread.team_id == team_id, MessageThread.id == thread_id)
        )
        thread = db.session.execute(stmt).scalar_one_or_none()
        if thread is None:
            raise ResourceNotFound("Thread")
        return thread

    @staticmethod
    def list_threads(team_id: str, user_id: str) -> list[tuple[MessageThread, ThreadAccess]]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)
        children = _child_user_ids(context)

        stmt = (
            select(MessageThread)
            .options(selectinload(MessageThread.participants))
            .where(MessageThread.team_id == team_id)
            .order_by(MessageThread.updated_at.desc())
        )
        threads = []
        for thread in db.session.execute(stmt).scalars():
            access = thread_access(context, thread, children)
            if access != ThreadAccess.NONE:
                threads.append((thread, access))
        return threads

    @staticmethod
    def get_thread(team_id: str, thread_id: str, user_id: str) -> tuple[MessageThread, ThreadAccess]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)
        thread = ThreadService._load_thread(team_id, thread_id)
        access = thread_access(context, thread, _child_user_ids(context))
        if access == ThreadAccess.NONE:
            raise ResourceNotFound("Thread")
        return thread, access

    @staticmethod
    def create_thread(
        team_id: str,
        user_id: str,
        participant_user_ids: Iterable[str],
        subject: str | None = None,
    ) -> MessageThread:
        require_billing_permission(team_id, "message")
        context = MembershipDirectory.load_context(user_id, team_id)

        policy = messaging_policy(context.role)
        if not policy.can_create_thread:
            deny(context, "Only coaches can create threads")

        requested = list(dict.fromkeys(uid for uid in (participant_user_ids or ()) if uid))
        if not requested:
            raise ValidationError("participant_user_ids is required", field="participant_user_ids")

        stmt = select(Membership).where(Membership.team_id == team_id, Membership.user_id.in_(requested))
        members = list(db.session.execute(stmt).scalars())
        if len(members) != len(requested):
            raise ValidationError("Some participant IDs are invalid or not team members")

        others = [m for m in members if m.user_id != user_id]
        reason = validate_thread_composition(context.role, [m.role for m in others])
        if reason:
            raise ValidationError(reason)
        if len(others) == 1 and not policy.can_create_one_on_one(user_type(others[0].role)):
            deny(context, "You cannot start a conversation with this member", target_user_id=others[0].user_id)

        thread = MessageThread(
            team_id=team_id,
            subject=(subject or "").strip() or None,
            thread_type=ThreadType.CUSTOM,
            created_by=user_id,
        )
        thread.participants.append(ThreadParticipant(user_id=user_id, read_only=False))
        for member in others:
            thread.participants.append(ThreadParticipant(user_id=member.user_id, read_only=False))

        if context.is_school_team:
            present = {p.user_id for p in thread.participants}
            players = [m.user_id for m in others if m.role == MembershipRole.PLAYER]
            for parent_id in sorted(_parent_user_ids_for(team_id, players) - present):
                thread.participants.append(ThreadParticipant(user_id=parent_id, read_only=True))

        db.session.add(thread)
        db.session.flush()
        record_audit(team_id, user_id, "thread_created", "message_thread", thread.id, {
            "participant_count": len(thread.participants),
        })
        db.session.commit()
        current_app.logger.info(
            f"Thread {thread.id} created on team {team_id} by {user_id} "
            f"with {len(thread.participants)} participants"
        )
        return thread

    @staticmethod
    def send_message(team_id: str, thread_id: str, user_id: str, body: str) -> Message:
        require_billing_permission(team_id, "message")
        context = MembershipDirectory.load_context(user_id, team_id)
        thread = ThreadService._load_thread(team_id, thread_id)

        access = thread_access(context, thread, _child_user_ids(context))
        if access == ThreadAccess.NONE:
            deny(context, "You are not a participant in this thread", thread_id=thread.id)
        if access == ThreadAccess.READ_ONLY or not messaging_policy(context.role).can_reply:
            deny(context, "You have read-only access to this thread", thread_id=thread.id)

        text = (body or "").strip()
        if not text:
            raise ValidationError("Message body is required", field="body")

        message = Message(thread_id=thread.id, body=text, created_by=user_id)
        db.session.add(message)
        thread.updated_at = db.func.now()
        db.session.flush()
        record_audit(team_id, user_id, "message_sent", "message", message.id, {"thread_id": thread.id})
        db.session.commit()

        NotificationService.notify(
            team_id,
            [p.user_id for p in thread.participants],
            "message_received",
            thread.subject or "New message",
            body=text[:200],
            link_type="thread",
            link_id=thread.id,
            exclude_user_ids=[user_id],
        )
        return message

    @staticmethod
    def ensure_general_chat(team_id: str) -> MessageThread:
        """Return the team's General Chat, creating it and adding missing members.

        Staff and players join read-write, parents read-only. On school teams,
        guardians of rostered players join read-only as well.
        """
        team = MembershipDirectory.team_for(team_id)
        if team is None:
            raise ResourceNotFound("Team")

        thread = db.session.execute(
            select(MessageThread)
            .options(selectinload(MessageThread.participants))
            .where(MessageThread.team_id == team_id, MessageThread.thread_type == ThreadType.GENERAL)
        ).scalars().first()

        members = MembershipDirectory.team_members(team_id)
        if thread is None:
            creator = next((m for m in members if m.role == MembershipRole.HEAD_COACH), None) or next(
                (m for m in members if m.role == MembershipRole.ASSISTANT_COACH), None
            )
            if creator is None:
                raise ValidationError("No coach found to create General Chat")
            thread = MessageThread(
                team_id=team_id,
                subject="General Chat",
                thread_type=ThreadType.GENERAL,
                created_by=creator.user_id,
            )
            db.session.add(thread)

        present = {p.user_id for p in thread.participants}
        for member in members:
            if member.user_id in present:
                continue
            thread.participants.append(
                ThreadParticipant(user_id=member.user_id, read_only=member.role == MembershipRole.PARENT)
            )
            present.add(member.user_id)

        if team.organization is not None and team.organization.is_high_school:
            players = [m.user_id for m in members if m.role == MembershipRole.PLAYER]
            for parent_id in sorted(_parent_user_ids_for(team_id, players) - present):
                thread.participants.append(ThreadParticipant(user_id=parent_id, read_only=True))

        db.session.commit()
        return thread
