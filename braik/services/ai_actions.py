"""AI assistant actions.

Safe actions run immediately through the regular resource services. Anything
that fans out (bulk events, parent announcements, roster changes) becomes a
proposal the head coach must confirm. Confirmation claims the proposal with a
conditional UPDATE in the same transaction as the effects, so a proposal is
applied at most once.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from braik.blueprints.common.team import get_team_object
from braik.extensions import db
from braik.models import AIActionProposal, Announcement, AnnouncementAudience, Event, EventType, ProposalStatus
from braik.services.audit import log_ai_action, record_audit
from braik.services.authorization import deny
from braik.services.billing import require_billing_permission
from braik.services.errors import InvalidStateTransition, ResourceNotFound, ValidationError
from braik.services.events import EventService, check_event_window, visibility_from_payload
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.messaging import ThreadService
from braik.services.notifications import NotificationService
from braik.services.payloads import parse_datetime, parse_enum, require_fields
from braik.services.roles import is_staff
from braik.services.scoping import scoping_for_new_resource

ROSTER_ACTIONS = frozenset({"modify_roster", "add_player", "remove_player", "update_player"})
BULK_ACTIONS = frozenset({"bulk_create_events", "bulk_update_events"})
DRAFT_ACTIONS = frozenset({"draft_announcement", "draft_event_description", "draft_message"})


def requires_approval(action_type: str, context: MemberContext) -> bool:
    if action_type == "create_parent_announcement":
        return True
    if action_type in ROSTER_ACTIONS or action_type in BULK_ACTIONS:
        return True
    if action_type == "modify_depth_chart" and not context.is_head_coach:
        return True
    return False


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _event_item(event: Event) -> dict[str, Any]:
    return {"type": "event", "id": event.id, "title": event.title, "start": event.start.isoformat()}


# ---------------------------------------------------------------------------
# Executors for confirmed proposals. They add rows to the open transaction and
# never commit.
# ---------------------------------------------------------------------------


def create_parent_announcement(
    context: MemberContext,
    payload: dict[str, Any],
    confirmed_items: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    payload = payload or {}
    if not payload.get("title") or not payload.get("body"):
        raise ValidationError("Missing title or body")

    announcement = Announcement(
        team_id=context.team_id,
        title=str(payload["title"]).strip(),
        body=str(payload["body"]),
        audience=AnnouncementAudience.PARENTS,
        created_by=context.user_id,
    )
    db.session.add(announcement)
    db.session.flush()
    return [{"type": "announcement", "id": announcement.id, "title": announcement.title}]


def selected_events(payload: dict[str, Any], confirmed_items: Iterable[str] | None) -> list[dict[str, Any]]:
    events = (payload or {}).get("events") or []
    if not isinstance(events, list) or not events:
        raise ValidationError("No events to create")
    if confirmed_items is None:
        return events

    wanted = {str(item) for item in confirmed_items}
    events = [data for index, data in enumerate(events) if str(index) in wanted]
    if not events:
        raise ValidationError("None of the confirmed items match the proposal")
    return events


def bulk_create_events(
    context: MemberContext,
    payload: dict[str, Any],
    confirmed_items: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """Create the proposed events, or only those whose index is in ``confirmed_items``."""
    events = selected_events(payload, confirmed_items)
    scoping = scoping_for_new_resource(context)
    items = []
    for data in events:
        require_fields(data, "title", "start", "end")
        start = parse_datetime(data["start"], "start")
        end = parse_datetime(data["end"], "end")
        check_event_window(start, end)

        event = Event(
            team_id=context.team_id,
            created_by=context.user_id,
            event_type=parse_enum(EventType, data.get("event_type"), "event_type", EventType.CUSTOM),
            title=str(data["title"]).strip(),
            description=data.get("description") or None,
            start=start,
            end=end,
            location=data.get("location") or None,
            visibility=visibility_from_payload(data),
        )
        scoping.apply(event)
        db.session.add(event)
        db.session.flush()
        items.append(_event_item(event))
    return items


EXECUTORS: dict[str, Callable[..., list[dict[str, Any]]]] = {
    "create_parent_announcement": create_parent_announcement,
    "bulk_create_events": bulk_create_events,
}


class AIActionService:
    """Proposal lifecycle: pending -> executed, or pending -> rejected."""

    @staticmethod
    def execute_safe_action(team_id: str, user_id: str, action_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        require_billing_permission(team_id, "use_ai")
        context = MembershipDirectory.load_context(user_id, team_id)
        if requires_approval(action_type, context):
            raise ValidationError(f"Action {action_type} requires approval", action_type=action_type)

        payload = dict(payload or {})
        if action_type == "create_event":
            items = [_event_item(EventService.create_event(team_id, user_id, payload))]
        elif action_type == "update_event":
            event_id = payload.pop("event_id", None)
            if not event_id:
                raise ValidationError("Missing event_id", field="event_id")
            items = [_event_item(EventService.update_event(team_id, event_id, user_id, payload))]
        elif action_type == "send_message":
            if not payload.get("thread_id") or not payload.get("body"):
                raise ValidationError("Missing thread_id or body")
            message = ThreadService.send_message(team_id, payload["thread_id"], user_id, payload["body"])
            items = [{"type": "message", "id": message.id, "thread_id": message.thread_id}]
        elif action_type in DRAFT_ACTIONS:
            # Drafts are returned to the caller and never stored
            return {"success": True, "executed_items": [{"type": "draft", "content": payload.get("content")}]}
        else:
            raise ValidationError(f"Unknown action type: {action_type}", action_type=action_type)

        record_audit(team_id, user_id, f"ai_action_executed_{action_type}", "ai_action", None, {
            "action_type": action_type,
            "executed_items": items,
        })
        db.session.commit()
        log_ai_action("ai_action_executed", user_id=user_id, team_id=team_id, action_type=action_type)
        return {"success": True, "executed_items": items}

    @staticmethod
    def list_proposals(team_id: str, user_id: str, status: str | None = None) -> list[AIActionProposal]:
        """Head coaches see every proposal, other coaches their own."""
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        stmt = select(AIActionProposal).where(AIActionProposal.team_id == team_id)
        if not context.is_head_coach:
            stmt = stmt.where(AIActionProposal.user_id == user_id)
        if status:
            stmt = stmt.where(AIActionProposal.status == parse_enum(ProposalStatus, status, "status"))
        stmt = stmt.order_by(AIActionProposal.created_at.desc())
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def propose_action(
        team_id: str,
        user_id: str,
        action_type: str,
        payload: dict[str, Any],
        preview: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> AIActionProposal:
        """Store a pending proposal. Repeating ``idempotency_key`` returns the first one."""
        require_billing_permission(team_id, "use_ai")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not is_staff(context.role):
            deny(context, "Only coaches can propose AI actions")

        if not action_type:
            raise ValidationError("action_type is required", field="action_type")
        if not requires_approval(action_type, context):
            raise ValidationError(f"Action {action_type} does not require approval", action_type=action_type)
        if action_type not in EXECUTORS:
            raise ValidationError(f"Action {action_type} is not supported", action_type=action_type)

        if idempotency_key:
            existing = AIActionService._find_by_key(team_id, idempotency_key)
            if existing is not None:
                return existing

        proposal = AIActionProposal(
            team_id=team_id,
            user_id=user_id,
            action_type=action_type,
            payload=payload or {},
            preview=preview or {},
            status=ProposalStatus.PENDING,
            idempotency_key=idempotency_key or None,
        )
        try:
            db.session.add(proposal)
            db.session.flush()
            record_audit(team_id, user_id, "ai_action_proposed", "ai_action_proposal", proposal.id, {
                "action_type": action_type,
            })
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            existing = AIActionService._find_by_key(team_id, idempotency_key) if idempotency_key else None
            if existing is None:
                raise
            return existing

        log_ai_action(
            "ai_action_proposed",
            user_id=user_id,
            team_id=team_id,
            proposal_id=proposal.id,
            action_type=action_type,
        )
        NotificationService.notify(
            team_id,
            MembershipDirectory.head_coach_ids(team_id),
            "ai_proposal_pending",
            f"AI action awaiting approval: {action_type}",
            link_type="ai",
            link_id=proposal.id,
            exclude_user_ids=[user_id],
        )
        return proposal

    @staticmethod
    def _find_by_key(team_id: str, idempotency_key: str) -> AIActionProposal | None:
        stmt = select(AIActionProposal).where(
            AIActionProposal.team_id == team_id,
            AIActionProposal.idempotency_key == idempotency_key,
        )
        return db.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _load(proposal_id: str, team_id: str | None = None) -> AIActionProposal:
        if team_id is not None:
            return get_team_object(AIActionProposal, team_id, proposal_id, "Proposal")
        proposal = db.session.get(AIActionProposal, proposal_id)
        if proposal is None:
            raise ResourceNotFound("Proposal")
        return proposal

    @staticmethod
    def confirm_action(
        proposal_id: str,
        user_id: str,
        confirmed_items: Iterable[str] | None = None,
        team_id: str | None = None,
    ) -> dict[str, Any]:
        """Execute a pending proposal as the head coach.

        Confirming an executed proposal returns its stored result. Confirming
        a rejected one raises InvalidStateTransition. If execution fails the
        effects are rolled back and the proposal is rejected with the reason.
        """
        proposal = AIActionService._load(proposal_id, team_id)
        team_id = proposal.team_id

        require_billing_permission(team_id, "use_ai")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not context.is_head_coach:
            deny(context, "Only the head coach can confirm AI actions", proposal_id=proposal.id)

        if proposal.status == ProposalStatus.EXECUTED:
            return proposal.result or {}
        if proposal.status == ProposalStatus.REJECTED:
            raise InvalidStateTransition("Proposal was rejected", status=proposal.status.value)

        # Selection errors leave the proposal pending
        if proposal.action_type == "bulk_create_events" and confirmed_items is not None:
            selected_events(proposal.payload, confirmed_items)

        executor = EXECUTORS.get(proposal.action_type)
        now = _now()
        try:
            claimed = db.session.execute(
                update(AIActionProposal)
                .where(
                    AIActionProposal.id == proposal.id,
                    AIActionProposal.status == ProposalStatus.PENDING,
                )
                .values(status=ProposalStatus.EXECUTED, decided_by=user_id, decided_at=now, executed_at=now)
            )
            if claimed.rowcount != 1:
                # Another request got there first
                db.session.rollback()
                db.session.refresh(proposal)
                if proposal.status == ProposalStatus.EXECUTED:
                    return proposal.result or {}
                raise InvalidStateTransition("Proposal is no longer pending", status=proposal.status.value)

            if executor is None:
                raise ValidationError(f"Unknown action type: {proposal.action_type}")
            items = executor(context, proposal.payload or {}, confirmed_items)

            result = {"success": True, "executed_items": items}
            proposal.result = result
            record_audit(team_id, user_id, f"ai_action_confirmed_{proposal.action_type}", "ai_action_proposal", proposal.id, {
                "action_type": proposal.action_type,
                "executed_items": items,
            })
            db.session.commit()
        except InvalidStateTransition:
            raise
        except Exception as e:
            db.session.rollback()
            AIActionService._mark_rejected(proposal, user_id, str(e))
            log_ai_action(
                "ai_action_rejected",
                user_id=user_id,
                team_id=team_id,
                proposal_id=proposal.id,
                action_type=proposal.action_type,
                error=str(e),
            )
            raise

        log_ai_action(
            "ai_action_executed",
            user_id=user_id,
            team_id=team_id,
            proposal_id=proposal.id,
            action_type=proposal.action_type,
            executed_items=len(items),
        )
        if proposal.user_id != user_id:
            NotificationService.notify(
                team_id,
                [proposal.user_id],
                "ai_task_completed",
                f"AI task completed: {proposal.action_type}",
                body="Your AI action proposal has been executed successfully.",
                link_type="ai",
                link_id=proposal.id,
            )
        return result

    @staticmethod
    def _mark_rejected(proposal: AIActionProposal, user_id: str, reason: str) -> None:
        try:
            db.session.execute(
                update(AIActionProposal)
                .where(
                    AIActionProposal.id == proposal.id,
                    AIActionProposal.status == ProposalStatus.PENDING,
                )
                .values(
                    status=ProposalStatus.REJECTED,
                    decided_by=user_id,
                    decided_at=_now(),
                    rejection_reason=reason,
                )
            )
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to reject proposal {proposal.id}: {e}")

    @staticmethod
    def reject_action(
        proposal_id: str,
        user_id: str,
        reason: str | None = None,
        team_id: str | None = None,
    ) -> AIActionProposal:
        """Reject a pending proposal. The head coach or the proposer may reject."""
        proposal = AIActionService._load(proposal_id, team_id)
        team_id = proposal.team_id

        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not context.is_head_coach and proposal.user_id != user_id:
            deny(context, "Only the head coach or the proposer can reject this action", proposal_id=proposal.id)

        if proposal.status == ProposalStatus.REJECTED:
            return proposal
        if proposal.status == ProposalStatus.EXECUTED:
            raise InvalidStateTransition("Proposal was already executed", status=proposal.status.value)

        result = db.session.execute(
            update(AIActionProposal)
            .where(
                AIActionProposal.id == proposal.id,
                AIActionProposal.status == ProposalStatus.PENDING,
            )
            .values(
                status=ProposalStatus.REJECTED,
                decided_by=user_id,
                decided_at=_now(),
                rejection_reason=reason or None,
            )
        )
        if result.rowcount != 1:
            db.session.rollback()
            db.session.refresh(proposal)
            if proposal.status == ProposalStatus.REJECTED:
                return proposal
            raise InvalidStateTransition("Proposal is no longer pending", status=proposal.status.value)

        record_audit(team_id, user_id, "ai_action_rejected", "ai_action_proposal", proposal.id, {"reason": reason})
        db.session.commit()
        db.session.refresh(proposal)
        log_ai_action("ai_action_rejected", user_id=user_id, team_id=team_id, proposal_id=proposal.id)
        return proposal
