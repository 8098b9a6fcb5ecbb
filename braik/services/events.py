"""Calendar events: hierarchical visibility, scoped creation and the legacy lock."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select

from braik.blueprints.common.team import get_team_object
from braik.extensions import db
from braik.models import CalendarSettings, Event, EventType, EventVisibility, MembershipRole
from braik.services.audit import record_audit
from braik.services.authorization import deny, require_edit, require_remove
from braik.services.billing import require_billing_permission
from braik.services.errors import ResourceNotFound, ValidationError
from braik.services.membership import MemberContext, MembershipDirectory
from braik.services.notifications import NotificationService
from braik.services.payloads import as_utc, parse_bool, parse_datetime, parse_enum, require_fields
from braik.services.scoping import scoping_for_new_resource
from braik.services.visibility import can_view_with_level, filter_visible

# Older clients send an audience instead of a visibility level
AUDIENCE_VISIBILITY = {
    "all": EventVisibility.PARENTS_AND_TEAM,
    "players": EventVisibility.TEAM,
    "parents": EventVisibility.PARENTS_AND_TEAM,
    "staff": EventVisibility.COACHES_ONLY,
}

EDITABLE_FIELDS = ("title", "description", "start", "end", "location", "visibility")


def visibility_from_payload(payload: dict[str, Any]) -> EventVisibility:
    if payload.get("visibility"):
        return parse_enum(EventVisibility, payload["visibility"], "visibility")
    audience = payload.get("audience")
    if audience:
        return AUDIENCE_VISIBILITY.get(str(audience).lower(), EventVisibility.TEAM)
    return EventVisibility.TEAM


def check_event_window(start: datetime, end: datetime) -> None:
    # Rows read back from SQLite are naive
    if as_utc(end) < as_utc(start):
        raise ValidationError("Event end must not be before its start")


class EventService:
    """Service for team calendar events."""

    @staticmethod
    def list_events(
        team_id: str,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        event_type: EventType | str | None = None,
    ) -> list[Event]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        stmt = select(Event).where(Event.team_id == team_id)
        if start is not None:
            stmt = stmt.where(Event.start >= start)
        if end is not None:
            stmt = stmt.where(Event.start <= end)
        if event_type:
            stmt = stmt.where(Event.event_type == parse_enum(EventType, event_type, "event_type"))
        stmt = stmt.order_by(Event.start.asc())

        events = list(db.session.execute(stmt).scalars())
        return filter_visible(context, events, MembershipDirectory.head_coach_ids(team_id))

    @staticmethod
    def get_event(team_id: str, event_id: str, user_id: str) -> Event:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)
        event = get_team_object(Event, team_id, event_id, "Event")
        head_coaches = MembershipDirectory.head_coach_ids(team_id)
        if not can_view_with_level(context, event, created_by_head_coach=event.created_by in head_coaches):
            # Hidden events are indistinguishable from missing ones
            raise ResourceNotFound("Event")
        return event

    @staticmethod
    def create_event(team_id: str, user_id: str, payload: dict[str, Any]) -> Event:
        require_billing_permission(team_id, "edit_events")
        context = MembershipDirectory.load_context(user_id, team_id)

        if context.role not in (MembershipRole.HEAD_COACH, MembershipRole.ASSISTANT_COACH):
            deny(context, "You don't have permission to create events")

        require_fields(payload, "title", "start", "end")
        event_type = parse_enum(EventType, payload.get("event_type"), "event_type", EventType.CUSTOM)

        if context.role == MembershipRole.ASSISTANT_COACH:
            EventService._check_assistant_event_type(context, event_type)

        start = parse_datetime(payload["start"], "start")
        end = parse_datetime(payload["end"], "end")
        check_event_window(start, end)

        event = Event(
            team_id=team_id,
            created_by=user_id,
            event_type=event_type,
            title=str(payload["title"]).strip(),
            description=payload.get("description") or None,
            start=start,
            end=end,
            location=payload.get("location") or None,
            visibility=visibility_from_payload(payload),
        )
        scoping_for_new_resource(context).apply(event)
        db.session.add(event)
        db.session.flush()

        record_audit(team_id, user_id, "event_created", "event", event.id, {
            "event_type": event_type.value,
            "title": event.title,
            "start": start.isoformat(),
        })
        db.session.commit()

        NotificationService.notify_visible(
            team_id,
            event,
            "event_created",
            f"New {event_type.value.lower()}: {event.title}",
            body=f"Scheduled for {start:%Y-%m-%d %H:%M}",
            link_type="event",
            exclude_user_ids=[user_id],
        )
        return event

    @staticmethod
    def _check_assistant_event_type(context: MemberContext, event_type: EventType) -> None:
        """Per-team event type gates for assistant coaches, applied once settings exist."""
        settings = db.session.execute(
            select(CalendarSettings).where(CalendarSettings.team_id == context.team_id)
        ).scalar_one_or_none()
        if settings is None:
            return

        if event_type == EventType.MEETING and not settings.assistants_can_add_meetings:
            deny(context, "You don't have permission to add meetings", event_type=event_type.value)
        if event_type == EventType.PRACTICE and not settings.assistants_can_add_practices:
            deny(context, "You don't have permission to add practices", event_type=event_type.value)
        if event_type in (EventType.GAME, EventType.CUSTOM):
            deny(context, "You don't have permission to add this event type", event_type=event_type.value)

    @staticmethod
    def update_event(team_id: str, event_id: str, user_id: str, patch: dict[str, Any]) -> Event:
        """Apply ``patch`` to an event. Scoping fields are never taken from the patch."""
        require_billing_permission(team_id, "edit_events")
        context = MembershipDirectory.load_context(user_id, team_id)
        event = get_team_object(Event, team_id, event_id, "Event")
        require_edit(user_id, event, context)

        changes: dict[str, Any] = {}
        for field in EDITABLE_FIELDS:
            if field not in patch:
                continue
            value = patch[field]
            if field in ("start", "end"):
                value = parse_datetime(value, field)
                if value is None:
                    raise ValidationError(f"{field} cannot be cleared", field=field)
            elif field == "visibility":
                value = parse_enum(EventVisibility, value, "visibility", event.visibility)
            elif field == "title":
                value = str(value or "").strip()
                if not value:
                    raise ValidationError("title cannot be empty", field="title")
            setattr(event, field, value)
            changes[field] = str(value.value if hasattr(value, "value") else value)

        if "locked" in patch and context.is_head_coach:
            event.locked = parse_bool(patch["locked"])
            changes["locked"] = event.locked

        check_event_window(event.start, event.end)

        record_audit(team_id, user_id, "event_updated", "event", event.id, {"changes": changes})
        db.session.commit()

        NotificationService.notify_visible(
            team_id,
            event,
            "event_updated",
            f"Event updated: {event.title}",
            body=f"Changes were made to {event.title}",
            link_type="event",
            exclude_user_ids=[user_id],
        )
        return event

    @staticmethod
    def remove_event(team_id: str, event_id: str, user_id: str) -> None:
        require_billing_permission(team_id, "edit_events")
        context = MembershipDirectory.load_context(user_id, team_id)
        event = get_team_object(Event, team_id, event_id, "Event")
        require_remove(user_id, event, context)

        record_audit(team_id, user_id, "event_deleted", "event", event.id, {"title": event.title})
        db.session.delete(event)
        db.session.commit()

    @staticmethod
    def set_event_lock(team_id: str, event_id: str, user_id: str, locked: bool) -> Event:
        require_billing_permission(team_id, "edit_events")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not context.is_head_coach:
            deny(context, "Only the head coach can lock or unlock events")

        event = get_team_object(Event, team_id, event_id, "Event")
        event.locked = bool(locked)
        record_audit(team_id, user_id, "event_locked" if locked else "event_unlocked", "event", event.id)
        db.session.commit()
        return event

    @staticmethod
    def get_calendar_settings(team_id: str, user_id: str) -> CalendarSettings:
        """Return the team's calendar settings, creating the defaults on first read."""
        require_billing_permission(team_id, "view")
        MembershipDirectory.load_context(user_id, team_id)

        settings = db.session.execute(
            select(CalendarSettings).where(CalendarSettings.team_id == team_id)
        ).scalar_one_or_none()
        if settings is None:
            settings = CalendarSettings(team_id=team_id)
            db.session.add(settings)
            db.session.commit()
        return settings

    @staticmethod
    def update_calendar_settings(team_id: str, user_id: str, patch: dict[str, Any]) -> CalendarSettings:
        require_billing_permission(team_id, "modify")
        context = MembershipDirectory.load_context(user_id, team_id)
        if not context.is_head_coach:
            deny(context, "Only head coaches can update calendar settings")

        settings = db.session.execute(
            select(CalendarSettings).where(CalendarSettings.team_id == team_id)
        ).scalar_one_or_none()
        if settings is None:
            settings = CalendarSettings(team_id=team_id)
            db.session.add(settings)
            db.session.flush()

        changes = {}
        for field in ("assistants_can_add_meetings", "assistants_can_add_practices"):
            if field in patch:
                setattr(settings, field, parse_bool(patch[field]))
                changes[field] = getattr(settings, field)

        record_audit(team_id, user_id, "calendar_settings_updated", "calendar_settings", settings.id, {"changes": changes})
        db.session.commit()
        return settings
