"""Team announcements filtered by audience."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select

from braik.extensions import db
from braik.models import Announcement, AnnouncementAudience, MembershipRole
from braik.services.audit import record_audit
from braik.services.authorization import deny
from braik.services.billing import require_billing_permission
from braik.services.membership import MembershipDirectory
from braik.services.notifications import NotificationService
from braik.services.payloads import parse_enum, require_fields
from braik.services.roles import require_capability


def audience_permits(role: MembershipRole, audience: AnnouncementAudience) -> bool:
    if audience == AnnouncementAudience.TEAM:
        return role != MembershipRole.PARENT
    if audience == AnnouncementAudience.PARENTS:
        return role != MembershipRole.PLAYER
    return True


class AnnouncementService:
    """Service for team announcements."""

    @staticmethod
    def list_announcements(team_id: str, user_id: str) -> list[Announcement]:
        require_billing_permission(team_id, "view")
        context = MembershipDirectory.load_context(user_id, team_id)

        stmt = (
            select(Announcement)
            .where(Announcement.team_id == team_id)
            .order_by(Announcement.created_at.desc())
        )
        return [
            announcement
            for announcement in db.session.execute(stmt).scalars()
            if audience_permits(context.role, announcement.audience)
        ]

    @staticmethod
    def create_announcement(team_id: str, user_id: str, payload: dict[str, Any]) -> Announcement:
        require_billing_permission(team_id, "create")
        context = MembershipDirectory.load_context(user_id, team_id)
        require_capability(context, "post_announcements")

        require_fields(payload, "title", "body")
        audience = parse_enum(AnnouncementAudience, payload.get("audience"), "audience", AnnouncementAudience.ALL)
        if audience == AnnouncementAudience.PARENTS and not context.is_head_coach:
            deny(context, "Only the head coach can post announcements to parents", audience=audience.value)

        announcement = Announcement(
            team_id=team_id,
            title=str(payload["title"]).strip(),
            body=str(payload["body"]),
            audience=audience,
            created_by=user_id,
        )
        db.session.add(announcement)
        db.session.flush()
        record_audit(team_id, user_id, "announcement_created", "announcement", announcement.id, {
            "title": announcement.title,
            "audience": audience.value,
        })
        db.session.commit()

        recipients = [
            membership.user_id
            for membership in MembershipDirectory.team_members(team_id)
            if audience_permits(membership.role, audience)
        ]
        NotificationService.notify(
            team_id,
            recipients,
            "announcement",
            f"New announcement: {announcement.title}",
            body=announcement.body[:200],
            link_type="announcement",
            link_id=announcement.id,
            exclude_user_ids=[user_id],
        )
        return announcement
