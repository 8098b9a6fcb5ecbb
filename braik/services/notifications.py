"""In-app notifications: fan-out after commit and the per-user inbox.

Notifications are sent after the mutation has committed and never roll it
back: delivery failures are logged and dropped.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import func, select, update

from braik.extensions import db
from braik.models import Notification
from braik.services.billing import require_billing_permission
from braik.services.errors import ResourceNotFound
from braik.services.membership import MembershipDirectory
from braik.services.visibility import can_view_with_level


def deliver_notifications(
    team_id: str,
    user_ids: Iterable[str],
    notification_type: str,
    title: str,
    body: str | None = None,
    link_type: str | None = None,
    link_id: str | None = None,
) -> int:
    """Store one notification row per recipient and commit. Returns the count."""
    count = 0
    for user_id in dict.fromkeys(user_ids):
        db.session.add(Notification(
            user_id=user_id,
            team_id=team_id,
            notification_type=notification_type,
            title=title,
            body=body,
            link_type=link_type,
            link_id=link_id,
        ))
        count += 1
    db.session.commit()
    return count


class NotificationService:
    """Resolves recipients and dispatches notifications inline or through RQ."""

    @staticmethod
    def visible_recipients(team_id: str, resource: Any, exclude_user_ids: Iterable[str] = ()) -> list[str]:
        """Team members allowed to read ``resource``, minus ``exclude_user_ids``."""
        excluded = set(exclude_user_ids)
        head_coaches = MembershipDirectory.head_coach_ids(team_id)
        created_by_head_coach = getattr(resource, "created_by", None) in head_coaches

        recipients = []
        for membership in MembershipDirectory.team_members(team_id):
            if membership.user_id in excluded:
                continue
            context = MembershipDirectory.build_context(membership)
            if can_view_with_level(context, resource, created_by_head_coach=created_by_head_coach):
                recipients.append(membership.user_id)
        return recipients

    @staticmethod
    def notify(
        team_id: str,
        user_ids: Iterable[str],
        notification_type: str,
        title: str,
        body: str | None = None,
        link_type: str | None = None,
        link_id: str | None = None,
        exclude_user_ids: Iterable[str] = (),
    ) -> None:
        """Fire-and-forget delivery; call only after the mutation committed."""
        excluded = set(exclude_user_ids)
        recipients = [user_id for user_id in user_ids if user_id not in excluded]
        if not recipients:
            return

        fields = {"body": body, "link_type": link_type, "link_id": link_id}
        try:
            if current_app.config.get("NOTIFICATION_QUEUE_ENABLED"):
                from braik.services.queue import QueueService
                QueueService(current_app.config.get("REDIS_URL")).enqueue_notifications(
                    team_id, recipients, notification_type, title, **fields
                )
            else:
                deliver_notifications(team_id, recipients, notification_type, title, **fields)
        except Exception as e:
            # Don't fail the request if notification delivery fails
            db.session.rollback()
            current_app.logger.error(f"Failed to deliver {notification_type} notifications: {e}")

    @staticmethod
    def notify_visible(
        team_id: str,
        resource: Any,
        notification_type: str,
        title: str,
        body: str | None = None,
        link_type: str | None = None,
        exclude_user_ids: Iterable[str] = (),
    ) -> None:
        """Notify every member who can read ``resource``."""
        try:
            recipients = NotificationService.visible_recipients(team_id, resource, exclude_user_ids)
        except Exception as e:
            current_app.logger.error(f"Failed to resolve {notification_type} recipients: {e}")
            return
        NotificationService.notify(
            team_id,
            recipients,
            notification_type,
            title,
            body=body,
            link_type=link_type,
            link_id=getattr(resource, "id", None),
        )

    # Reading side: every query is pinned to the caller and the team

    @staticmethod
    def list_for_user(team_id: str, user_id: str, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        require_billing_permission(team_id, "view")
        MembershipDirectory.load_context(user_id, team_id)
        stmt = select(Notification).where(
            Notification.team_id == team_id,
            Notification.user_id == user_id,
        )
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def unread_count(team_id: str, user_id: str) -> int:
        MembershipDirectory.load_context(user_id, team_id)
        stmt = select(func.count(Notification.id)).where(
            Notification.team_id == team_id,
            Notification.user_id == user_id,
            Notification.read_at.is_(None),
        )
        return db.session.execute(stmt).scalar_one()

    @staticmethod
    def mark_read(team_id: str, user_id: str, notification_id: str) -> Notification:
        """Mark one of the caller's notifications read.

        Another user's notification is reported as missing. Marking an
        already read notification keeps its original ``read_at``.
        """
        require_billing_permission(team_id, "view")
        MembershipDirectory.load_context(user_id, team_id)
        notification = db.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.team_id == team_id,
                Notification.user_id == user_id,
            )
        ).scalar_one_or_none()
        if notification is None:
            raise ResourceNotFound("Notification")
        if notification.read_at is None:
            notification.read_at = datetime.now(timezone.utc)
            db.session.commit()
        return notification

    @staticmethod
    def mark_all_read(team_id: str, user_id: str) -> int:
        """Mark every unread notification of the caller on the team. Returns the count."""
        require_billing_permission(team_id, "view")
        MembershipDirectory.load_context(user_id, team_id)
        result = db.session.execute(
            update(Notification)
            .where(
                Notification.team_id == team_id,
                Notification.user_id == user_id,
                Notification.read_at.is_(None),
            )
            .values(read_at=datetime.now(timezone.utc))
        )
        db.session.commit()
        return result.rowcount
