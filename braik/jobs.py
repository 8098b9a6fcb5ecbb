"""Background job functions for RQ worker."""


def deliver_notifications_job(team_id, user_ids, notification_type, title, **fields):
    """Background job to store in-app notifications."""
    from braik import create_app

    app = create_app()

    with app.app_context():
        try:
            from braik.services.notifications import deliver_notifications
            return deliver_notifications(
                team_id=team_id,
                user_ids=user_ids,
                notification_type=notification_type,
                title=title,
                **fields
            )
        except Exception as e:
            app.logger.error(f"Notification job failed: {e}")
            raise
