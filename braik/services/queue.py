"""Queue service for background jobs using RQ."""

import os

import redis
from rq import Queue

from braik.jobs import deliver_notifications_job


class QueueService:
    """Service for managing background job queues."""

    def __init__(self, redis_url=None):
        self.redis_conn = self._get_redis_connection(redis_url)
        self.notification_queue = Queue('notifications', connection=self.redis_conn)

    def _get_redis_connection(self, redis_url=None):
        """Get Redis connection from the given URL or the environment."""
        redis_url = redis_url or os.getenv('REDIS_URL', 'redis://localhost:6379/0')
        return redis.from_url(redis_url)

    def enqueue_notifications(self, team_id, user_ids, notification_type, title, **fields):
        """Queue delivery of one notification to many users."""
        job = self.notification_queue.enqueue(
            deliver_notifications_job,
            team_id=team_id,
            user_ids=list(user_ids),
            notification_type=notification_type,
            title=title,
            **fields
        )
        return job


__all__ = ['QueueService']
