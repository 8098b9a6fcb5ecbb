"""RQ worker for background notification delivery.

Run with ``python -m braik.worker``.
"""

import os

import redis
from rq import Queue, Worker
from dotenv import load_dotenv

load_dotenv()


def get_redis_connection():
    """Get Redis connection from environment."""
    redis_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    return redis.from_url(redis_url)


def setup_queues(redis_conn):
    """Notification fan-out has priority over the default queue."""
    return {
        'notifications': Queue('notifications', connection=redis_conn),
        'default': Queue(connection=redis_conn),
    }


def main():
    redis_conn = get_redis_connection()
    queues = setup_queues(redis_conn)
    worker = Worker(list(queues.values()), connection=redis_conn)

    print("Starting RQ worker...")
    print(f"Listening on queues: {list(queues)}")
    try:
        worker.work()
    except KeyboardInterrupt:
        print("\nWorker stopped by user")


if __name__ == '__main__':
    main()
