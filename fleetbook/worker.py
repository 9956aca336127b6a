"""Celery worker configuration.

Runs the booking expiration sweep on a fixed interval via Celery beat.
"""

from celery import Celery
from celery.signals import setup_logging

from fleetbook.config import get_settings
from fleetbook.core.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "fleetbook_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["fleetbook.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=settings.sweeper_interval_seconds,
    task_soft_time_limit=int(settings.sweeper_interval_seconds * 0.8),

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=settings.sweeper_interval_seconds * 12,

    # Beat schedule for periodic tasks
    beat_schedule={
        "expire-overdue-bookings": {
            "task": "fleetbook.tasks.expire_overdue_bookings",
            "schedule": float(settings.sweeper_interval_seconds),
        },
    },
)


@setup_logging.connect
def _setup_worker_logging(**kwargs) -> None:
    configure_logging(settings.log_level)


if __name__ == "__main__":
    celery_app.start()
