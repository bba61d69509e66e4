"""
Celery Beat schedule for periodic tasks
"""
from datetime import timedelta

from fileshare.config import get_settings

settings = get_settings()

beat_schedule = {
    "sweep-expired-files": {
        "task": "fileshare.queue.periodic_tasks.sweep_expired_files",
        "schedule": timedelta(minutes=settings.SWEEP_INTERVAL_MINUTES),
    },
}
