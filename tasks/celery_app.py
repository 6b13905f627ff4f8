from celery import Celery
from celery.schedules import crontab
from dotenv import load_dotenv
import os

from utils.logging_config import init_worker_logging

load_dotenv()

CELERY_BROKER_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

celery_app = Celery(
    "ecouter_transcribe",
    broker=CELERY_BROKER_URL,
    backend=CELERY_BROKER_URL,
    include=["tasks.celery_tasks"],
)

# Health reports at fixed times of day (UTC); stuck-file cleanup every half hour
HEALTH_REPORT_TIMES = [(0, 0), (0, 20), (7, 0), (10, 0), (12, 0), (15, 0), (22, 0)]

beat_schedule = {
    f"health-report-{hour:02d}{minute:02d}": {
        "task": "tasks.celery_tasks.scheduled_health_report",
        "schedule": crontab(hour=hour, minute=minute),
    }
    for hour, minute in HEALTH_REPORT_TIMES
}
beat_schedule["cleanup-stuck-files"] = {
    "task": "tasks.celery_tasks.cleanup_stuck_files_task",
    "schedule": crontab(minute="*/30"),
}

celery_app.conf.update(timezone="UTC", enable_utc=True, beat_schedule=beat_schedule)

# Initialize logging for worker
init_worker_logging()
