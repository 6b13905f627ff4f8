from datetime import timedelta
import logging

from .celery_app import celery_app
from utils.config import Settings
from utils.database import Database
from utils.health_monitor import APIHealthMonitor
from utils.maintenance import AUTO_CLEANUP, fix_stuck_files

logger = logging.getLogger("celery.tasks")


def run_health_report(settings: Settings) -> dict:
	"""Probe every upstream API and email the report."""
	monitor = APIHealthMonitor(settings)
	report = monitor.perform_health_check()
	mail = monitor.send_health_report(report)
	logger.info("scheduled_health_report_sent" if mail.success else "scheduled_health_report_not_sent",
		extra={"health_status": report.overallStatus})
	return {"overallStatus": report.overallStatus, "issues": report.issues, "emailSent": mail.success}


def run_stuck_file_cleanup(settings: Settings, stuck_after: timedelta = timedelta(minutes=30)) -> dict:
	database = Database(settings.database_url)
	session = database.session()
	try:
		summary = fix_stuck_files(session, settings, stuck_after=stuck_after, policy=AUTO_CLEANUP)
	finally:
		session.close()
		database.dispose()
	return summary.model_dump(exclude={"actions"})


@celery_app.task
def scheduled_health_report():
	return run_health_report(Settings.from_env())


@celery_app.task
def cleanup_stuck_files_task():
	return run_stuck_file_cleanup(Settings.from_env())
