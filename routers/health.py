from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
import logging

from models.health import HealthReport, MailResult
from models.response import HealthCheckResponse, HealthFailureResponse
from utils.config import Settings, get_settings
from utils.health_monitor import APIHealthMonitor
from utils.jwt import require_shared_secret
from utils.response import api_response

router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger("api.health")


def get_health_monitor(settings: Settings = Depends(get_settings)) -> APIHealthMonitor:
	return APIHealthMonitor(settings)


def _now() -> str:
	return datetime.now(timezone.utc).isoformat()


def _report_response(report: HealthReport, mail: MailResult, message: str):
	return api_response(HealthCheckResponse(
		success=True,
		message=message,
		timestamp=_now(),
		healthStatus=report.overallStatus,
		apisChecked=len(report.apis),
		emailSent=mail.success,
		emailMessageId=mail.messageId,
		issues=report.issues,
		apiDetails={name: health.model_dump() for name, health in report.apis.items()},
	), exclude_none=False)


def _failure(err: Exception):
	return api_response(HealthFailureResponse(error=str(err), timestamp=_now()), status_code=500)


@router.post("/health/manual-check")
def manual_health_check(monitor: APIHealthMonitor = Depends(get_health_monitor)):
	logger.info("manual_health_check_triggered")
	try:
		report = monitor.perform_health_check()
		mail = monitor.send_health_report(report)
	except Exception as err:
		logger.error("manual_health_check_failed", exc_info=True)
		return _failure(err)

	logger.info("manual_health_check_completed", extra={"health_status": report.overallStatus})
	message = "Health check completed and email sent" if mail.success else "Health check completed; email not sent"
	return _report_response(report, mail, message)


@router.get("/cron/health-check")
def cron_health_check(
	request: Request,
	settings: Settings = Depends(get_settings),
	monitor: APIHealthMonitor = Depends(get_health_monitor),
):
	"""Scheduled variant: authenticated with CRON_SECRET, emails only when something is wrong."""
	require_shared_secret(request, settings.cron_secret)
	try:
		report = monitor.perform_health_check()
		if report.issues:
			mail = monitor.send_health_report(report)
		else:
			mail = MailResult(success=False, error="No email needed - all systems healthy", timestamp=_now())
	except Exception as err:
		logger.error("cron_health_check_failed", exc_info=True)
		return _failure(err)

	return _report_response(report, mail, "Scheduled health check completed")
