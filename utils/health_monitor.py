"""Upstream API health monitor.

Probes each transcription/LLM provider once, aggregates the results into a
single HealthReport and emails it to the operator. Probes run one after the
other; there is no retry or backoff.
"""

import logging
import time
from datetime import datetime, timezone
from html import escape
from typing import Callable, Dict, Optional, Tuple

import requests

from models.health import ApiHealth, HealthReport, MailResult
from utils.config import Settings
from utils.mailer import send_html_email

logger = logging.getLogger("health")

PROBE_TIMEOUT = 10

STATUS_COLORS = {"healthy": "#22c55e", "warning": "#f59e0b", "error": "#ef4444"}
STATUS_EMOJI = {"healthy": "✅", "warning": "⚠️", "error": "❌"}

SCHEDULE_DESCRIPTION = "12:00 AM, 12:20 AM, 7:00 AM, 10:00 AM, 12:00 PM, 3:00 PM, 10:00 PM"


class ProbeNotConfigured(Exception):
    pass


def _assemblyai(key: str) -> Tuple[str, str, dict]:
    return "GET", "https://api.assemblyai.com/v2/transcript", {"headers": {"Authorization": key}}


def _gladia(key: str) -> Tuple[str, str, dict]:
    return "POST", "https://api.gladia.io/v2/pre-recorded/", {
        "headers": {"X-Gladia-Key": key, "Content-Type": "application/json"},
        "json": {"audio_url": "test"},
    }


def _gemini(key: str) -> Tuple[str, str, dict]:
    return "GET", "https://generativelanguage.googleapis.com/v1beta/models", {"params": {"key": key}}


def _deepseek(key: str) -> Tuple[str, str, dict]:
    return "GET", "https://api.deepseek.com/v1/models", {"headers": {"Authorization": f"Bearer {key}"}}


# name -> (settings attribute holding the key, request builder)
PROBES: Dict[str, Tuple[str, Callable[[str], Tuple[str, str, dict]]]] = {
    "assemblyai": ("assemblyai_api_key", _assemblyai),
    "gladia": ("gladia_api_key", _gladia),
    "gemini": ("gemini_api_key", _gemini),
    "deepseek": ("deepseek_api_key", _deepseek),
}


class APIHealthMonitor:
    def __init__(self, settings: Settings):
        self.settings = settings

    def check_api(self, name: str) -> ApiHealth:
        """Probe one provider. A status below 500 counts as healthy, since 4xx
        still proves the service is up and answering."""
        if name not in PROBES:
            raise ValueError(f"Unknown API: {name}")
        key_attr, build = PROBES[name]
        key = getattr(self.settings, key_attr)
        if not key:
            raise ProbeNotConfigured(f"{key_attr.upper()} is not configured")

        method, url, kwargs = build(key)
        start = time.monotonic()
        try:
            response = requests.request(method, url, timeout=PROBE_TIMEOUT, **kwargs)
        except requests.RequestException as err:
            return ApiHealth(
                isHealthy=False,
                responseTime=int((time.monotonic() - start) * 1000),
                error=str(err),
            )

        is_healthy = response.status_code < 500
        return ApiHealth(
            isHealthy=is_healthy,
            responseTime=int((time.monotonic() - start) * 1000),
            statusCode=response.status_code,
            error=None if is_healthy else f"HTTP {response.status_code}",
        )

    def perform_health_check(self) -> HealthReport:
        report = HealthReport(timestamp=datetime.now(timezone.utc).isoformat())

        for name in PROBES:
            try:
                health = self.check_api(name)
            except ProbeNotConfigured as err:
                health = ApiHealth(isHealthy=False, error=str(err))
            except Exception as err:
                logger.error("health_probe_crashed", exc_info=True, extra={"api": name})
                report.apis[name] = ApiHealth(isHealthy=False, error=str(err))
                report.overallStatus = "error"
                report.issues.append(f"{name}: {err}")
                continue

            report.apis[name] = health
            if not health.isHealthy:
                if report.overallStatus != "error":
                    report.overallStatus = "warning"
                report.issues.append(f"{name}: {health.error}")

        logger.info("health_check_completed", extra={"health_status": report.overallStatus})
        return report

    def send_health_report(self, report: HealthReport, now: Optional[datetime] = None) -> MailResult:
        now = now or datetime.now()
        time_string = now.strftime("%I:%M %p").lstrip("0")
        subject = f"🤖 AI Health Report - {time_string} | {report.overallStatus.upper()}"
        html = render_report_html(report, time_string, now.strftime("%a %b %d %Y"), self.settings.alert_email)
        return send_html_email(self.settings, self.settings.alert_email, subject, html)


def render_report_html(report: HealthReport, time_string: str, date_string: str, recipient: str) -> str:
    color = STATUS_COLORS.get(report.overallStatus, STATUS_COLORS["error"])
    emoji = STATUS_EMOJI.get(report.overallStatus, STATUS_EMOJI["error"])

    cards = []
    for name, data in report.apis.items():
        css = "api-healthy" if data.isHealthy else "api-error"
        error_line = f'<div class="api-error-msg">Error: {escape(data.error)}</div>' if data.error else ""
        response_time = f"{data.responseTime}ms" if data.responseTime is not None else "N/A"
        cards.append(
            f'<div class="api-card {css}">'
            f'<div class="api-name">{"✅" if data.isHealthy else "❌"} {escape(name.upper())}</div>'
            f'<div class="api-status">Status: {"Healthy" if data.isHealthy else "Error"}</div>'
            f'<div class="api-response">Response: {response_time}</div>'
            f"{error_line}</div>"
        )

    if report.issues:
        issues = "".join(f"<p>• {escape(issue)}</p>" for issue in report.issues)
        issues_block = f'<h3>⚠️ Issues Detected</h3><div class="issues">{issues}</div>'
    else:
        issues_block = (
            '<div class="all-clear"><p><strong>✅ All Systems Operational</strong></p>'
            "<p>All APIs are responding normally.</p></div>"
        )

    return f"""<!DOCTYPE html>
<html>
<head>
<style>
  body {{ font-family: 'Segoe UI', sans-serif; color: #333; background: #f8fafc; padding: 20px; }}
  .container {{ max-width: 700px; margin: 0 auto; background: white; border-radius: 12px; overflow: hidden; }}
  .header {{ background: {color}; color: white; padding: 30px; text-align: center; }}
  .content {{ padding: 30px; }}
  .api-card {{ border: 1px solid #e2e8f0; border-radius: 8px; padding: 15px; margin-bottom: 10px; }}
  .api-healthy {{ border-left: 4px solid #22c55e; }}
  .api-error {{ border-left: 4px solid #ef4444; }}
  .api-error-msg {{ font-size: 11px; color: #ef4444; }}
  .issues {{ background: #fef3c7; border-left: 4px solid #f59e0b; padding: 15px; }}
  .all-clear {{ background: #d1fae5; border-left: 4px solid #22c55e; padding: 15px; }}
  .timestamp {{ text-align: center; color: #64748b; font-size: 12px; }}
</style>
</head>
<body>
<div class="container">
  <div class="header">
    <h1>{emoji} AI Health Report</h1>
    <p><strong>{escape(time_string)}</strong> | {escape(date_string)}</p>
  </div>
  <div class="content">
    <h2>{emoji} System Status: {escape(report.overallStatus.upper())}</h2>
    <h3>🔍 API Health Details</h3>
    {"".join(cards)}
    {issues_block}
    <h3>📊 Next Health Checks</h3>
    <p>{SCHEDULE_DESCRIPTION}</p>
  </div>
  <div class="timestamp">Generated {escape(report.timestamp)}<br>Delivered to: {escape(recipient)}</div>
</div>
</body>
</html>
"""
