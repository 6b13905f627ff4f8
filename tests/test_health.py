import requests
from fastapi.testclient import TestClient

from conftest import FakeResponse, auth_headers
from models.health import ApiHealth, HealthReport, MailResult
from routers.health import get_health_monitor
from utils.config import Settings
from utils.health_monitor import APIHealthMonitor, render_report_html


class StubMonitor:
	def __init__(self, report=None, mail=None, fail=None):
		self.report = report
		self.mail = mail or MailResult(success=True, messageId="<id@test>", timestamp="now")
		self.fail = fail
		self.mails_sent = 0

	def perform_health_check(self):
		if self.fail:
			raise self.fail
		return self.report

	def send_health_report(self, report):
		self.mails_sent += 1
		return self.mail


def _report(healthy=True):
	apis = {"assemblyai": ApiHealth(isHealthy=True, responseTime=12, statusCode=200)}
	issues = []
	if not healthy:
		apis["gladia"] = ApiHealth(isHealthy=False, responseTime=30, statusCode=502, error="HTTP 502")
		issues.append("gladia: HTTP 502")
	return HealthReport(timestamp="2025-01-01T00:00:00Z", apis=apis,
		overallStatus="healthy" if healthy else "warning", issues=issues)


def test_manual_check_reports_and_emails(client: TestClient, app):
	monitor = StubMonitor(report=_report(healthy=False))
	app.dependency_overrides[get_health_monitor] = lambda: monitor
	resp = client.post("/api/health/manual-check")
	assert resp.status_code == 200
	body = resp.json()
	assert body["success"] is True
	assert body["healthStatus"] == "warning"
	assert body["apisChecked"] == 2
	assert body["emailSent"] is True
	assert body["emailMessageId"] == "<id@test>"
	assert body["issues"] == ["gladia: HTTP 502"]
	assert body["apiDetails"]["gladia"]["statusCode"] == 502
	assert monitor.mails_sent == 1


def test_manual_check_failure_returns_500(client: TestClient, app):
	app.dependency_overrides[get_health_monitor] = lambda: StubMonitor(fail=RuntimeError("probe exploded"))
	resp = client.post("/api/health/manual-check")
	assert resp.status_code == 500
	body = resp.json()
	assert body["success"] is False
	assert body["error"] == "probe exploded"
	assert "timestamp" in body


def test_cron_requires_secret(client: TestClient):
	assert client.get("/api/cron/health-check").status_code == 401
	assert client.get("/api/cron/health-check", headers=auth_headers("wrong")).status_code == 401


def test_cron_skips_email_when_healthy(client: TestClient, app):
	monitor = StubMonitor(report=_report(healthy=True))
	app.dependency_overrides[get_health_monitor] = lambda: monitor
	resp = client.get("/api/cron/health-check", headers=auth_headers("cron-secret"))
	assert resp.status_code == 200
	assert resp.json()["emailSent"] is False
	assert monitor.mails_sent == 0


def test_cron_emails_on_issues(client: TestClient, app):
	monitor = StubMonitor(report=_report(healthy=False))
	app.dependency_overrides[get_health_monitor] = lambda: monitor
	resp = client.get("/api/cron/health-check", headers=auth_headers("cron-secret"))
	assert resp.json()["emailSent"] is True
	assert monitor.mails_sent == 1


def _settings(**overrides):
	values = dict(assemblyai_api_key="a", gladia_api_key="g", gemini_api_key="m", deepseek_api_key="d")
	values.update(overrides)
	return Settings(**values)


def test_monitor_aggregates_probe_results(monkeypatch):
	calls = []

	def fake_request(method, url, timeout=None, **kwargs):
		calls.append((method, url))
		if "gladia" in url:
			return FakeResponse(503)
		if "deepseek" in url:
			raise requests.Timeout("read timed out")
		return FakeResponse(401)

	monkeypatch.setattr(requests, "request", fake_request)
	report = APIHealthMonitor(_settings()).perform_health_check()

	assert [c[1].split("/")[2] for c in calls] == [
		"api.assemblyai.com", "api.gladia.io", "generativelanguage.googleapis.com", "api.deepseek.com",
	]
	assert calls[1][0] == "POST"
	assert report.apis["assemblyai"].isHealthy is True  # 4xx still means the API answered
	assert report.apis["gladia"].error == "HTTP 503"
	assert report.apis["deepseek"].isHealthy is False
	assert report.overallStatus == "warning"
	assert len(report.issues) == 2


def test_monitor_flags_missing_keys_without_calling(monkeypatch):
	def fail(*args, **kwargs):
		raise AssertionError("no request expected")

	monkeypatch.setattr(requests, "request", fail)
	report = APIHealthMonitor(Settings()).perform_health_check()
	assert report.overallStatus == "warning"
	assert all(not health.isHealthy for health in report.apis.values())
	assert "ASSEMBLYAI_API_KEY is not configured" in report.apis["assemblyai"].error


def test_monitor_marks_error_on_unexpected_exception(monkeypatch):
	def crash(method, url, **kwargs):
		if "generativelanguage.googleapis.com" in url:
			raise KeyError("boom")
		return FakeResponse(200)

	monkeypatch.setattr(requests, "request", crash)
	report = APIHealthMonitor(_settings()).perform_health_check()
	assert report.overallStatus == "error"
	assert report.apis["assemblyai"].isHealthy is True
	assert report.apis["gemini"].isHealthy is False
	assert any(issue.startswith("gemini:") for issue in report.issues)
	assert report.apis["deepseek"].isHealthy is True


def test_send_report_without_smtp_is_reported_not_raised():
	result = APIHealthMonitor(Settings()).send_health_report(_report())
	assert result.success is False
	assert "SMTP" in result.error


def test_report_html_escapes_errors():
	report = _report(healthy=False)
	report.issues.append("<script>x</script>")
	html = render_report_html(report, "9:00 AM", "Mon Jan 01 2025", "ops@example.com")
	assert "&lt;script&gt;" in html
	assert "<script>" not in html
	assert "WARNING" in html


def test_cron_secret_is_not_decoded_as_token(client: TestClient, app, caplog):
	app.dependency_overrides[get_health_monitor] = lambda: StubMonitor(report=_report(healthy=True))
	with caplog.at_level("WARNING", logger="auth"):
		resp = client.get("/api/cron/health-check", headers=auth_headers("cron-secret"))
	assert resp.status_code == 200
	assert not [r for r in caplog.records if r.getMessage().startswith("JWT verification failed")]
