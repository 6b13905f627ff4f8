from datetime import datetime, timedelta, timezone

import requests

from conftest import FakeResponse
from models.db import FileRecord, User


def test_beat_schedule_covers_report_times_and_cleanup():
	from tasks.celery_app import HEALTH_REPORT_TIMES, celery_app

	schedule = celery_app.conf.beat_schedule
	assert len([name for name in schedule if name.startswith("health-report-")]) == len(HEALTH_REPORT_TIMES)
	assert "health-report-0020" in schedule
	assert schedule["cleanup-stuck-files"]["task"] == "tasks.celery_tasks.cleanup_stuck_files_task"


def test_run_health_report_without_smtp(settings, monkeypatch):
	from tasks.celery_tasks import run_health_report

	monkeypatch.setattr(requests, "request", lambda *a, **k: FakeResponse(200))
	result = run_health_report(settings)
	# Only AssemblyAI has a key in the test environment
	assert result["overallStatus"] == "warning"
	assert result["emailSent"] is False
	assert len(result["issues"]) == 3


def test_run_stuck_file_cleanup(settings, db_session):
	from tasks.celery_tasks import run_stuck_file_cleanup

	past = datetime.now(timezone.utc) - timedelta(hours=4)
	db_session.add(User(id="u1", email="owner@example.com"))
	db_session.add(FileRecord(id="f1", user_id="u1", filename="a.mp3", status="processing", created_at=past, updated_at=past))
	db_session.commit()

	result = run_stuck_file_cleanup(settings)
	assert result == {"stuck_found": 1, "fixed": 0, "recovered": 0, "errored": 1, "failed": 0, "expired": 0}
	db_session.expire_all()
	assert db_session.get(FileRecord, "f1").status == "error"
