from datetime import datetime, timedelta, timezone

import requests
from fastapi.testclient import TestClient

from conftest import FakeResponse, auth_headers
from models.db import FileRecord, User
from utils.maintenance import fix_stuck_files

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


def _seed(db_session, *files):
	db_session.add(User(id="u1", email="owner@example.com", name="Owner"))
	for record in files:
		db_session.add(record)
	db_session.commit()


def _file(file_id, status, updated_ago, created_ago=None, transcript_id=None):
	return FileRecord(
		id=file_id,
		user_id="u1",
		filename=f"{file_id}.mp3",
		status=status,
		transcript_id=transcript_id,
		created_at=NOW - (created_ago or updated_ago),
		updated_at=NOW - updated_ago,
	)


def _status(db_session, file_id):
	db_session.expire_all()
	return db_session.get(FileRecord, file_id)


def test_long_stuck_file_is_marked_error(db_session, settings):
	_seed(db_session, _file("old", "processing", timedelta(hours=3)))
	summary = fix_stuck_files(db_session, settings, now=NOW)
	record = _status(db_session, "old")
	assert record.status == "error"
	assert record.error == "Processing timeout after 3.0 hours"
	assert summary.stuck_found == 1 and summary.errored == 1 and summary.fixed == 0


def test_recent_stuck_file_without_transcript_is_reset(db_session, settings):
	_seed(db_session, _file("young", "processing", timedelta(minutes=40)))
	fix_stuck_files(db_session, settings, now=NOW)
	record = _status(db_session, "young")
	assert record.status == "pending"
	assert record.reset_reason == "Fixed stuck processing - reset to pending"


def test_recent_stuck_file_is_recovered_from_assemblyai(db_session, settings, monkeypatch):
	_seed(db_session, _file("rec", "processing", timedelta(minutes=40), transcript_id="t-1"))
	seen = {}

	def fake_get(url, headers=None, timeout=None):
		seen["url"] = url
		seen["headers"] = headers
		return FakeResponse(200, {"status": "completed", "text": "hello world"})

	monkeypatch.setattr(requests, "get", fake_get)
	summary = fix_stuck_files(db_session, settings, now=NOW)
	record = _status(db_session, "rec")
	assert seen["url"] == "https://api.assemblyai.com/v2/transcript/t-1"
	assert seen["headers"] == {"Authorization": "assembly-key"}
	assert record.status == "completed"
	assert record.transcript == "hello world"
	assert summary.recovered == 1


def test_upstream_error_status_marks_file_error(db_session, settings, monkeypatch):
	_seed(db_session, _file("bad", "processing", timedelta(minutes=40), transcript_id="t-2"))
	monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(200, {"status": "error", "error": "bad audio"}))
	fix_stuck_files(db_session, settings, now=NOW)
	record = _status(db_session, "bad")
	assert record.status == "error"
	assert record.error == "AssemblyAI error: bad audio"


def test_failed_recovery_falls_back_to_pending(db_session, settings, monkeypatch):
	_seed(db_session, _file("net", "processing", timedelta(minutes=40), transcript_id="t-3"))

	def boom(*args, **kwargs):
		raise requests.ConnectionError("unreachable")

	monkeypatch.setattr(requests, "get", boom)
	fix_stuck_files(db_session, settings, now=NOW)
	record = _status(db_session, "net")
	assert record.status == "pending"
	assert record.reset_reason == "Recovery failed - reset to pending"


def test_old_pending_files_expire(db_session, settings):
	_seed(
		db_session,
		_file("ancient", "pending", timedelta(hours=30)),
		_file("recent", "pending", timedelta(hours=2)),
	)
	summary = fix_stuck_files(db_session, settings, now=NOW)
	assert _status(db_session, "ancient").status == "error"
	assert _status(db_session, "recent").status == "pending"
	assert summary.expired == 1


def test_dry_run_changes_nothing(db_session, settings):
	_seed(db_session, _file("old", "processing", timedelta(hours=3)))
	summary = fix_stuck_files(db_session, settings, now=NOW, dry_run=True)
	assert summary.actions[0].action == "error"
	assert _status(db_session, "old").status == "processing"


def test_stuck_after_skips_recent_files(db_session, settings):
	_seed(db_session, _file("fresh", "processing", timedelta(minutes=5)))
	summary = fix_stuck_files(db_session, settings, stuck_after=timedelta(minutes=30), now=NOW)
	assert summary.stuck_found == 0
	assert _status(db_session, "fresh").status == "processing"


def test_cleanup_endpoint_requires_secret(client: TestClient):
	assert client.post("/api/cleanup-stuck-files").status_code == 401
	assert client.post("/api/cleanup-stuck-files", headers=auth_headers("nope")).status_code == 401


def _seed_recent(db_session, file_id, age, transcript_id=None):
	past = datetime.now(timezone.utc) - age
	db_session.add(User(id="u1", email="owner@example.com"))
	db_session.add(FileRecord(id=file_id, user_id="u1", filename=f"{file_id}.mp3", status="processing",
		transcript_id=transcript_id, created_at=past, updated_at=past))
	db_session.commit()


def _cleanup(client):
	resp = client.post("/api/cleanup-stuck-files", headers=auth_headers("cleanup-secret"))
	assert resp.status_code == 200
	return resp.json()


def test_cleanup_endpoint_times_out_old_files(client: TestClient, db_session):
	_seed_recent(db_session, "f1", timedelta(hours=5), transcript_id="t-1")
	assert _cleanup(client) == {"success": True, "stuckFound": 1, "fixed": 0, "recovered": 0, "errored": 1}
	record = _status(db_session, "f1")
	assert record.status == "error"
	assert record.error.startswith("Processing timeout after 5.0 hours")


def test_cleanup_endpoint_marks_untracked_files_error(client: TestClient, db_session):
	_seed_recent(db_session, "f1", timedelta(minutes=45))
	assert _cleanup(client)["errored"] == 1
	assert _status(db_session, "f1").status == "error"


def test_cleanup_endpoint_counts_upstream_error(client: TestClient, db_session, monkeypatch):
	_seed_recent(db_session, "f1", timedelta(minutes=45), transcript_id="t-1")
	monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(200, {"status": "error", "error": "bad audio"}))
	assert _cleanup(client) == {"success": True, "stuckFound": 1, "fixed": 0, "recovered": 0, "errored": 1}
	record = _status(db_session, "f1")
	assert record.status == "error"
	assert record.error == "External error: bad audio"


def test_cleanup_endpoint_recovers_completed(client: TestClient, db_session, monkeypatch):
	_seed_recent(db_session, "f1", timedelta(minutes=45), transcript_id="t-1")
	monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(200, {"status": "completed", "text": "hi"}))
	assert _cleanup(client) == {"success": True, "stuckFound": 1, "fixed": 0, "recovered": 1, "errored": 0}
	assert _status(db_session, "f1").transcript == "hi"


def test_cleanup_endpoint_resets_still_running(client: TestClient, db_session, monkeypatch):
	_seed_recent(db_session, "f1", timedelta(minutes=45), transcript_id="t-1")
	monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(200, {"status": "processing"}))
	assert _cleanup(client) == {"success": True, "stuckFound": 1, "fixed": 1, "recovered": 0, "errored": 0}
	assert _status(db_session, "f1").status == "pending"


def test_cleanup_endpoint_resets_when_recovery_fails(client: TestClient, db_session, monkeypatch):
	_seed_recent(db_session, "f1", timedelta(minutes=45), transcript_id="t-1")

	def boom(*args, **kwargs):
		raise requests.ConnectionError("unreachable")

	monkeypatch.setattr(requests, "get", boom)
	assert _cleanup(client)["fixed"] == 1
	record = _status(db_session, "f1")
	assert record.status == "pending"
	assert record.reset_reason == "Auto-cleanup - recovery failed, reset for retry"


def test_cleanup_endpoint_skips_recent_files(client: TestClient, db_session):
	_seed_recent(db_session, "f1", timedelta(minutes=10))
	assert _cleanup(client)["stuckFound"] == 0
	assert _status(db_session, "f1").status == "processing"
