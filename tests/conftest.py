import os
import shutil
import sys
import tempfile
import importlib
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
	sys.path.insert(0, PROJECT_ROOT)

TEST_SECRET = "test_secret"

MANAGED_ENV = {
	"APP_ENV": "test",
	"JWT_SECRET": TEST_SECRET,
	"GOOGLE_CLIENT_ID": "google-client-id",
	"GOOGLE_CLIENT_SECRET": "google-client-secret",
	"GOOGLE_REDIRECT_URI": "http://testserver/api/auth/callback/google",
	"ZOOM_CLIENT_ID": "zoomclient123",
	"ZOOM_CLIENT_SECRET": "zoomsecret456",
	"ZOOM_REDIRECT_URI": "http://testserver/api/zoom/callback",
	"ASSEMBLYAI_API_KEY": "assembly-key",
	"CRON_SECRET": "cron-secret",
	"CLEANUP_SECRET": "cleanup-secret",
	"MARYTTS_URL": "http://marytts.test:59125",
}


class FakeResponse:
	"""Minimal stand-in for requests.Response."""

	def __init__(self, status_code=200, json_data=None, text=""):
		self.status_code = status_code
		self._json = json_data
		self.text = text

	@property
	def ok(self):
		return self.status_code < 400

	def json(self):
		if self._json is None:
			raise ValueError("No JSON body")
		return self._json


@pytest.fixture(scope="session")
def temp_dirs():
	base = tempfile.mkdtemp(prefix="ecouter_tests_")
	logs_dir = os.path.join(base, "logs")
	os.makedirs(logs_dir, exist_ok=True)
	yield {"base": base, "logs": logs_dir, "db": os.path.join(base, "test.db")}
	shutil.rmtree(base, ignore_errors=True)


@pytest.fixture(scope="session")
def app(temp_dirs):
	# Set env before importing app
	for name, value in MANAGED_ENV.items():
		os.environ[name] = value
	os.environ["LOG_DIR"] = temp_dirs["logs"]
	os.environ["DATABASE_URL"] = f"sqlite:///{temp_dirs['db']}"
	for name in ("SMTP_SERVER", "SMTP_LOGIN", "SMTP_PASSWORD"):
		os.environ.pop(name, None)
	import main as main_module
	importlib.reload(main_module)
	return main_module.app


@pytest.fixture
def client(app):
	app.dependency_overrides.clear()
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def settings(app):
	return app.state.settings


@pytest.fixture
def db_session(app):
	session = app.state.database.session()
	yield session
	session.close()


@pytest.fixture(autouse=True)
def reset_database(app):
	from models.db import Base
	database = app.state.database
	Base.metadata.drop_all(database.engine)
	Base.metadata.create_all(database.engine)
	yield


def make_token(user_id="user-1", email="user@example.com", name="Test User", secret=TEST_SECRET, expires_delta=None):
	from utils.jwt import create_user_token
	return create_user_token(user_id, email, name, secret, expires_delta or timedelta(hours=1))


def auth_headers(token: str) -> dict:
	return {"Authorization": f"Bearer {token}"}
