import os
from typing import Dict, Optional

from fastapi import Request
from pydantic import BaseModel

DEV_JWT_SECRET = "your-super-secret-jwt-key-change-in-production"
DEFAULT_GOOGLE_REDIRECT_URI = "https://ecoutertranscribe.tech/api/auth/callback/google"
DEFAULT_MARYTTS_URL = "http://localhost:59125"
DEFAULT_SITE_URL = "https://ecoutertranscribe.tech"
DEFAULT_ALERT_EMAIL = "ecouter.transcribe@gmail.com"

# Variables reported by the debug endpoint and `cli.py check-env`
REPORTED_VARIABLES = (
	"DATABASE_URL",
	"ASSEMBLYAI_API_KEY",
	"R2_ACCOUNT_ID",
	"R2_ACCESS_KEY_ID",
	"R2_SECRET_ACCESS_KEY",
	"R2_BUCKET_NAME",
	"R2_PUBLIC_URL",
	"JWT_SECRET",
	"GOOGLE_CLIENT_ID",
	"GOOGLE_CLIENT_SECRET",
)

REQUIRED_VARIABLES = ("DATABASE_URL", "JWT_SECRET", "ASSEMBLYAI_API_KEY")


class ConfigurationError(RuntimeError):
	"""Raised when the environment cannot produce a usable configuration."""


class Settings(BaseModel):
	app_env: str = "development"
	database_url: Optional[str] = None

	jwt_secret: str = DEV_JWT_SECRET
	jwt_secret_is_default: bool = True

	assemblyai_api_key: Optional[str] = None
	gladia_api_key: Optional[str] = None
	gemini_api_key: Optional[str] = None
	deepseek_api_key: Optional[str] = None

	google_client_id: Optional[str] = None
	google_client_secret: Optional[str] = None
	google_redirect_uri: str = DEFAULT_GOOGLE_REDIRECT_URI

	zoom_client_id: Optional[str] = None
	zoom_client_secret: Optional[str] = None
	zoom_redirect_uri: Optional[str] = None
	zoom_base_url: Optional[str] = None

	r2_account_id: Optional[str] = None
	r2_access_key_id: Optional[str] = None
	r2_secret_access_key: Optional[str] = None
	r2_bucket_name: Optional[str] = None
	r2_public_url: Optional[str] = None

	smtp_server: Optional[str] = None
	smtp_port: int = 587
	smtp_login: Optional[str] = None
	smtp_password: Optional[str] = None
	smtp_sender: Optional[str] = None
	alert_email: str = DEFAULT_ALERT_EMAIL

	cron_secret: Optional[str] = None
	cleanup_secret: Optional[str] = None

	marytts_url: str = DEFAULT_MARYTTS_URL
	site_url: str = DEFAULT_SITE_URL
	redis_url: str = "redis://localhost:6379/0"

	# Presence flags captured from the raw environment, never the values
	presence: Dict[str, bool] = {}

	@property
	def is_production(self) -> bool:
		return self.app_env == "production"

	@property
	def smtp_configured(self) -> bool:
		return bool(self.smtp_server and self.smtp_login and self.smtp_password)

	@classmethod
	def from_env(cls, environ=None) -> "Settings":
		"""Build the settings object from environment variables.

		Raises ConfigurationError in production when JWT_SECRET is missing,
		so a misconfigured deployment fails before serving a request.
		"""
		env = os.environ if environ is None else environ

		def get(name: str) -> Optional[str]:
			value = env.get(name)
			return value if value else None

		app_env = (get("APP_ENV") or "development").lower()
		jwt_secret = get("JWT_SECRET")
		if jwt_secret is None and app_env == "production":
			raise ConfigurationError("JWT_SECRET must be set in production")

		try:
			smtp_port = int(get("SMTP_PORT") or "587")
		except ValueError:
			raise ConfigurationError("SMTP_PORT must be an integer")

		presence = {name: bool(get(name)) for name in REPORTED_VARIABLES}

		return cls(
			app_env=app_env,
			database_url=get("DATABASE_URL"),
			jwt_secret=jwt_secret or DEV_JWT_SECRET,
			jwt_secret_is_default=jwt_secret is None,
			assemblyai_api_key=get("ASSEMBLYAI_API_KEY"),
			gladia_api_key=get("GLADIA_API_KEY"),
			gemini_api_key=get("GEMINI_API_KEY"),
			deepseek_api_key=get("DEEPSEEK_API_KEY"),
			google_client_id=get("GOOGLE_CLIENT_ID"),
			google_client_secret=get("GOOGLE_CLIENT_SECRET"),
			google_redirect_uri=get("GOOGLE_REDIRECT_URI") or DEFAULT_GOOGLE_REDIRECT_URI,
			zoom_client_id=get("ZOOM_CLIENT_ID"),
			zoom_client_secret=get("ZOOM_CLIENT_SECRET"),
			zoom_redirect_uri=get("ZOOM_REDIRECT_URI"),
			zoom_base_url=get("ZOOM_BASE_URL"),
			r2_account_id=get("R2_ACCOUNT_ID"),
			r2_access_key_id=get("R2_ACCESS_KEY_ID"),
			r2_secret_access_key=get("R2_SECRET_ACCESS_KEY"),
			r2_bucket_name=get("R2_BUCKET_NAME"),
			r2_public_url=get("R2_PUBLIC_URL"),
			smtp_server=get("SMTP_SERVER"),
			smtp_port=smtp_port,
			smtp_login=get("SMTP_LOGIN"),
			smtp_password=get("SMTP_PASSWORD"),
			smtp_sender=get("SMTP_SENDER") or get("SMTP_LOGIN"),
			alert_email=get("ALERT_EMAIL") or DEFAULT_ALERT_EMAIL,
			cron_secret=get("CRON_SECRET"),
			cleanup_secret=get("CLEANUP_SECRET"),
			marytts_url=(get("MARYTTS_URL") or DEFAULT_MARYTTS_URL).rstrip("/"),
			site_url=(get("SITE_URL") or DEFAULT_SITE_URL).rstrip("/"),
			redis_url=get("REDIS_URL") or "redis://localhost:6379/0",
			presence=presence,
		)

	def missing_required(self):
		return [name for name in REQUIRED_VARIABLES if not self.presence.get(name)]


def get_settings(request: Request) -> Settings:
	"""FastAPI dependency returning the settings built at startup."""
	return request.app.state.settings
