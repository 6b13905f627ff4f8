import os
import json
import logging
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime, timezone
from pathlib import Path
import contextvars
from typing import Optional

from fastapi import Request
from starlette.responses import Response

from utils.jwt import get_token_from_request, looks_like_jwt, verify_access_token

# Context variables for correlation and user identity
correlation_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("correlation_id", default=None)
user_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("user_id", default=None)

# Record attributes copied into the JSON payload when a caller sets them via `extra`
EXTRA_FIELDS = (
	"path", "method", "status_code", "latency_ms", "client_host", "error",
	"email", "file_id", "meeting_id", "api", "health_status", "upstream",
)


class ContextFilter(logging.Filter):
	def filter(self, record: logging.LogRecord) -> bool:
		record.correlation_id = correlation_id_ctx.get()
		if getattr(record, "user_id", None) is None:
			record.user_id = user_id_ctx.get()
		return True


class JsonFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:
		payload = {
			"timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
			"level": record.levelname,
			"logger": record.name,
			"message": record.getMessage(),
			"correlation_id": getattr(record, "correlation_id", None),
			"user_id": getattr(record, "user_id", None),
		}
		for key in EXTRA_FIELDS:
			val = getattr(record, key, None)
			if val is not None:
				payload[key] = val
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, ensure_ascii=False, default=str)


def _level_from_env() -> int:
	level_name = os.getenv("LOG_LEVEL", "INFO").upper()
	return getattr(logging, level_name, logging.INFO)


def _make_rotating_file_handler(path: Path, level: int) -> logging.Handler:
	path.parent.mkdir(parents=True, exist_ok=True)
	handler = TimedRotatingFileHandler(path, when="midnight", backupCount=int(os.getenv("LOG_BACKUP_COUNT", "7")), utc=True)
	handler.setLevel(level)
	handler.setFormatter(JsonFormatter())
	handler.addFilter(ContextFilter())
	return handler


def init_logging():
	"""Initialize application logging with console + rotating file handlers."""
	log_dir = Path(os.getenv("LOG_DIR", "logs"))
	level = _level_from_env()

	root = logging.getLogger()
	root.setLevel(level)

	# Remove existing handlers to avoid duplicates on reload
	for h in list(root.handlers):
		root.removeHandler(h)

	console = logging.StreamHandler()
	console.setLevel(level)
	console.setFormatter(JsonFormatter())
	console.addFilter(ContextFilter())
	root.addHandler(console)

	root.addHandler(_make_rotating_file_handler(log_dir / "app.log", level))
	root.addHandler(_make_rotating_file_handler(log_dir / "error.log", logging.ERROR))

	logging.getLogger(__name__).info("Logging initialized")


def init_console_logging():
	"""Console-only JSON logging for the operator CLI."""
	root = logging.getLogger()
	root.setLevel(_level_from_env())
	for h in list(root.handlers):
		root.removeHandler(h)
	console = logging.StreamHandler()
	console.setFormatter(JsonFormatter())
	console.addFilter(ContextFilter())
	root.addHandler(console)


def install_request_logging(app):
	"""Attach request logging middleware to the FastAPI app."""
	logger = logging.getLogger("request")

	@app.middleware("http")
	async def _log_middleware(request: Request, call_next):
		corr = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")
		if not corr:
			corr = os.urandom(8).hex()
		correlation_id_ctx.set(corr)

		# Best-effort identification of the caller to enrich logs
		user_id_ctx.set(None)
		token = get_token_from_request(request)
		# Machine callers (cron, cleanup) send plain shared secrets
		if token and looks_like_jwt(token):
			payload = verify_access_token(token, request.app.state.settings.jwt_secret)
			if payload and payload.get("userId"):
				user_id_ctx.set(str(payload["userId"]))

		start = datetime.now(timezone.utc)
		try:
			response: Response = await call_next(request)
			latency_ms = int((datetime.now(timezone.utc) - start).total_seconds() * 1000)
			logger.info(
				"request_completed",
				extra={
					"path": request.url.path,
					"method": request.method,
					"status_code": response.status_code,
					"latency_ms": latency_ms,
					"client_host": request.client.host if request.client else None,
				},
			)
			response.headers["X-Request-ID"] = corr
			return response
		except Exception:
			latency_ms = int((datetime.now(timezone.utc) - start).total_seconds() * 1000)
			logger.error(
				"request_failed",
				exc_info=True,
				extra={
					"path": request.url.path,
					"method": request.method,
					"status_code": 500,
					"latency_ms": latency_ms,
					"client_host": request.client.host if request.client else None,
				},
			)
			raise
		finally:
			# Clear context to avoid bleeding into other requests
			correlation_id_ctx.set(None)
			user_id_ctx.set(None)


def init_worker_logging():
	"""Initialize logging for Celery workers with a dedicated rotating file."""
	log_dir = Path(os.getenv("LOG_DIR", "logs"))
	level = _level_from_env()

	logger = logging.getLogger("celery")
	logger.setLevel(level)

	# Avoid duplicate handlers on worker autoreload
	for h in list(logger.handlers):
		logger.removeHandler(h)

	logger.addHandler(_make_rotating_file_handler(log_dir / "tasks.log", level))
	logger.propagate = True

	logger.info("Celery worker logging initialized")


def mask_email(email: str) -> str:
	try:
		local, domain = email.split("@", 1)
		if len(local) <= 1:
			masked_local = "*"
		else:
			masked_local = local[0] + "*" * (len(local) - 1)
		return f"{masked_local}@{domain}"
	except (AttributeError, ValueError):
		return "***@***"
