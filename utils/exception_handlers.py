import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from utils.response import error_response

logger = logging.getLogger("api.errors")

DEFAULT_MESSAGES = {
	status.HTTP_404_NOT_FOUND: "Not found",
	status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


class UpstreamError(Exception):
	"""A third-party call failed or answered with a non-success status."""

	def __init__(self, message: str, upstream: str, details=None):
		super().__init__(message)
		self.message = message
		self.upstream = upstream
		self.details = details


class DatabaseUnavailable(Exception):
	"""The database is not configured or could not be reached."""


def install_exception_handlers(app: FastAPI) -> None:
	# Starlette's HTTPException also covers routing failures (404, 405)
	@app.exception_handler(StarletteHTTPException)
	async def http_exception_handler(request: Request, exc: StarletteHTTPException):
		# Do not log sensitive details; rely on request middleware for stack traces when needed
		logger.warning(
			"http_exception",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": exc.status_code,
			}
		)
		message = exc.detail if isinstance(exc.detail, str) and exc.detail else DEFAULT_MESSAGES.get(exc.status_code, "HTTP error")
		if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
			message = DEFAULT_MESSAGES[exc.status_code]
		response = error_response(message, exc.status_code)
		if exc.headers:
			response.headers.update(exc.headers)
		return response

	@app.exception_handler(RequestValidationError)
	async def validation_exception_handler(request: Request, exc: RequestValidationError):
		errors = exc.errors()
		# A body that is not JSON at all is a bad request, not a schema mismatch
		malformed = any(err.get("type") == "json_invalid" for err in errors)
		status_code = status.HTTP_400_BAD_REQUEST if malformed else status.HTTP_422_UNPROCESSABLE_ENTITY
		logger.warning(
			"validation_error",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": status_code,
			}
		)
		if malformed:
			return error_response("Invalid JSON body", status_code)
		details = [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in errors]
		return error_response("Validation error", status.HTTP_422_UNPROCESSABLE_ENTITY, details=details)

	@app.exception_handler(UpstreamError)
	async def upstream_exception_handler(request: Request, exc: UpstreamError):
		logger.error(
			"upstream_failure",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
				"upstream": exc.upstream,
				"error": exc.message,
			}
		)
		return error_response(exc.message, status.HTTP_500_INTERNAL_SERVER_ERROR, details=exc.details)

	@app.exception_handler(DatabaseUnavailable)
	async def database_exception_handler(request: Request, exc: DatabaseUnavailable):
		logger.error(
			"database_unavailable",
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
				"error": str(exc),
			}
		)
		return error_response("Database unavailable", status.HTTP_500_INTERNAL_SERVER_ERROR, details=str(exc))

	@app.exception_handler(Exception)
	async def generic_exception_handler(request: Request, exc: Exception):
		# Do not expose internal details to clients
		logger.error(
			"unhandled_exception",
			exc_info=True,
			extra={
				"path": request.url.path,
				"method": request.method,
				"status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
			}
		)
		return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
