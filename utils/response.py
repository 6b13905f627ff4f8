from fastapi.responses import JSONResponse
from pydantic import BaseModel

from models.response import ErrorResponse


def api_response(body: BaseModel, status_code=200, exclude_none=True):
	return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=exclude_none))


def error_response(message: str, status_code: int, details=None):
	return api_response(ErrorResponse(error=message, details=details), status_code=status_code)
