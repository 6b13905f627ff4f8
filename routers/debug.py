from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from models.response import EnvCheckResponse
from utils.config import REPORTED_VARIABLES, Settings, get_settings
from utils.response import api_response

router = APIRouter(prefix="/api", tags=["debug"])
logger = logging.getLogger("api.debug")

DEBUG_KEY = "check123"


@router.get("/debug-env")
def debug_env(debug: Optional[str] = Query(None), settings: Settings = Depends(get_settings)):
	"""Report which configuration variables are set, as booleans only."""
	if debug != DEBUG_KEY:
		raise HTTPException(status_code=403, detail="Forbidden")

	available = {name: bool(settings.presence.get(name)) for name in REPORTED_VARIABLES}
	logger.info("debug_env_checked")
	return api_response(EnvCheckResponse(
		message="Environment variables check",
		available=available,
		timestamp=datetime.now(timezone.utc).isoformat(),
	))
