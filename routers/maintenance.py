from datetime import timedelta
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from models.response import CleanupResponse
from utils.config import Settings, get_settings
from utils.database import get_db
from utils.jwt import require_shared_secret
from utils.maintenance import AUTO_CLEANUP, fix_stuck_files
from utils.response import api_response

router = APIRouter(prefix="/api", tags=["maintenance"])
logger = logging.getLogger("api.maintenance")

# Files untouched this long while `processing` are considered stuck
STUCK_AFTER = timedelta(minutes=30)


def require_cleanup_secret(request: Request, settings: Settings = Depends(get_settings)) -> None:
	require_shared_secret(request, settings.cleanup_secret)


@router.post("/cleanup-stuck-files")
def cleanup_stuck_files(
	_: None = Depends(require_cleanup_secret),
	settings: Settings = Depends(get_settings),
	db: Session = Depends(get_db),
):
	summary = fix_stuck_files(db, settings, stuck_after=STUCK_AFTER, policy=AUTO_CLEANUP)
	return api_response(CleanupResponse(
		success=True,
		stuckFound=summary.stuck_found,
		fixed=summary.fixed,
		recovered=summary.recovered,
		errored=summary.errored,
	))
