from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import urlencode
import logging
import requests

from models.db import User
from models.response import ActionResponse, AuthUrlResponse, ZoomStatusResponse, ZoomTestFailure, ZoomTestResponse
from models.user import LeaveMeetingRequest, TokenClaims
from utils.config import Settings, get_settings
from utils.database import get_db
from utils.jwt import claims_from_payload, create_state_token, get_current_user, verify_access_token
from utils.logging_config import mask_email
from utils.maintenance import as_utc
from utils.response import api_response

router = APIRouter(prefix="/api/zoom", tags=["zoom"])
logger = logging.getLogger("api.zoom")

ZOOM_AUTHORIZE_URL = "https://zoom.us/oauth/authorize"
ZOOM_TOKEN_URL = "https://zoom.us/oauth/token"
ZOOM_API_URL = "https://api.zoom.us/v2"
ZOOM_SCOPES = "meeting:read meeting:write user:read user_info:read"
UPSTREAM_TIMEOUT = 10


def build_zoom_auth_url(settings: Settings, state: str) -> str:
	params = {
		"response_type": "code",
		"client_id": settings.zoom_client_id or "",
		"redirect_uri": settings.zoom_redirect_uri or "",
		"state": state,
		"scope": ZOOM_SCOPES,
	}
	return f"{ZOOM_AUTHORIZE_URL}?{urlencode(params)}"


def _zoom_meetings_redirect(**params) -> RedirectResponse:
	return RedirectResponse(f"/zoom-meetings?{urlencode(params)}", status_code=status.HTTP_302_FOUND)


def _masked(value: Optional[str]) -> str:
	return f"{value[:5]}..." if value else "NOT SET"


def request_zoom_token(settings: Settings, data: dict) -> requests.Response:
	return requests.post(
		ZOOM_TOKEN_URL,
		auth=(settings.zoom_client_id or "", settings.zoom_client_secret or ""),
		data=data,
		timeout=UPSTREAM_TIMEOUT,
	)


def _store_tokens(user: User, token_data: dict, now: datetime) -> None:
	user.zoom_access_token = token_data.get("access_token")
	if token_data.get("refresh_token"):
		user.zoom_refresh_token = token_data["refresh_token"]
	user.zoom_expires_at = now + timedelta(seconds=int(token_data.get("expires_in") or 3600))
	if token_data.get("scope"):
		user.zoom_scope = token_data["scope"]


@router.post("/connect")
def zoom_connect(user: TokenClaims = Depends(get_current_user), settings: Settings = Depends(get_settings)):
	if not settings.zoom_client_id or not settings.zoom_redirect_uri:
		logger.error("zoom_oauth_not_configured")
		raise HTTPException(status_code=500, detail="Failed to generate authorization URL")

	state = create_state_token(user.user_id, settings.jwt_secret)
	logger.info("zoom_connect_url_issued", extra={"user_id": user.user_id})
	return api_response(AuthUrlResponse(authUrl=build_zoom_auth_url(settings, state)))


@router.get("/callback")
def zoom_callback(
	code: Optional[str] = Query(None),
	state: Optional[str] = Query(None),
	error: Optional[str] = Query(None),
	error_description: Optional[str] = Query(None),
	settings: Settings = Depends(get_settings),
	db: Session = Depends(get_db),
):
	if error:
		logger.warning("zoom_oauth_error", extra={"upstream": "zoom", "error": error})
		return _zoom_meetings_redirect(error=error, description=error_description or "OAuth authorization failed")
	if not code:
		raise HTTPException(status_code=400, detail="Authorization code not provided")

	try:
		token_response = request_zoom_token(settings, {
			"grant_type": "authorization_code",
			"code": code,
			"redirect_uri": settings.zoom_redirect_uri or "",
		})
		if not token_response.ok:
			logger.error("zoom_token_exchange_failed", extra={"upstream": "zoom", "status_code": token_response.status_code})
			return _zoom_meetings_redirect(
				error="token_exchange_failed",
				description=f"Failed to exchange authorization code: {token_response.text}",
			)
		token_data = token_response.json()

		claims = claims_from_payload(verify_access_token(state, settings.jwt_secret)) if state else None

		profile_response = requests.get(
			f"{ZOOM_API_URL}/users/me",
			headers={"Authorization": f"Bearer {token_data['access_token']}"},
			timeout=UPSTREAM_TIMEOUT,
		)
		zoom_user = profile_response.json()
	except (requests.RequestException, ValueError, KeyError) as err:
		logger.error("zoom_callback_failed", extra={"upstream": "zoom", "error": str(err)})
		return _zoom_meetings_redirect(error="connection_failed")

	if claims is not None:
		user = db.get(User, claims.user_id)
		if user is not None:
			now = datetime.now(timezone.utc)
			_store_tokens(user, token_data, now)
			user.zoom_profile = {
				key: zoom_user.get(key)
				for key in ("id", "email", "first_name", "last_name", "account_id")
			}
			user.zoom_connected_at = now
			db.commit()
			logger.info("zoom_connected", extra={"user_id": user.id, "email": mask_email(user.email)})
		else:
			logger.warning("zoom_callback_unknown_user", extra={"user_id": claims.user_id})

	return _zoom_meetings_redirect(connected="true")


@router.get("/status")
def zoom_status(
	current: TokenClaims = Depends(get_current_user),
	settings: Settings = Depends(get_settings),
	db: Session = Depends(get_db),
):
	user = db.get(User, current.user_id)
	if user is None:
		raise HTTPException(status_code=404, detail="User not found")

	if not user.zoom_access_token:
		return api_response(ZoomStatusResponse(connected=False), exclude_none=False)

	now = datetime.now(timezone.utc)
	expires_at = as_utc(user.zoom_expires_at)
	if expires_at is None or expires_at >= now:
		return api_response(ZoomStatusResponse(connected=True, profile=user.zoom_profile), exclude_none=False)

	# Access token expired: one refresh attempt, otherwise report disconnected
	if user.zoom_refresh_token:
		try:
			refresh = request_zoom_token(settings, {
				"grant_type": "refresh_token",
				"refresh_token": user.zoom_refresh_token,
			})
			if refresh.ok:
				_store_tokens(user, refresh.json(), now)
				db.commit()
				logger.info("zoom_token_refreshed", extra={"user_id": user.id})
				return api_response(ZoomStatusResponse(connected=True, profile=user.zoom_profile), exclude_none=False)
			logger.warning("zoom_token_refresh_rejected", extra={"user_id": user.id, "status_code": refresh.status_code})
		except (requests.RequestException, ValueError) as err:
			logger.error("zoom_token_refresh_failed", extra={"user_id": user.id, "error": str(err)})

	return api_response(ZoomStatusResponse(connected=False), exclude_none=False)


@router.post("/leave-meeting")
def leave_meeting(payload: Optional[LeaveMeetingRequest] = None, user: TokenClaims = Depends(get_current_user)):
	meeting_id = payload.meetingId if payload is not None else None
	if not meeting_id:
		raise HTTPException(status_code=400, detail="Meeting ID is required")

	logger.info("meeting_left", extra={"email": mask_email(user.email), "meeting_id": str(meeting_id)})
	return api_response(ActionResponse(success=True, message="Successfully left meeting"))


@router.get("/test")
def zoom_test(settings: Settings = Depends(get_settings)):
	timestamp = datetime.now(timezone.utc).isoformat()
	try:
		response = requests.get(f"{ZOOM_API_URL}/", headers={"User-Agent": "zoom-sdk-test"}, timeout=UPSTREAM_TIMEOUT)
	except requests.RequestException as err:
		logger.error("zoom_api_unreachable", extra={"upstream": "zoom", "error": str(err)})
		return api_response(ZoomTestFailure(error=str(err), timestamp=timestamp), status_code=500)

	config = {
		"ZOOM_CLIENT_ID": _masked(settings.zoom_client_id),
		"ZOOM_CLIENT_SECRET": _masked(settings.zoom_client_secret),
		"ZOOM_REDIRECT_URI": settings.zoom_redirect_uri or "NOT SET",
		"ZOOM_BASE_URL": settings.zoom_base_url or "NOT SET",
	}
	return api_response(ZoomTestResponse(
		status="OK",
		# The API root answers 404 when it is reachable
		zoomApiReachable=response.status_code == 404,
		config=config,
		testAuthUrl=build_zoom_auth_url(settings, "test-state"),
		timestamp=timestamp,
	))
