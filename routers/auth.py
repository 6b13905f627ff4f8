from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import quote, urlencode
import logging
import requests

from models.db import User
from models.user import TokenClaims
from utils.config import Settings, get_settings
from utils.database import get_db
from utils.exception_handlers import UpstreamError
from utils.jwt import ACCESS_TOKEN_EXPIRE_DAYS, TOKEN_COOKIE, create_user_token, get_optional_user
from utils.logging_config import mask_email

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("api.auth")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = (
	"https://www.googleapis.com/auth/userinfo.email",
	"https://www.googleapis.com/auth/userinfo.profile",
)
UPSTREAM_TIMEOUT = 10


def build_google_auth_url(settings: Settings) -> str:
	params = {
		"client_id": settings.google_client_id,
		"redirect_uri": settings.google_redirect_uri,
		"scope": " ".join(GOOGLE_SCOPES),
		"response_type": "code",
		"access_type": "offline",
		"prompt": "consent",
	}
	return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


@router.get("/google")
def google_login(
	current: Optional[TokenClaims] = Depends(get_optional_user),
	settings: Settings = Depends(get_settings),
):
	# Already signed in: send them back instead of starting another OAuth round trip
	if current is not None and current.email:
		logger.info("google_login_blocked_already_logged_in", extra={"email": mask_email(current.email)})
		return RedirectResponse(
			f"/dashboard?error=already_logged_in&email={quote(current.email, safe='')}",
			status_code=status.HTTP_302_FOUND,
		)

	if not settings.google_client_id:
		logger.error("google_client_id_missing")
		raise HTTPException(status_code=500, detail="Failed to initiate Google authentication")

	logger.info("google_login_redirect", extra={"upstream": "google"})
	return RedirectResponse(build_google_auth_url(settings), status_code=status.HTTP_302_FOUND)


def exchange_google_code(settings: Settings, code: str) -> dict:
	response = requests.post(
		GOOGLE_TOKEN_URL,
		data={
			"client_id": settings.google_client_id,
			"client_secret": settings.google_client_secret,
			"code": code,
			"grant_type": "authorization_code",
			"redirect_uri": settings.google_redirect_uri,
		},
		timeout=UPSTREAM_TIMEOUT,
	)
	return response.json()


def fetch_google_user(access_token: str) -> dict:
	response = requests.get(
		GOOGLE_USERINFO_URL,
		headers={"Authorization": f"Bearer {access_token}"},
		timeout=UPSTREAM_TIMEOUT,
	)
	return response.json()


def upsert_google_user(db: Session, google_user: dict) -> User:
	email = google_user["email"]
	user = db.scalars(select(User).where(User.email == email)).first()
	if user is None:
		user = User(
			email=email,
			name=google_user.get("name") or email.split("@")[0],
			provider="google",
			google_id=google_user.get("id"),
			avatar=google_user.get("picture"),
		)
		db.add(user)
		logger.info("google_user_created", extra={"email": mask_email(email)})
	else:
		user.google_id = google_user.get("id")
		user.avatar = google_user.get("picture")
	db.commit()
	db.refresh(user)
	return user


@router.get("/callback/google")
def google_callback(
	code: Optional[str] = Query(None),
	settings: Settings = Depends(get_settings),
	db: Session = Depends(get_db),
):
	if not code:
		raise HTTPException(status_code=400, detail="Authorization code required")
	if not settings.google_client_id or not settings.google_client_secret:
		raise UpstreamError("Google OAuth is not configured", upstream="google")

	try:
		token_data = exchange_google_code(settings, code)
		if not token_data.get("access_token"):
			logger.warning("google_token_exchange_failed", extra={"upstream": "google"})
			raise HTTPException(status_code=400, detail="Failed to get access token")
		google_user = fetch_google_user(token_data["access_token"])
	except (requests.RequestException, ValueError) as err:
		logger.error("google_oauth_failed", extra={"upstream": "google", "error": str(err)})
		return RedirectResponse("/login?error=oauth_failed", status_code=status.HTTP_302_FOUND)

	if not google_user.get("email"):
		raise HTTPException(status_code=400, detail="Failed to get user information")

	user = upsert_google_user(db, google_user)
	token = create_user_token(user.id, user.email, user.name, settings.jwt_secret)

	response = RedirectResponse("/dashboard", status_code=status.HTTP_302_FOUND)
	response.set_cookie(
		TOKEN_COOKIE,
		token,
		max_age=ACCESS_TOKEN_EXPIRE_DAYS * 24 * 3600,
		httponly=True,
		secure=settings.is_production,
		samesite="lax",
		path="/",
	)
	logger.info("google_login_success", extra={"user_id": user.id, "email": mask_email(user.email)})
	return response
