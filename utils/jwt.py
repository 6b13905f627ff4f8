from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Optional
import logging
import secrets

# FastAPI imports for dependency-based auth
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from models.user import TokenClaims
from utils.config import Settings, get_settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 7
STATE_TOKEN_EXPIRE_HOURS = 1
TOKEN_COOKIE = "token"

http_bearer = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth")


def create_access_token(data: dict, secret: str, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_user_token(user_id: str, email: str, name: Optional[str], secret: str, expires_delta: timedelta = None):
    claims = {"userId": str(user_id), "email": email}
    if name:
        claims["name"] = name
    return create_access_token(claims, secret, expires_delta)


def create_state_token(user_id: str, secret: str):
    """Short-lived credential carried through an OAuth round trip as `state`."""
    return create_access_token({"userId": str(user_id)}, secret, timedelta(hours=STATE_TOKEN_EXPIRE_HOURS))


def verify_access_token(token: str, secret: str) -> Optional[dict]:
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as err:
        logger.warning("JWT verification failed: %s", str(err))
        return None


def claims_from_payload(payload: Optional[dict]) -> Optional[TokenClaims]:
    if not payload or not payload.get("userId"):
        return None
    return TokenClaims(
        user_id=str(payload["userId"]),
        email=payload.get("email", ""),
        name=payload.get("name"),
    )


def extract_bearer(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    raw = raw.strip()
    if raw.lower().startswith("bearer "):
        return raw.split(" ", 1)[1].strip() or None
    return None


def looks_like_jwt(token: str) -> bool:
    # header.payload.signature
    return token.count(".") == 2


def get_token_from_request(request: Request) -> Optional[str]:
    """Return the raw credential, preferring the Authorization header over the cookie."""
    token = extract_bearer(request.headers.get("Authorization"))
    if token:
        return token
    return request.cookies.get(TOKEN_COOKIE) or None


def get_optional_user(request: Request, settings: Settings = Depends(get_settings)) -> Optional[TokenClaims]:
    token = get_token_from_request(request)
    if not token:
        return None
    return claims_from_payload(verify_access_token(token, settings.jwt_secret))


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    settings: Settings = Depends(get_settings),
) -> TokenClaims:
    """
    FastAPI dependency resolving the signed credential into claims.
    The bearer scheme is declared so Swagger's Authorize button works; the
    token cookie is accepted when no header is sent.
    Raises 401 when the credential is missing, malformed, expired or mis-signed.
    """
    token: Optional[str] = None
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        token = credentials.credentials.strip()
    if not token:
        token = get_token_from_request(request)

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No authentication token provided")

    claims = claims_from_payload(verify_access_token(token, settings.jwt_secret))
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")
    return claims


def require_shared_secret(request: Request, expected: Optional[str]) -> None:
    """Guard for machine callers (cron, cleanup) presenting a fixed bearer secret."""
    presented = extract_bearer(request.headers.get("Authorization"))
    if not expected or not presented or not secrets.compare_digest(presented, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
