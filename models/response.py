from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None


class AuthUrlResponse(BaseModel):
    authUrl: str


class ActionResponse(BaseModel):
    success: bool
    message: str


class EnvCheckResponse(BaseModel):
    message: str
    available: Dict[str, bool]
    timestamp: str


class InstallInstructions(BaseModel):
    title: str
    steps: List[str]
    benefits: List[str]


class TTSStatusResponse(BaseModel):
    available: bool
    version: Optional[str] = None
    voices: Optional[List[str]] = None
    server: Optional[str] = None
    error: Optional[str] = None
    installInstructions: Optional[InstallInstructions] = None


class HealthCheckResponse(BaseModel):
    success: bool
    message: str
    timestamp: str
    healthStatus: str
    apisChecked: int
    emailSent: bool
    emailMessageId: Optional[str] = None
    issues: List[str]
    apiDetails: Dict[str, Any]


class HealthFailureResponse(BaseModel):
    success: bool = False
    error: str
    timestamp: str


class ZoomTestResponse(BaseModel):
    status: str
    zoomApiReachable: bool
    config: Dict[str, str]
    testAuthUrl: str
    timestamp: str


class ZoomTestFailure(BaseModel):
    status: str = "ERROR"
    error: str
    timestamp: str


class ZoomStatusResponse(BaseModel):
    connected: bool
    profile: Optional[Dict[str, Any]] = None


class CleanupResponse(BaseModel):
    success: bool
    stuckFound: int
    fixed: int
    recovered: int
    errored: int
