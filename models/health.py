from pydantic import BaseModel
from typing import Dict, List, Optional


class ApiHealth(BaseModel):
    isHealthy: bool
    responseTime: Optional[int] = None  # milliseconds
    statusCode: Optional[int] = None
    error: Optional[str] = None


class HealthReport(BaseModel):
    timestamp: str
    apis: Dict[str, ApiHealth] = {}
    overallStatus: str = "healthy"  # healthy, warning, error
    issues: List[str] = []


class MailResult(BaseModel):
    success: bool
    messageId: Optional[str] = None
    error: Optional[str] = None
    timestamp: str
