from pydantic import BaseModel
from typing import Optional, Union


class TokenClaims(BaseModel):
    user_id: str
    email: str
    name: Optional[str] = None


class LeaveMeetingRequest(BaseModel):
    meetingId: Optional[Union[str, int]] = None
