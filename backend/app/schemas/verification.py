from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr


class RequestCodeSubmit(BaseModel):
    email: EmailStr
    is_resend: bool = False


class RequestCodeResponse(BaseModel):
    success: bool
    message: str
    code: Optional[str] = None  # present only when VERIFICATION_DEV_MODE is on


class VerifyCodeSubmit(BaseModel):
    email: EmailStr
    code: str  # digits; spaces and dashes are ignored


class VerifyCodeResponse(BaseModel):
    success: bool
    verified: bool
    message: str = "Email verified successfully"


class RecentActionItem(BaseModel):
    action: str
    timestamp: datetime


class VerificationStatusResponse(BaseModel):
    email: str
    verified: bool
    email_confirmed_at: Optional[datetime] = None
    recent_actions: List[RecentActionItem] = []
    remaining_sends: int


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str


class VerifyErrorResponse(ErrorResponse):
    verified: bool = False
