import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.core.deps import get_verification_service
from app.core.errors import VerificationError
from app.schemas.verification import (
    ErrorResponse,
    RecentActionItem,
    RequestCodeResponse,
    RequestCodeSubmit,
    VerificationStatusResponse,
    VerifyCodeResponse,
    VerifyCodeSubmit,
    VerifyErrorResponse,
)
from app.services.audit_log import ClientInfo
from app.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _client_info(request: Request) -> ClientInfo:
    """First X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client:
        ip = request.client.host
    return ClientInfo(ip_address=ip or None, user_agent=request.headers.get("user-agent"))


@router.post(
    "/send",
    response_model=RequestCodeResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
def send_verification_code(
    body: RequestCodeSubmit,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    """
    Public: send (or resend) a 6-digit verification code to the email.
    At most 3 sends per rolling hour; a new code invalidates the previous one.
    """
    logger.info("Send code request: email=%s, resend=%s", body.email, body.is_resend)
    result = service.request_code(body.email, is_resend=body.is_resend, client=_client_info(request))
    return RequestCodeResponse(success=result.success, message=result.message, code=result.code)


@router.post(
    "/verify",
    response_model=VerifyCodeResponse,
    responses={http_status: {"model": VerifyErrorResponse} for http_status in ERROR_RESPONSES},
)
def verify_code(
    body: VerifyCodeSubmit,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    """
    Public: verify the email with the code from the email. Each code works once.
    Failures carry verified=false alongside the usual error body.
    """
    try:
        result = service.verify_code(body.email, body.code, client=_client_info(request))
    except VerificationError as e:
        logger.info("Verify failed for %s: %s", body.email, e.code)
        return JSONResponse(status_code=e.status_code, content={**e.to_dict(), "verified": False})
    return VerifyCodeResponse(success=result.success, verified=result.verified, message=result.message)


@router.get("/status", response_model=VerificationStatusResponse, responses=ERROR_RESPONSES)
def get_verification_status(
    email: str = Query(..., description="Email address to check"),
    service: VerificationService = Depends(get_verification_service),
):
    """
    Public: whether the email is verified, plus recent verification actions
    and how many sends remain in the current window.
    """
    status = service.get_status(email)
    return VerificationStatusResponse(
        email=status.email,
        verified=status.verified,
        email_confirmed_at=status.email_confirmed_at,
        recent_actions=[
            RecentActionItem(action=a.action, timestamp=a.timestamp) for a in status.recent_actions
        ],
        remaining_sends=status.remaining_sends,
    )
