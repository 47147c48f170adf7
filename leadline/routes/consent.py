"""
Public SMS opt-in route (proof-of-consent URL for toll-free verification)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import SMS_OPT_IN_MAX_BODY_BYTES, SMS_OPT_IN_RATE_LIMIT, SMS_OPT_IN_RATE_WINDOW
from ..consent import ConsentError, ConsentResult, intake_consent
from ..rate_limiter import create_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["consent"])

sms_opt_in_rate_limit = create_rate_limiter(
    limit=SMS_OPT_IN_RATE_LIMIT,
    window_seconds=SMS_OPT_IN_RATE_WINDOW,
    key_prefix="sms_opt_in",
)


async def read_capped_body(request: Request, max_bytes: int) -> Optional[bytes]:
    """Return the request body, or None once it exceeds max_bytes"""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        if not content_length.isdigit() or int(content_length) > max_bytes:
            return None

    body = b""
    async for chunk in request.stream():
        body += chunk
        if len(body) > max_bytes:
            return None
    return body


@router.post("/sms-opt-in")
async def sms_opt_in(request: Request, _: None = Depends(sms_opt_in_rate_limit)):
    """Accept an unauthenticated SMS opt-in. Body: {"consent": true, "phoneNumber": "..."}"""
    body = await read_capped_body(request, SMS_OPT_IN_MAX_BODY_BYTES)
    if body is None:
        logger.warning(f"SMS opt-in body over {SMS_OPT_IN_MAX_BODY_BYTES} bytes rejected")
        result = ConsentResult(ok=False, error=ConsentError.INVALID_REQUEST)
    else:
        result = intake_consent(body)

    if not result.ok:
        logger.info(f"SMS opt-in rejected: {result.error.value}")
    return JSONResponse(status_code=result.status_code, content=result.to_response())
