"""
Public SMS opt-in intake.

Backs the form on the SMS terms page, which carriers review as proof of
consent during toll-free number verification. Submissions are accepted
without authentication and nothing is stored.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

OPT_IN_MESSAGE = "Opt-in received."


class ConsentError(str, Enum):
    CONSENT_REQUIRED = "CONSENT_REQUIRED"
    INVALID_REQUEST = "INVALID_REQUEST"


ERROR_MESSAGES = {
    ConsentError.CONSENT_REQUIRED: "Consent is required",
    ConsentError.INVALID_REQUEST: "Invalid request",
}


@dataclass(frozen=True)
class ConsentResult:
    ok: bool
    error: Optional[ConsentError] = None
    phone_number: Optional[str] = None

    @property
    def status_code(self) -> int:
        return 200 if self.ok else 400

    def to_response(self) -> dict:
        if self.ok:
            return {"ok": True, "message": OPT_IN_MESSAGE}
        return {"ok": False, "error": ERROR_MESSAGES[self.error]}


def _mask_phone(phone: str) -> str:
    return f"***{phone[-4:]}" if len(phone) > 4 else "***"


def intake_consent(raw_body: Union[bytes, str]) -> ConsentResult:
    """Validate a raw opt-in request body. Anything unexpected is rejected."""
    try:
        payload: Any = json.loads(raw_body)
    except (ValueError, TypeError, RecursionError):
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors;
        # RecursionError comes from deeply nested arrays/objects
        return ConsentResult(ok=False, error=ConsentError.INVALID_REQUEST)

    if not isinstance(payload, dict) or payload.get("consent") is not True:
        return ConsentResult(ok=False, error=ConsentError.CONSENT_REQUIRED)

    phone = payload.get("phoneNumber")
    phone = phone.strip() if isinstance(phone, str) else None
    if not phone:
        phone = None

    if phone:
        logger.info(f"📱 SMS opt-in received for {_mask_phone(phone)}")
    else:
        logger.info("📱 SMS opt-in received without phone number")

    return ConsentResult(ok=True, phone_number=phone)
