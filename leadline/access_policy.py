"""
Route-zone access policy.

Decides, from facts gathered fresh on every request, whether a user may
enter the onboarding, dashboard or admin area. The result is a plain value;
turning a denial into a redirect or an HTTP error is the caller's job
(see auth.require_zone).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Zone(str, Enum):
    ONBOARDING = "onboarding"
    DASHBOARD = "dashboard"
    ADMIN = "admin"


class DenyReason(str, Enum):
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    NOT_ADMIN = "NOT_ADMIN"
    ONBOARDING_REQUIRED = "ONBOARDING_REQUIRED"


REDIRECT_TARGETS = {
    DenyReason.NOT_AUTHENTICATED: "/sign-in",
    DenyReason.ONBOARDING_REQUIRED: "/onboarding",
    DenyReason.NOT_ADMIN: "/dashboard",
}


@dataclass(frozen=True)
class AccessContext:
    is_authenticated: bool = False
    is_admin: bool = False
    business_id: Optional[int] = None
    business_found: bool = False
    onboarding_complete: bool = False

    @classmethod
    def anonymous(cls) -> "AccessContext":
        return cls()


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @property
    def redirect_to(self) -> Optional[str]:
        if self.reason is None:
            return None
        return REDIRECT_TARGETS[self.reason]

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "redirectTo": self.redirect_to,
        }


def evaluate_access(zone: Zone, context: AccessContext) -> AccessDecision:
    if not context.is_authenticated:
        return AccessDecision.deny(DenyReason.NOT_AUTHENTICATED)

    if zone == Zone.ADMIN:
        if not context.is_admin:
            return AccessDecision.deny(DenyReason.NOT_ADMIN)
        return AccessDecision.allow()

    if zone == Zone.DASHBOARD:
        if context.business_id is None:
            return AccessDecision.deny(DenyReason.ONBOARDING_REQUIRED)
        # A business_id can dangle; a missing record counts as incomplete
        if not context.business_found or not context.onboarding_complete:
            return AccessDecision.deny(DenyReason.ONBOARDING_REQUIRED)
        return AccessDecision.allow()

    # Onboarding: signed-in is enough, with no completeness check, so users
    # mid-onboarding are never redirected back to /dashboard
    return AccessDecision.allow()
