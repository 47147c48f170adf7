"""
Supported industries and the onboarding setup-complexity rule.

The catalog drives the industry picker during onboarding. The classifier
decides whether a submitted configuration can be provisioned automatically
or has to wait for a manual review by the team.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

# More service areas than this goes to manual review
MAX_AUTO_SERVICE_AREAS = 3


class IndustryCode(str, Enum):
    HVAC = "HVAC"
    PLUMBING = "PLUMBING"
    AUTO_REPAIR = "AUTO_REPAIR"
    CHILDCARE = "CHILDCARE"
    ELECTRICIAN = "ELECTRICIAN"
    GENERIC = "GENERIC"


@dataclass(frozen=True)
class IndustryEntry:
    code: IndustryCode
    label: str
    description: str

    def to_dict(self) -> dict:
        return {"code": self.code.value, "label": self.label, "description": self.description}


INDUSTRIES: tuple[IndustryEntry, ...] = (
    IndustryEntry(IndustryCode.HVAC, "HVAC", "Heating, ventilation, and air conditioning"),
    IndustryEntry(IndustryCode.PLUMBING, "Plumbing", "Plumbing services"),
    IndustryEntry(IndustryCode.AUTO_REPAIR, "Auto Repair", "Automotive repair and maintenance"),
    IndustryEntry(
        IndustryCode.CHILDCARE, "Childcare", "Daycare, preschool, after-school programs"
    ),
    IndustryEntry(IndustryCode.ELECTRICIAN, "Electrician", "Electrical services"),
    IndustryEntry(IndustryCode.GENERIC, "Other", "Other service business"),
)

_BY_CODE = {entry.code: entry for entry in INDUSTRIES}


def list_industries() -> tuple[IndustryEntry, ...]:
    """Return the catalog in display order."""
    return INDUSTRIES


def get_industry(code: Optional[str]) -> IndustryEntry:
    """Resolve a stored industry code, falling back to GENERIC for unknown values."""
    try:
        return _BY_CODE[IndustryCode(code)]
    except ValueError:
        return _BY_CODE[IndustryCode.GENERIC]


@dataclass
class BusinessSetupDraft:
    """Answers collected by the onboarding form, consumed once by classify_setup."""

    industry: Optional[IndustryCode] = None
    service_areas: Optional[Sequence[str]] = ()
    custom_script: bool = False
    multi_location: bool = False


def classify_setup(draft: BusinessSetupDraft) -> bool:
    """
    Return True when the business needs manual setup, False when it can be
    provisioned automatically.

    The industry does not affect the verdict. Service areas are counted as
    submitted, duplicates included.
    """
    # Multi-location businesses are never auto-provisioned
    if draft.multi_location:
        return True

    # Non-template call scripts need a human review
    if draft.custom_script:
        return True

    if draft.service_areas and len(draft.service_areas) > MAX_AUTO_SERVICE_AREAS:
        return True

    return False
