import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_onboarding
from ..database import get_db
from ..industries import BusinessSetupDraft, IndustryCode, classify_setup, list_industries
from ..models import Business, User
from ..schemas import BusinessHours, business_to_dict
from ..shared.validators import validate_email, validate_us_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["onboarding"])


class BusinessInfo(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    phoneNumber: Optional[str] = None  # Existing business line
    ownerPhone: Optional[str] = None
    serviceAreas: Optional[List[str]] = None
    businessHours: Optional[BusinessHours] = None
    departments: Optional[List[str]] = None
    crmWebhookUrl: Optional[str] = None
    forwardToEmail: Optional[str] = None
    afterHoursEmergencyPhone: Optional[str] = None
    customScript: bool = False
    multiLocation: bool = False


class OnboardingRequest(BaseModel):
    industry: Optional[str] = None
    businessInfo: Optional[BusinessInfo] = None


def clean_list(values: Optional[List[str]]) -> List[str]:
    return [value.strip() for value in values or [] if value and value.strip()]


def resolve_service_areas(info: BusinessInfo) -> List[str]:
    """Trimmed, non-empty service areas; the city stands in when none are given"""
    if info.serviceAreas is not None:
        return clean_list(info.serviceAreas)
    if info.city and info.city.strip():
        return [info.city.strip()]
    return []


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


@router.get("/industries")
def get_industries():
    """Industry catalog for the onboarding picker (public)"""
    return [entry.to_dict() for entry in list_industries()]


@router.get("/onboarding")
def get_onboarding_status(
    current_user: User = Depends(require_onboarding), db: Session = Depends(get_db)
):
    business = db.get(Business, current_user.business_id) if current_user.business_id else None
    return {
        "businessId": business.id if business else None,
        "onboardingComplete": bool(business and business.onboarding_complete),
        "requiresManualSetup": bool(business and business.requires_manual_setup),
        "business": business_to_dict(business) if business else None,
    }


@router.post("/onboarding")
def submit_onboarding(
    data: OnboardingRequest,
    current_user: User = Depends(require_onboarding),
    db: Session = Depends(get_db),
):
    """Create or update the caller's business from the onboarding answers"""
    if not data.industry or data.businessInfo is None:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        industry = IndustryCode(data.industry)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Unknown industry: {data.industry}") from e

    info = data.businessInfo
    try:
        business_line_phone = validate_us_phone(info.phoneNumber)
        owner_phone = validate_us_phone(info.ownerPhone)
        emergency_phone = validate_us_phone(info.afterHoursEmergencyPhone)
        forward_to_email = validate_email(clean_text(info.forwardToEmail))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    service_areas = resolve_service_areas(info)
    requires_manual_setup = classify_setup(
        BusinessSetupDraft(
            industry=industry,
            service_areas=service_areas,
            custom_script=info.customScript,
            multi_location=info.multiLocation,
        )
    )

    business = db.get(Business, current_user.business_id) if current_user.business_id else None
    if business is None:
        logger.info(f"🆕 Creating business for user {current_user.id}")
        business = Business()
        db.add(business)

    business.name = clean_text(info.name)
    business.industry = industry.value
    business.address = clean_text(info.address)
    business.city = clean_text(info.city)
    business.state = clean_text(info.state)
    business.zip_code = clean_text(info.zipCode)
    business.business_line_phone = business_line_phone
    business.business_hours = info.businessHours.model_dump() if info.businessHours else None
    business.departments = clean_list(info.departments)
    business.service_areas = service_areas
    business.crm_webhook_url = clean_text(info.crmWebhookUrl)
    business.forward_to_email = forward_to_email
    business.after_hours_emergency_phone = emergency_phone
    business.custom_script = info.customScript
    business.multi_location = info.multiLocation
    business.onboarding_complete = not requires_manual_setup
    business.requires_manual_setup = requires_manual_setup

    try:
        db.flush()
        current_user.business_id = business.id
        if owner_phone:
            current_user.phone_number = owner_phone
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to save onboarding for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save onboarding data") from e

    db.refresh(business)
    if requires_manual_setup:
        logger.info(f"📋 Business {business.id} flagged for manual setup")
    else:
        logger.info(f"✅ Business {business.id} completed onboarding")

    return {
        "success": True,
        "requiresManualSetup": requires_manual_setup,
        "business": business_to_dict(business),
    }
