from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .industries import get_industry
from .models import Business, User


class BusinessHours(BaseModel):
    open: Optional[str] = None  # "08:00"
    close: Optional[str] = None  # "17:00"
    days: List[str] = []


def business_to_dict(business: Business) -> Dict[str, Any]:
    """Serialize a business for API responses (camelCase, like the frontend)"""
    industry = get_industry(business.industry) if business.industry else None
    return {
        "id": business.id,
        "name": business.name,
        "industry": industry.to_dict() if industry else None,
        "address": business.address,
        "city": business.city,
        "state": business.state,
        "zipCode": business.zip_code,
        "businessLinePhone": business.business_line_phone,
        "businessHours": business.business_hours,
        "departments": business.departments or [],
        "serviceAreas": business.service_areas or [],
        "crmWebhookUrl": business.crm_webhook_url,
        "forwardToEmail": business.forward_to_email,
        "afterHoursEmergencyPhone": business.after_hours_emergency_phone,
        "customScript": business.custom_script,
        "multiLocation": business.multi_location,
        "onboardingComplete": business.onboarding_complete,
        "requiresManualSetup": business.requires_manual_setup,
    }


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "fullName": user.full_name,
        "role": user.role,
        "businessId": user.business_id,
        "phoneNumber": user.phone_number,
    }
