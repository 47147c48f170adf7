"""
Business settings edited from the dashboard after onboarding.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_dashboard
from ..database import get_db
from ..industries import IndustryCode
from ..models import Business, User
from ..schemas import BusinessHours, business_to_dict
from ..shared.validators import validate_email, validate_us_phone
from .onboarding import clean_list, clean_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["business"])

DEFAULT_OPEN = "09:00"
DEFAULT_CLOSE = "17:00"

# Plain trimmed text fields: request field -> column
TEXT_FIELDS = {
    "address": "address",
    "city": "city",
    "state": "state",
    "zipCode": "zip_code",
    "crmWebhookUrl": "crm_webhook_url",
}

# Optional phone fields, stored as E.164
PHONE_FIELDS = {
    "phoneNumber": "business_line_phone",
    "afterHoursEmergencyPhone": "after_hours_emergency_phone",
}


class BusinessUpdate(BaseModel):
    """Every field is optional; only the ones sent are applied"""

    name: Optional[str] = None
    industry: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    phoneNumber: Optional[str] = None
    serviceAreas: Optional[List[str]] = None
    businessHours: Optional[BusinessHours] = None
    departments: Optional[List[str]] = None
    crmWebhookUrl: Optional[str] = None
    forwardToEmail: Optional[str] = None
    afterHoursEmergencyPhone: Optional[str] = None


@router.patch("/business")
def update_business(
    data: BusinessUpdate,
    current_user: User = Depends(require_dashboard),
    db: Session = Depends(get_db),
):
    """
    Update the caller's business settings.

    Onboarding and manual-setup flags are left untouched: editing settings
    never sends a business back through review.
    """
    business = db.get(Business, current_user.business_id)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")

    fields = data.model_fields_set

    try:
        phones = {
            column: validate_us_phone(getattr(data, field))
            for field, column in PHONE_FIELDS.items()
            if field in fields
        }
        if "forwardToEmail" in fields:
            forward_to_email = validate_email(clean_text(data.forwardToEmail))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if "industry" in fields and data.industry is not None:
        try:
            business.industry = IndustryCode(data.industry).value
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Unknown industry: {data.industry}") from e

    # A blank name would leave the business unnamed
    if "name" in fields and clean_text(data.name):
        business.name = clean_text(data.name)

    for field, column in TEXT_FIELDS.items():
        if field in fields:
            setattr(business, column, clean_text(getattr(data, field)))
    for column, phone in phones.items():
        setattr(business, column, phone)
    if "forwardToEmail" in fields:
        business.forward_to_email = forward_to_email

    if "serviceAreas" in fields:
        business.service_areas = clean_list(data.serviceAreas)
    if "departments" in fields:
        business.departments = clean_list(data.departments)
    if "businessHours" in fields:
        hours = data.businessHours or BusinessHours()
        business.business_hours = {
            "open": hours.open or DEFAULT_OPEN,
            "close": hours.close or DEFAULT_CLOSE,
            "days": hours.days,
        }

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to update business {business.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update business") from e

    db.refresh(business)
    logger.info(f"✏️ Business {business.id} updated: {', '.join(sorted(fields)) or 'no fields'}")
    return {"success": True, "business": business_to_dict(business)}
