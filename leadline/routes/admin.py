"""
Admin routes: review businesses that onboarding flagged for manual setup
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models import Business, User
from ..schemas import business_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/businesses")
def list_businesses(
    pending: bool = False,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List businesses; pending=true keeps only those awaiting manual setup"""
    query = db.query(Business)
    if pending:
        query = query.filter(Business.requires_manual_setup.is_(True))
    businesses = query.order_by(Business.id).all()
    return {"businesses": [business_to_dict(b) for b in businesses], "total": len(businesses)}


@router.post("/businesses/{business_id}/complete-setup")
def complete_manual_setup(
    business_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Mark a manually provisioned business as onboarded"""
    business = db.get(Business, business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")

    business.requires_manual_setup = False
    business.onboarding_complete = True
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to complete setup for business {business_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update business") from e

    db.refresh(business)
    logger.info(f"✅ Admin {current_user.id} completed manual setup for business {business_id}")
    return {"business": business_to_dict(business)}
