import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import require_dashboard
from ..database import get_db
from ..models import Business, User
from ..schemas import business_to_dict, user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard")
def get_dashboard(current_user: User = Depends(require_dashboard), db: Session = Depends(get_db)):
    """Dashboard summary; only reachable once the business finished onboarding"""
    business = db.get(Business, current_user.business_id)
    return {
        "user": user_to_dict(current_user),
        "business": business_to_dict(business),
    }
