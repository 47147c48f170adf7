import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..access_policy import Zone, evaluate_access
from ..auth import build_access_context, get_current_user, get_optional_user
from ..database import get_db
from ..models import User
from ..schemas import user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["access"])


@router.get("/access/{zone}")
def check_zone_access(
    zone: str,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Report whether the caller may enter a route zone.

    Always answers 200 so the frontend layouts can decide between rendering
    and redirecting without treating a denial as an error.
    """
    try:
        target = Zone(zone)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=f"Unknown zone: {zone}") from e

    decision = evaluate_access(target, build_access_context(user, db))
    return {"zone": target.value, **decision.to_dict()}


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user plus the access decision for every zone"""
    context = build_access_context(current_user, db)
    return {
        "user": user_to_dict(current_user),
        "access": {zone.value: evaluate_access(zone, context).to_dict() for zone in Zone},
    }
