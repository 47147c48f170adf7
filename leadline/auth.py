import base64
import json
import logging
import time
from typing import Optional

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import config
from .access_policy import AccessContext, DenyReason, Zone, evaluate_access
from .database import get_db
from .models import ROLE_CUSTOMER, Business, User

logger = logging.getLogger(__name__)

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)
CLOCK_SKEW_SECONDS = 60

security = HTTPBearer(auto_error=False)

# Cache for Google's public keys
_cached_keys = None

DENY_STATUS_CODES = {
    DenyReason.NOT_AUTHENTICATED: 401,
    DenyReason.NOT_ADMIN: 403,
    DenyReason.ONBOARDING_REQUIRED: 403,
}


async def get_google_public_keys(refresh: bool = False) -> Optional[dict]:
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(GOOGLE_CERTS_URL, timeout=10.0)
        if response.status_code == 200:
            _cached_keys = response.json()
            logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
            return _cached_keys
        logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {str(e)}")
    return None


def _b64decode_segment(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token: RS256 signature against Google's certificates,
    then audience, issuer, expiry and issued-at claims.
    """
    if not config.FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    parts = token.split(".")
    if len(parts) != 3:
        logger.warning(f"⚠️ Malformed token received: {len(parts)} parts")
        raise HTTPException(status_code=401, detail="Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64decode_segment(header_b64))
        claims = json.loads(_b64decode_segment(payload_b64))
        signature = _b64decode_segment(signature_b64)
    except ValueError as e:
        logger.warning(f"⚠️ Failed to decode token segments: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    kid = header.get("kid")
    if header.get("alg") != "RS256" or not kid:
        raise HTTPException(status_code=401, detail="Invalid token header")

    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing")
        public_keys = await get_google_public_keys(refresh=True)
        if not public_keys or kid not in public_keys:
            raise HTTPException(status_code=401, detail="Unable to verify token signature")

    try:
        cert = load_pem_x509_certificate(public_keys[kid].encode())
        cert.public_key().verify(
            signature,
            f"{header_b64}.{payload_b64}".encode(),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except Exception as e:
        logger.warning(f"⚠️ Token signature verification failed: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    if claims.get("aud") != config.FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if claims.get("iss") != f"https://securetoken.google.com/{config.FIREBASE_PROJECT_ID}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")

    now = time.time()
    if claims.get("exp", 0) < now:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        )
    if claims.get("iat", 0) > now + CLOCK_SKEW_SECONDS:
        logger.warning("⚠️ Token issued in the future")
        raise HTTPException(status_code=401, detail="Invalid token")
    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return claims


def get_or_create_user(db: Session, claims: dict) -> User:
    """Find the user for verified token claims, provisioning one on first sign-in"""
    firebase_uid = claims["sub"]
    email = claims.get("email") or ""
    name = claims.get("name")

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if user:
        return user

    # Same email under a new uid, e.g. password sign-up followed by Google sign-in
    if email:
        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            # Password sign-ups carry unverified emails; only a verified one proves ownership
            if claims.get("email_verified") is not True:
                logger.warning(
                    f"⚠️ Refusing to attach {firebase_uid} to user {existing_user.id}: email not verified"
                )
                raise HTTPException(
                    status_code=409,
                    detail="This email is already registered. Please sign in with your existing account.",
                )
            logger.info(f"🔄 Migrating user {existing_user.id} to new Firebase UID")
            existing_user.firebase_uid = firebase_uid
            if name and not existing_user.full_name:
                existing_user.full_name = name
            db.commit()
            db.refresh(existing_user)
            return existing_user

    logger.info(f"🆕 Creating new user for firebase_uid: {firebase_uid}")
    user = User(
        firebase_uid=firebase_uid,
        email=email or f"{firebase_uid}@users.invalid",
        full_name=name,
        role=ROLE_CUSTOMER,
    )
    db.add(user)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to create user {firebase_uid}: {str(e)}")
        raise HTTPException(
            status_code=409,
            detail="This email is already registered. Please sign in with your existing account.",
        ) from e
    db.refresh(user)
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from Firebase token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    claims = await verify_firebase_token(credentials.credentials)
    return get_or_create_user(db, claims)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Like get_current_user, but a missing or rejected token yields None so the
    access policy can report NOT_AUTHENTICATED.
    """
    if not credentials:
        return None

    try:
        claims = await verify_firebase_token(credentials.credentials)
    except HTTPException as e:
        logger.warning(f"⚠️ Ignoring unverifiable token: {e.detail}")
        return None

    return get_or_create_user(db, claims)


def build_access_context(user: Optional[User], db: Session) -> AccessContext:
    """Collect the facts the access policy needs for this request"""
    if user is None:
        return AccessContext.anonymous()

    business = None
    if user.business_id is not None:
        business = db.get(Business, user.business_id)

    return AccessContext(
        is_authenticated=True,
        is_admin=user.is_admin,
        business_id=user.business_id,
        business_found=business is not None,
        onboarding_complete=bool(business is not None and business.onboarding_complete),
    )


def require_zone(zone: Zone):
    """
    Create a dependency that lets the request into `zone` or raises the
    redirect-carrying HTTP error for the denial.

    Example usage:
        @router.get("/dashboard")
        def dashboard(user: User = Depends(require_zone(Zone.DASHBOARD))):
            ...
    """

    async def zone_guard(
        user: Optional[User] = Depends(get_optional_user),
        db: Session = Depends(get_db),
    ) -> User:
        decision = evaluate_access(zone, build_access_context(user, db))
        if decision.allowed:
            return user

        logger.info(
            f"🚫 {zone.value} access denied for user {user.id if user else 'anonymous'}: "
            f"{decision.reason.value}"
        )
        raise HTTPException(
            status_code=DENY_STATUS_CODES[decision.reason],
            detail={"error": decision.reason.value, "redirectTo": decision.redirect_to},
            headers={"X-Redirect-To": decision.redirect_to},
        )

    return zone_guard


require_onboarding = require_zone(Zone.ONBOARDING)
require_dashboard = require_zone(Zone.DASHBOARD)
require_admin = require_zone(Zone.ADMIN)
