import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./leadline.db")

# Firebase Configuration (identity provider for dashboard users)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    f"{FRONTEND_URL},http://localhost:3000",
).split(",")

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

# Public SMS opt-in form (proof-of-consent page) - per-IP limit
SMS_OPT_IN_RATE_LIMIT = int(os.getenv("SMS_OPT_IN_RATE_LIMIT", "10"))
SMS_OPT_IN_RATE_WINDOW = int(os.getenv("SMS_OPT_IN_RATE_WINDOW", "60"))  # seconds
SMS_OPT_IN_MAX_BODY_BYTES = int(os.getenv("SMS_OPT_IN_MAX_BODY_BYTES", "4096"))
