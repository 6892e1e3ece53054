import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

# Frontend base URL (CORS + links in emails)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    f"{FRONTEND_URL},http://localhost:5173,http://localhost:5174,http://localhost:5175,http://localhost:3000",
).split(",")

# Razorpay Configuration
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET")
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
# Prefix stamped into order notes and booking ids
BOOKING_ID_PREFIX = os.getenv("BOOKING_ID_PREFIX", "TYS")

# Admin key for slot management and CSV export (sent as X-API-Key)
EXPORT_API_KEY = os.getenv("EXPORT_API_KEY")

# Google Sheet slot sync (public CSV export link)
GOOGLE_SHEET_URL = os.getenv("GOOGLE_SHEET_URL")
SHEET_SYNC_INTERVAL_MINUTES = int(os.getenv("SHEET_SYNC_INTERVAL_MINUTES", "30"))
SHEET_FETCH_TIMEOUT_SECONDS = float(os.getenv("SHEET_FETCH_TIMEOUT_SECONDS", "15"))
SHEET_FETCH_MAX_REDIRECTS = int(os.getenv("SHEET_FETCH_MAX_REDIRECTS", "5"))

# Google Sheet write-back (service account with Editor access to the sheet)
GOOGLE_SHEET_ID = os.getenv("GOOGLE_SHEET_ID")
GOOGLE_SHEET_TAB = os.getenv("GOOGLE_SHEET_TAB", "Sheet1")
GOOGLE_SERVICE_ACCOUNT_EMAIL = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL")
GOOGLE_SERVICE_ACCOUNT_KEY = os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY")

# SMTP Configuration (primary email transport)
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_FROM = os.getenv("SMTP_FROM") or f"Thee You Space <{SMTP_USER or 'noreply@theeyouspace.com'}>"

# Resend Email Configuration (fallback)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")

# Rate limiting / security toggles
# RATE_LIMIT_ENABLED=false only for development/testing
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

# Redis (rate limiter store). REDIS_URL wins over the individual settings.
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"
