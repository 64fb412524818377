import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Single-currency deployment; still carried explicitly on quotes and bookings
CURRENCY = os.getenv("CURRENCY", "PLN")
PROPERTY_LOCALE = os.getenv("PROPERTY_LOCALE", "pl").lower()

BOOKING_REF_PREFIX = os.getenv("BOOKING_REF_PREFIX", "BKG")
BALANCE_DUE_DAYS = int(os.getenv("BALANCE_DUE_DAYS", "3"))

WEBHOOK_PAYLOAD_EXCERPT_CHARS = int(os.getenv("WEBHOOK_PAYLOAD_EXCERPT_CHARS", "2000"))

# Channel manager (Beds24 API v2)
CHANNEL_API_URL = os.getenv("CHANNEL_API_URL", "https://beds24.com/api/v2").rstrip("/")
CHANNEL_SOURCE = "BEDS24"
CHANNEL_IMPORT_PAST_DAYS = int(os.getenv("CHANNEL_IMPORT_PAST_DAYS", "180"))
CHANNEL_IMPORT_FUTURE_DAYS = int(os.getenv("CHANNEL_IMPORT_FUTURE_DAYS", "730"))

# CRM (Zoho CRM v6)
CRM_SOURCE = "CRM"
CRM_CLIENT_ID = os.getenv("CRM_CLIENT_ID", "")
CRM_CLIENT_SECRET = os.getenv("CRM_CLIENT_SECRET", "")
CRM_REFRESH_TOKEN = os.getenv("CRM_REFRESH_TOKEN", "")
CRM_ACCOUNTS_URL = os.getenv("CRM_ACCOUNTS_URL", "https://accounts.zoho.com").rstrip("/")
CRM_API_DOMAIN = os.getenv("CRM_API_DOMAIN", "https://www.zohoapis.com").rstrip("/")
CRM_PAGE_SIZE = int(os.getenv("CRM_PAGE_SIZE", "200"))

TOKEN_EXPIRY_MARGIN_SECONDS = int(os.getenv("TOKEN_EXPIRY_MARGIN_SECONDS", "300"))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
