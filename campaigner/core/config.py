# campaigner/core/config.py
"""
Application configuration - loads from environment variables.
Single source of truth for all settings.
"""
import os
from typing import Optional
from urllib.parse import quote_plus
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_path = BASE_DIR / '.env'
load_dotenv(dotenv_path=env_path)

# ────────────────────────────────────────────
# SMS Provider (Twilio) - default credentials
# ────────────────────────────────────────────
TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER: str = os.getenv("TWILIO_PHONE_NUMBER", "")
TWILIO_API_BASE: str = os.getenv("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")
DEFAULT_COUNTRY_CODE: str = os.getenv("DEFAULT_COUNTRY_CODE", "1")

# ────────────────────────────────────────────
# Email Provider (Resend) - default credentials
# ────────────────────────────────────────────
RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
EMAIL_DOMAIN: str = os.getenv("EMAIL_DOMAIN", "resend.dev")
EMAIL_FROM_MARKETING: Optional[str] = os.getenv("EMAIL_FROM_MARKETING")

PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "15"))

# ────────────────────────────────────────────
# Broadcast tuning
# ────────────────────────────────────────────
CAMPAIGN_BATCH_SIZE: int = int(os.getenv("CAMPAIGN_BATCH_SIZE", "25"))
CAMPAIGN_BATCH_COOLDOWN_SECONDS: float = float(os.getenv("CAMPAIGN_BATCH_COOLDOWN_SECONDS", "2"))
CAMPAIGN_SAMPLE_ERRORS: int = int(os.getenv("CAMPAIGN_SAMPLE_ERRORS", "10"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR: str = os.getenv("LOG_DIR", str(BASE_DIR / "logs"))

# ────────────────────────────────────────────
# Tenant / Multi-tenant
# ────────────────────────────────────────────
DEFAULT_TENANT_ID: str = os.getenv("TENANT_ID") or os.getenv("DEFAULT_TENANT_ID") or "default"

# ────────────────────────────────────────────
# Database Configuration
# ────────────────────────────────────────────
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "campaigner_db")
DATABASE_URL = os.getenv("DATABASE_URL")

# Build DATABASE_URL
if not DATABASE_URL:
    encoded_password = quote_plus(DB_PASSWORD)
    DATABASE_URL = f"postgresql://{DB_USER}:{encoded_password}@{DB_HOST}:{DB_PORT}/{DB_NAME}"

# ────────────────────────────────────────────
# JWT Configuration
# ────────────────────────────────────────────
JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

# Roles allowed to run marketing campaigns
CAMPAIGN_MANAGER_ROLES = ("OWNER", "ADMIN")

if not JWT_SECRET_KEY:
    import warnings
    warnings.warn("JWT_SECRET_KEY not set!")

# ────────────────────────────────────────────
# Settings Class
# ────────────────────────────────────────────
class Settings:
    DATABASE_URL: str = DATABASE_URL
    TWILIO_ACCOUNT_SID: str = TWILIO_ACCOUNT_SID
    TWILIO_PHONE_NUMBER: str = TWILIO_PHONE_NUMBER
    RESEND_API_URL: str = RESEND_API_URL
    EMAIL_DOMAIN: str = EMAIL_DOMAIN
    JWT_SECRET_KEY: str = JWT_SECRET_KEY
    JWT_ALGORITHM: str = JWT_ALGORITHM
    LOG_LEVEL: str = LOG_LEVEL
    CAMPAIGN_BATCH_SIZE: int = CAMPAIGN_BATCH_SIZE
    CAMPAIGN_BATCH_COOLDOWN_SECONDS: float = CAMPAIGN_BATCH_COOLDOWN_SECONDS
    CAMPAIGN_SAMPLE_ERRORS: int = CAMPAIGN_SAMPLE_ERRORS

settings = Settings()
