# campaigner/core/config_loader.py
"""
Dynamic configuration loader that prioritizes database over .env files.
Supports tenant-specific SMS (Twilio) and email (Resend) credentials.
"""
from typing import Optional
from sqlalchemy.orm import Session
from campaigner.models.tenant_config import TenantConfig
from campaigner.schemas.delivery import ProviderCredentials, SmsCredentials, EmailCredentials
from campaigner.core import config


class ConfigLoader:
    """
    Configuration loader with database-first fallback to .env.

    Priority:
    1. Active tenant configuration from database
    2. Environment variables from .env file

    Usage:
        loader = ConfigLoader(db, tenant_id="your-tenant-id")
        credentials = loader.get_provider_credentials()
    """

    def __init__(self, db: Session, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id
        self._config_cache: Optional[TenantConfig] = None
        self._load_tenant_config()

    def _load_tenant_config(self):
        """Load tenant configuration from database if available"""
        if self.db:
            self._config_cache = self.db.query(TenantConfig).filter(
                TenantConfig.tenant_id == self.tenant_id,
                TenantConfig.is_active == True
            ).first()

    def _get(self, field: str, fallback: Optional[str]) -> Optional[str]:
        value = getattr(self._config_cache, field, None) if self._config_cache else None
        return value or fallback

    def get_business_name(self) -> str:
        """Tenant display name used in templates and email footers"""
        return self._get("business_name", None) or "your cleaning service"

    def get_sms_credentials(self) -> SmsCredentials:
        """Twilio credentials (database first, then .env)"""
        return SmsCredentials(
            account_sid=self._get("twilio_account_sid", config.TWILIO_ACCOUNT_SID),
            auth_token=self._get("twilio_auth_token", config.TWILIO_AUTH_TOKEN),
            from_number=self._get("twilio_phone_number", config.TWILIO_PHONE_NUMBER),
        )

    def get_marketing_from_address(self) -> str:
        """Sender address for marketing email"""
        domain = self._get("email_domain", None)
        if domain:
            return f"marketing@{domain}"
        if config.EMAIL_FROM_MARKETING:
            return config.EMAIL_FROM_MARKETING
        return f"notifications@{config.EMAIL_DOMAIN}"

    def get_email_credentials(self) -> EmailCredentials:
        """Resend credentials (database first, then .env)"""
        return EmailCredentials(
            api_key=self._get("resend_api_key", config.RESEND_API_KEY),
            from_address=self.get_marketing_from_address(),
        )

    def get_provider_credentials(self) -> ProviderCredentials:
        return ProviderCredentials(
            business_name=self.get_business_name(),
            sms=self.get_sms_credentials(),
            email=self.get_email_credentials(),
        )
