# campaigner/models/tenant_config.py
"""
Tenant Configuration model for storing SMS / email provider credentials
and settings per tenant.
"""
from sqlalchemy import Column, String, Text, Boolean
from campaigner.models.base import BaseModel


class TenantConfig(BaseModel):
    """
    Store tenant-specific messaging configuration.
    Overrides global .env settings when available.
    """
    __tablename__ = "tenant_configs"

    business_name = Column(String(255), nullable=True)

    # Twilio
    twilio_account_sid = Column(String(255), nullable=True)
    twilio_auth_token = Column(Text, nullable=True)
    twilio_phone_number = Column(String(50), nullable=True)

    # Resend
    resend_api_key = Column(Text, nullable=True)
    email_domain = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<TenantConfig tenant_id={self.tenant_id} business={self.business_name}>"

    def to_dict(self):
        """Convert to dictionary, excluding sensitive fields by default"""
        data = super().to_dict()
        for key in ('twilio_auth_token', 'resend_api_key'):
            if data.get(key):
                data[key] = '***' + data[key][-4:] if len(data[key]) > 4 else '***'
        return data
