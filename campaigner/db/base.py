# campaigner/db/base.py
"""Import all models so metadata knows every table"""
from campaigner.models.base import Base

from campaigner.models.contact import Contact, Address, Booking
from campaigner.models.campaign import Campaign, CampaignRecipient
from campaigner.models.tenant_config import TenantConfig
from campaigner.models.audit import AuditLog

__all__ = ["Base"]
