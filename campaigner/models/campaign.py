# campaigner/models/campaign.py
"""
Marketing campaign models.

A Campaign owns its CampaignRecipient delivery records (cascade delete);
delivery records reference contacts by id only.
"""
import enum
from sqlalchemy import Column, String, Text, Integer, JSON, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from campaigner.models.base import BaseModel


class CampaignStatus(str, enum.Enum):
    """Campaign lifecycle"""
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    SENDING = "SENDING"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"


STARTABLE_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED)
TERMINAL_STATUSES = (CampaignStatus.COMPLETED, CampaignStatus.PAUSED)


class CampaignChannel(str, enum.Enum):
    SMS = "SMS"
    EMAIL = "EMAIL"
    BOTH = "BOTH"

    @property
    def uses_sms(self) -> bool:
        return self in (CampaignChannel.SMS, CampaignChannel.BOTH)

    @property
    def uses_email(self) -> bool:
        return self in (CampaignChannel.EMAIL, CampaignChannel.BOTH)


class DeliveryChannel(str, enum.Enum):
    """Channel of a single delivery attempt"""
    SMS = "SMS"
    EMAIL = "EMAIL"


class DeliveryStatus(str, enum.Enum):
    SENT = "SENT"
    FAILED = "FAILED"


class Campaign(BaseModel):
    __tablename__ = "campaigns"

    campaign_id = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    channel = Column(SQLEnum(CampaignChannel), nullable=False, default=CampaignChannel.SMS)

    # Segment rule: {"type": "TAGS", "tags": [...]} etc.
    segment = Column(JSON, nullable=True)

    subject = Column(String(500), nullable=True)
    body = Column(Text, nullable=False)

    status = Column(SQLEnum(CampaignStatus), nullable=False, default=CampaignStatus.DRAFT, index=True)
    scheduled_for = Column(DateTime, nullable=True)

    total_recipients = Column(Integer, default=0, nullable=False)
    sent_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)

    sent_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)

    recipients = relationship(
        "CampaignRecipient",
        back_populates="campaign",
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<Campaign {self.name} ({self.status})>"


class CampaignRecipient(BaseModel):
    """Append-only receipt of one send attempt on one channel"""
    __tablename__ = "campaign_recipients"

    campaign_pk = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), index=True, nullable=False)
    # Weak reference, contact deletion does not cascade here
    contact_id = Column(Integer, index=True, nullable=False)

    channel = Column(SQLEnum(DeliveryChannel), nullable=False)
    destination = Column(String(255), nullable=False)
    status = Column(SQLEnum(DeliveryStatus), nullable=False)

    sent_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    provider_message_id = Column(String(255), nullable=True)

    campaign = relationship("Campaign", back_populates="recipients")

    def __repr__(self):
        return f"<CampaignRecipient {self.channel} -> {self.destination} ({self.status})>"


Index('idx_campaign_recipient_contact', CampaignRecipient.campaign_pk, CampaignRecipient.contact_id, CampaignRecipient.channel)
