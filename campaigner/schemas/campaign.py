# campaigner/schemas/campaign.py
from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator
from typing import Annotated, List, Optional, Union, Literal
from datetime import datetime, timezone

from campaigner.models.campaign import CampaignChannel, CampaignStatus, DeliveryChannel, DeliveryStatus


# ────────────────────────────────────────────
# Segment rules (tagged union on "type")
# ────────────────────────────────────────────

class AllSegment(BaseModel):
    type: Literal["ALL"] = "ALL"


class TagsSegment(BaseModel):
    type: Literal["TAGS"] = "TAGS"
    tags: List[str] = Field(default_factory=list)


class InactiveSegment(BaseModel):
    type: Literal["INACTIVE"] = "INACTIVE"
    inactive_days: int = Field(..., gt=0, description="Days without a booking")


class LocationSegment(BaseModel):
    type: Literal["LOCATION"] = "LOCATION"
    cities: List[str] = Field(default_factory=list)
    states: List[str] = Field(default_factory=list)


class InsuranceSegment(BaseModel):
    type: Literal["INSURANCE"] = "INSURANCE"
    has_insurance: bool = True


SegmentRule = Annotated[
    Union[AllSegment, TagsSegment, InactiveSegment, LocationSegment, InsuranceSegment],
    Field(discriminator="type"),
]

_segment_adapter = TypeAdapter(SegmentRule)


def parse_segment(data: Optional[dict]) -> SegmentRule:
    """Parse a stored segment payload; missing or unknown types mean ALL"""
    if not data or data.get("type") not in ("ALL", "TAGS", "INACTIVE", "LOCATION", "INSURANCE"):
        return AllSegment()
    return _segment_adapter.validate_python(data)


# ────────────────────────────────────────────
# Campaign CRUD
# ────────────────────────────────────────────

def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    channel: CampaignChannel = CampaignChannel.SMS
    segment: SegmentRule = Field(default_factory=AllSegment)
    subject: Optional[str] = Field(None, max_length=500)
    body: str = Field(..., min_length=1, description="Message template, supports {{clientName}} and {{businessName}}")
    scheduled_for: Optional[datetime] = None

    normalize_schedule = field_validator("scheduled_for")(_to_naive_utc)

    @model_validator(mode='after')
    def validate_subject_for_email(self):
        """Email campaigns need a subject"""
        if self.channel.uses_email and not (self.subject and self.subject.strip()):
            raise ValueError('Email subject is required for email campaigns')
        return self


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    channel: Optional[CampaignChannel] = None
    segment: Optional[SegmentRule] = None
    subject: Optional[str] = Field(None, max_length=500)
    body: Optional[str] = Field(None, min_length=1)
    scheduled_for: Optional[datetime] = None

    normalize_schedule = field_validator("scheduled_for")(_to_naive_utc)


class CampaignResponse(BaseModel):
    id: int
    tenant_id: str
    campaign_id: str
    name: str
    channel: CampaignChannel
    segment: Optional[dict] = None
    subject: Optional[str] = None
    body: str
    status: CampaignStatus
    scheduled_for: Optional[datetime] = None
    total_recipients: int
    sent_count: int
    failed_count: int
    sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ────────────────────────────────────────────
# Sending
# ────────────────────────────────────────────

class CampaignSendRequest(BaseModel):
    excluded_contact_ids: List[int] = Field(default_factory=list)


class CampaignSendResult(BaseModel):
    campaign_id: Optional[str] = None
    status: Optional[CampaignStatus] = None
    total_recipients: int = 0
    sent_count: int = 0
    failed_count: int = 0
    sample_errors: List[str] = Field(default_factory=list)


class RecipientPreview(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class RecipientPreviewResponse(BaseModel):
    total_count: int
    with_email: int
    with_phone: int
    with_both: int
    opted_out_count: int
    page: int
    limit: int
    recipients: List[RecipientPreview]


class DeliveryRecordResponse(BaseModel):
    id: int
    contact_id: int
    channel: DeliveryChannel
    destination: str
    status: DeliveryStatus
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None

    class Config:
        from_attributes = True


class CampaignStats(BaseModel):
    total_campaigns: int = 0
    by_status: dict = Field(default_factory=dict)
    total_recipients: int = 0
    total_sent: int = 0
    total_failed: int = 0
