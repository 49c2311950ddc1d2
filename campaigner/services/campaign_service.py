# campaigner/services/campaign_service.py
"""
Campaign service - handles campaign business logic.

Covers campaign CRUD, audience preview, delivery record listing and the
StartCampaign operation that validates, transitions and hands a campaign
to the batch scheduler.
"""
from __future__ import annotations
import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from campaigner.core.config import CAMPAIGN_MANAGER_ROLES
from campaigner.core.config_loader import ConfigLoader
from campaigner.core.exceptions import (
    AlreadySentError, CampaignNotFoundError, ForbiddenError, InvalidCampaignError, NoRecipientsError,
)
from campaigner.models.audit import AuditLog
from campaigner.models.campaign import (
    Campaign, CampaignRecipient, CampaignStatus, DeliveryChannel, DeliveryStatus, STARTABLE_STATUSES,
)
from campaigner.schemas.campaign import (
    CampaignCreate, CampaignSendResult, CampaignStats, CampaignUpdate, RecipientPreview,
    RecipientPreviewResponse, parse_segment,
)
from campaigner.services.campaign_state import CampaignStateMachine
from campaigner.services.scheduler import BatchScheduler
from campaigner.services.segmenter import RecipientSegmenter

log = logging.getLogger("campaigner.campaigns")

# Cancel events of campaigns currently running in this process
_running: Dict[str, asyncio.Event] = {}


def ensure_campaign_manager(requester: Dict[str, Any]) -> None:
    """Only owners and admins may manage or send campaigns"""
    role = (requester or {}).get("role")
    if not role or str(role).upper() not in CAMPAIGN_MANAGER_ROLES:
        raise ForbiddenError()


class CampaignService:
    """Service for campaign operations"""

    def __init__(
        self,
        segmenter: RecipientSegmenter = None,
        scheduler: BatchScheduler = None,
        state_machine: CampaignStateMachine = None,
    ):
        self.segmenter = segmenter or RecipientSegmenter()
        self.state_machine = state_machine or CampaignStateMachine()
        self.scheduler = scheduler or BatchScheduler(state_machine=self.state_machine)

    # ────────────────────────────────────────────
    # CRUD
    # ────────────────────────────────────────────

    def create_campaign(self, db: Session, tenant_id: str, data: CampaignCreate, user_id: str = None) -> Campaign:
        campaign = Campaign(
            tenant_id=tenant_id,
            campaign_id=str(uuid.uuid4()),
            name=data.name,
            channel=data.channel,
            segment=data.segment.model_dump(),
            subject=data.subject,
            body=data.body,
            status=CampaignStatus.SCHEDULED if data.scheduled_for else CampaignStatus.DRAFT,
            scheduled_for=data.scheduled_for,
            created_by=user_id,
        )
        db.add(campaign)
        db.commit()
        db.refresh(campaign)
        log.info(f"📋 Campaign created: {campaign.campaign_id} ({campaign.channel.value}, {campaign.status.value})")
        return campaign

    def get_campaign(self, db: Session, tenant_id: str, campaign_id: str) -> Campaign:
        campaign = db.query(Campaign).filter(
            Campaign.tenant_id == tenant_id,
            Campaign.campaign_id == campaign_id,
        ).first()
        if not campaign:
            raise CampaignNotFoundError()
        return campaign

    def list_campaigns(
        self, db: Session, tenant_id: str, status: Optional[CampaignStatus] = None, skip: int = 0, limit: int = 50
    ) -> List[Campaign]:
        query = db.query(Campaign).filter(Campaign.tenant_id == tenant_id)
        if status:
            query = query.filter(Campaign.status == status)
        return query.order_by(Campaign.created_at.desc(), Campaign.id.desc()).offset(skip).limit(limit).all()

    def update_campaign(self, db: Session, tenant_id: str, campaign_id: str, data: CampaignUpdate) -> Campaign:
        campaign = self.get_campaign(db, tenant_id, campaign_id)
        if campaign.status not in STARTABLE_STATUSES:
            raise AlreadySentError("Only draft or scheduled campaigns can be edited")

        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if value is not None:
                setattr(campaign, key, value)

        if "scheduled_for" in update_data:
            campaign.scheduled_for = update_data["scheduled_for"]
            campaign.status = CampaignStatus.SCHEDULED if campaign.scheduled_for else CampaignStatus.DRAFT

        if campaign.channel.uses_email and not (campaign.subject and campaign.subject.strip()):
            db.rollback()
            raise InvalidCampaignError("Email subject is required for email campaigns")

        db.commit()
        db.refresh(campaign)
        return campaign

    def delete_campaign(self, db: Session, tenant_id: str, campaign_id: str) -> None:
        campaign = self.get_campaign(db, tenant_id, campaign_id)
        if campaign.status == CampaignStatus.SENDING:
            raise AlreadySentError("Campaign is currently sending and cannot be deleted")
        db.delete(campaign)
        db.commit()
        log.info(f"🗑️ Campaign deleted: {campaign_id}")

    def get_stats(self, db: Session, tenant_id: str) -> CampaignStats:
        rows = db.query(
            Campaign.status,
            func.count(Campaign.id).label("count"),
            func.coalesce(func.sum(Campaign.total_recipients), 0).label("recipients"),
            func.coalesce(func.sum(Campaign.sent_count), 0).label("sent"),
            func.coalesce(func.sum(Campaign.failed_count), 0).label("failed"),
        ).filter(Campaign.tenant_id == tenant_id).group_by(Campaign.status).all()

        by_status = {status.value: 0 for status in CampaignStatus}
        for row in rows:
            by_status[row.status.value] = row.count

        return CampaignStats(
            total_campaigns=sum(row.count for row in rows),
            by_status=by_status,
            total_recipients=sum(row.recipients for row in rows),
            total_sent=sum(row.sent for row in rows),
            total_failed=sum(row.failed for row in rows),
        )

    # ────────────────────────────────────────────
    # Audience & delivery records
    # ────────────────────────────────────────────

    def preview_recipients(
        self, db: Session, tenant_id: str, campaign_id: str, page: int = 1, limit: int = 50
    ) -> RecipientPreviewResponse:
        campaign = self.get_campaign(db, tenant_id, campaign_id)
        recipients = self.segmenter.resolve(db, tenant_id, parse_segment(campaign.segment), campaign.channel)
        recipients.sort(key=lambda r: (r.name.lower(), r.id))

        page = max(page, 1)
        start = (page - 1) * limit
        return RecipientPreviewResponse(
            total_count=len(recipients),
            with_email=sum(1 for r in recipients if r.email),
            with_phone=sum(1 for r in recipients if r.phone),
            with_both=sum(1 for r in recipients if r.email and r.phone),
            opted_out_count=self.segmenter.opted_out_count(db, tenant_id),
            page=page,
            limit=limit,
            recipients=[RecipientPreview(**r.model_dump()) for r in recipients[start:start + limit]],
        )

    def list_deliveries(
        self,
        db: Session,
        tenant_id: str,
        campaign_id: str,
        status: Optional[DeliveryStatus] = None,
        channel: Optional[DeliveryChannel] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[CampaignRecipient]:
        campaign = self.get_campaign(db, tenant_id, campaign_id)
        query = db.query(CampaignRecipient).filter(CampaignRecipient.campaign_pk == campaign.id)
        if status:
            query = query.filter(CampaignRecipient.status == status)
        if channel:
            query = query.filter(CampaignRecipient.channel == channel)
        return query.order_by(CampaignRecipient.id).offset(skip).limit(limit).all()

    # ────────────────────────────────────────────
    # StartCampaign
    # ────────────────────────────────────────────

    async def start_campaign(
        self,
        db: Session,
        tenant_id: str,
        campaign_id: str,
        requester: Dict[str, Any],
        excluded_contact_ids: Optional[Iterable[int]] = None,
    ) -> CampaignSendResult:
        """
        Validate, transition to SENDING and run the campaign to completion.

        Raises ForbiddenError, CampaignNotFoundError, AlreadySentError or
        NoRecipientsError before anything is written.
        """
        ensure_campaign_manager(requester)
        campaign = self.get_campaign(db, tenant_id, campaign_id)
        self.state_machine.ensure_startable(campaign)

        recipients = self.segmenter.resolve(
            db,
            tenant_id,
            parse_segment(campaign.segment),
            campaign.channel,
            exclude_ids=excluded_contact_ids,
        )
        if not recipients:
            log.error(f"❌ No recipients for campaign {campaign_id}")
            raise NoRecipientsError()

        credentials = ConfigLoader(db, tenant_id).get_provider_credentials()

        self.state_machine.begin_sending(db, campaign, len(recipients))
        self._audit(db, tenant_id, campaign, requester, len(recipients))

        cancel_event = asyncio.Event()
        _running[campaign.campaign_id] = cancel_event
        try:
            return await self.scheduler.run(db, campaign, recipients, credentials, cancel_event=cancel_event)
        finally:
            _running.pop(campaign.campaign_id, None)

    def cancel_campaign(self, db: Session, tenant_id: str, campaign_id: str) -> bool:
        """Ask a running campaign to stop before its next batch"""
        campaign = self.get_campaign(db, tenant_id, campaign_id)
        event = _running.get(campaign.campaign_id)
        if event is None:
            return False
        event.set()
        log.info(f"🛑 Cancel requested for campaign {campaign_id}")
        return True

    def _audit(self, db: Session, tenant_id: str, campaign: Campaign, requester: Dict[str, Any], count: int) -> None:
        try:
            db.add(AuditLog(
                tenant_id=tenant_id,
                action="CAMPAIGN_SENT",
                entity_type="campaign",
                entity_id=campaign.campaign_id,
                user_id=(requester or {}).get("user_id"),
                details={"campaign_id": campaign.campaign_id, "recipient_count": count},
            ))
            db.commit()
        except Exception as e:
            db.rollback()
            log.error(f"❌ Failed to write audit log for campaign {campaign.campaign_id}: {e}")
