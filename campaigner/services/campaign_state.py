# campaigner/services/campaign_state.py
"""
Campaign lifecycle transitions.

DRAFT / SCHEDULED -> SENDING -> COMPLETED
                     SENDING -> PAUSED
The move into SENDING is a conditional UPDATE so two racing runs cannot
both win.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from campaigner.core.exceptions import AlreadySentError
from campaigner.models.base import utcnow
from campaigner.models.campaign import Campaign, CampaignStatus, STARTABLE_STATUSES

log = logging.getLogger("campaigner.campaign_state")


class CampaignStateMachine:

    def ensure_startable(self, campaign: Campaign) -> None:
        if campaign.status not in STARTABLE_STATUSES:
            raise AlreadySentError()

    def begin_sending(self, db: Session, campaign: Campaign, total_recipients: int) -> Campaign:
        """Atomically move a DRAFT/SCHEDULED campaign to SENDING"""
        now = utcnow()
        updated = db.query(Campaign).filter(
            Campaign.id == campaign.id,
            Campaign.status.in_(STARTABLE_STATUSES),
        ).update(
            {
                Campaign.status: CampaignStatus.SENDING,
                Campaign.sent_at: now,
                Campaign.completed_at: None,
                Campaign.total_recipients: total_recipients,
                Campaign.sent_count: 0,
                Campaign.failed_count: 0,
                Campaign.last_error: None,
                Campaign.updated_at: now,
            },
            synchronize_session=False,
        )
        if updated != 1:
            db.rollback()
            log.warning(f"⚠️ Campaign {campaign.campaign_id} lost the start race")
            raise AlreadySentError()

        db.commit()
        db.refresh(campaign)
        log.info(f"🚀 Campaign {campaign.campaign_id} is SENDING to {total_recipients} recipients")
        return campaign

    def complete(self, db: Session, campaign: Campaign) -> Campaign:
        self._require_sending(campaign)
        campaign.status = CampaignStatus.COMPLETED
        campaign.completed_at = utcnow()
        db.commit()
        log.info(
            f"📊 Campaign {campaign.campaign_id} completed: "
            f"{campaign.sent_count} sent, {campaign.failed_count} failed"
        )
        return campaign

    def pause(self, db: Session, campaign: Campaign, reason: Optional[str] = None) -> Campaign:
        self._require_sending(campaign)
        campaign.status = CampaignStatus.PAUSED
        campaign.last_error = (reason or "")[:2000] or None
        db.commit()
        log.warning(f"⏸️ Campaign {campaign.campaign_id} paused: {reason}")
        return campaign

    def _require_sending(self, campaign: Campaign) -> None:
        if campaign.status != CampaignStatus.SENDING:
            raise ValueError(
                f"Campaign {campaign.campaign_id} is {campaign.status.value}, expected SENDING"
            )
