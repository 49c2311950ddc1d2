# campaigner/services/delivery_tracker.py
"""
Delivery tracking - durable receipts for every send attempt.

Records are only ever inserted and are committed as they are written, so a
failed run keeps every receipt it produced. Campaign counters are advanced
at batch checkpoints with the per-recipient tallies of that batch.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from campaigner.models.base import utcnow
from campaigner.models.campaign import (
    Campaign, CampaignRecipient, DeliveryChannel, DeliveryStatus,
)
from campaigner.models.contact import Contact
from campaigner.schemas.delivery import SendResult

log = logging.getLogger("campaigner.delivery_tracker")


class DeliveryTracker:
    """Persists per-channel outcomes and rolls up campaign counters"""

    def record(
        self,
        db: Session,
        campaign: Campaign,
        contact_id: int,
        channel: DeliveryChannel,
        destination: str,
        outcome: SendResult,
    ) -> CampaignRecipient:
        """
        Insert one CampaignRecipient row for a send attempt.

        On success the contact's last-marketing timestamp for the channel is
        stamped; failures leave it untouched.
        """
        now = utcnow()
        record = CampaignRecipient(
            tenant_id=campaign.tenant_id,
            campaign_pk=campaign.id,
            contact_id=contact_id,
            channel=channel,
            destination=destination,
            status=DeliveryStatus.SENT if outcome.success else DeliveryStatus.FAILED,
            sent_at=now if outcome.success else None,
            failed_at=None if outcome.success else now,
            error_message=None if outcome.success else (outcome.error_message or "Send failed"),
            provider_message_id=outcome.provider_message_id if outcome.success else None,
        )
        db.add(record)

        if outcome.success:
            self._stamp_contact(db, campaign.tenant_id, contact_id, channel, now)

        db.commit()
        log.debug(f"📝 Recorded {record.status.value} {channel.value} for contact {contact_id} ({destination})")
        return record

    def checkpoint(self, db: Session, campaign: Campaign, sent: int, failed: int) -> Campaign:
        """
        Add one batch's tallies to the campaign and commit.

        Totals are clamped so sent + failed never exceeds total_recipients.
        """
        if campaign.is_terminal:
            raise ValueError(f"Campaign {campaign.campaign_id} is {campaign.status.value}, counters are frozen")

        remaining = max(campaign.total_recipients - campaign.sent_count - campaign.failed_count, 0)
        sent = min(sent, remaining)
        failed = min(failed, remaining - sent)

        campaign.sent_count += sent
        campaign.failed_count += failed
        db.commit()
        log.info(
            f"💾 Checkpoint {campaign.campaign_id}: "
            f"{campaign.sent_count} sent, {campaign.failed_count} failed of {campaign.total_recipients}"
        )
        return campaign

    def _stamp_contact(
        self, db: Session, tenant_id: str, contact_id: int, channel: DeliveryChannel, when
    ) -> None:
        contact: Optional[Contact] = db.query(Contact).filter(
            Contact.id == contact_id,
            Contact.tenant_id == tenant_id,
        ).first()
        if not contact:
            return
        if channel == DeliveryChannel.SMS:
            contact.last_marketing_sms_at = when
        else:
            contact.last_marketing_email_at = when
