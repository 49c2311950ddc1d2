# campaigner/services/scheduler.py
"""
Batch scheduler - drives one campaign run.

Recipients are sent in fixed-size batches. Inside a batch every
recipient and channel runs concurrently; batches run one after another
with a cooldown in between to stay under provider rate limits.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campaigner.core import config
from campaigner.core.exceptions import CampaignOrchestrationError
from campaigner.models.campaign import Campaign, CampaignStatus
from campaigner.schemas.campaign import CampaignSendResult
from campaigner.schemas.delivery import ProviderCredentials, Recipient, SendResult
from campaigner.services.campaign_state import CampaignStateMachine
from campaigner.services.channels import ChannelSender, EmailSender, SmsSender
from campaigner.services.delivery_tracker import DeliveryTracker
from campaigner.services.template_renderer import recipient_variables, render_template

log = logging.getLogger("campaigner.scheduler")


def partition(items: List[Recipient], size: int) -> List[List[Recipient]]:
    """Split items into consecutive chunks of at most size"""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


class _TrackingFailure(Exception):
    """A delivery record could not be written"""


class BatchScheduler:

    def __init__(
        self,
        sms_sender: ChannelSender = None,
        email_sender: ChannelSender = None,
        tracker: DeliveryTracker = None,
        state_machine: CampaignStateMachine = None,
        batch_size: int = None,
        cooldown_seconds: float = None,
        sample_error_limit: int = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.sms_sender = sms_sender or SmsSender()
        self.email_sender = email_sender or EmailSender()
        self.tracker = tracker or DeliveryTracker()
        self.state_machine = state_machine or CampaignStateMachine()
        self.batch_size = batch_size or config.CAMPAIGN_BATCH_SIZE
        self.cooldown_seconds = config.CAMPAIGN_BATCH_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        self.sample_error_limit = config.CAMPAIGN_SAMPLE_ERRORS if sample_error_limit is None else sample_error_limit
        self.sleep = sleep

    async def run(
        self,
        db: Session,
        campaign: Campaign,
        recipients: List[Recipient],
        credentials: ProviderCredentials,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CampaignSendResult:
        """
        Send a campaign that is already SENDING.

        Returns the final counters and at most sample_error_limit error strings.
        Storage failures pause the campaign and raise CampaignOrchestrationError.
        """
        batches = partition(recipients, self.batch_size)
        errors: List[str] = []
        cancelled = False

        log.info(
            f"📢 Campaign {campaign.campaign_id}: {len(recipients)} recipients in "
            f"{len(batches)} batches of {self.batch_size}"
        )

        try:
            for index, batch in enumerate(batches):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    log.warning(f"🛑 Campaign {campaign.campaign_id} cancelled before batch {index + 1}")
                    break

                sent, failed = await self._run_batch(db, campaign, batch, credentials, errors)
                self.tracker.checkpoint(db, campaign, sent, failed)
                log.info(
                    f"📦 Batch {index + 1}/{len(batches)} done for {campaign.campaign_id}: "
                    f"{sent} sent, {failed} failed"
                )

                if index < len(batches) - 1:
                    await self.sleep(self.cooldown_seconds)

            if cancelled:
                self.state_machine.pause(db, campaign, "Cancelled by operator")
            else:
                self.state_machine.complete(db, campaign)

        except asyncio.CancelledError:
            log.warning(f"🛑 Campaign {campaign.campaign_id} run was interrupted")
            self._pause_after_failure(db, campaign, "Run interrupted before completion")
            raise
        except Exception as e:
            log.error(f"❌ Campaign {campaign.campaign_id} run failed: {e}")
            self._pause_after_failure(db, campaign, str(e))
            raise CampaignOrchestrationError(
                f"Campaign run failed and was paused: {e}", campaign_id=campaign.campaign_id
            ) from e

        return CampaignSendResult(
            campaign_id=campaign.campaign_id,
            status=campaign.status,
            total_recipients=campaign.total_recipients,
            sent_count=campaign.sent_count,
            failed_count=campaign.failed_count,
            sample_errors=errors,
        )

    async def _run_batch(
        self,
        db: Session,
        campaign: Campaign,
        batch: List[Recipient],
        credentials: ProviderCredentials,
        errors: List[str],
    ) -> Tuple[int, int]:
        """Send one batch concurrently; returns per-recipient (sent, failed)"""
        results = await asyncio.gather(
            *(self._deliver_to_recipient(db, campaign, recipient, credentials, errors) for recipient in batch),
            return_exceptions=True,
        )

        sent = failed = 0
        for recipient, result in zip(batch, results):
            if isinstance(result, _TrackingFailure):
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed += 1
                self._note_error(errors, f"Recipient {recipient.id}: {result}")
                log.error(f"❌ Unexpected error sending to recipient {recipient.id}: {result}")
            elif result:
                sent += 1
            else:
                failed += 1
        return sent, failed

    async def _deliver_to_recipient(
        self,
        db: Session,
        campaign: Campaign,
        recipient: Recipient,
        credentials: ProviderCredentials,
        errors: List[str],
    ) -> bool:
        """
        Render and send on every applicable channel.

        True when at least one channel succeeded.
        """
        variables = recipient_variables(recipient, credentials.business_name)
        body = render_template(campaign.body, variables)
        subject = render_template(campaign.subject, variables) if campaign.subject else None

        attempts = []
        if campaign.channel.uses_sms and self.sms_sender.has_address(recipient):
            attempts.append((self.sms_sender, self.sms_sender.destination_for(recipient), credentials.sms))
        if campaign.channel.uses_email and self.email_sender.has_address(recipient):
            attempts.append((self.email_sender, self.email_sender.destination_for(recipient), credentials.email))

        if not attempts:
            self._note_error(errors, f"Recipient {recipient.id}: no usable address for {campaign.channel.value}")
            return False

        outcomes: List[SendResult] = await asyncio.gather(*(
            sender.send(destination, body, creds, subject=subject, business_name=credentials.business_name)
            for sender, destination, creds in attempts
        ))

        delivered = False
        for (sender, destination, _), outcome in zip(attempts, outcomes):
            try:
                self.tracker.record(db, campaign, recipient.id, sender.channel, destination, outcome)
            except SQLAlchemyError as e:
                raise _TrackingFailure(f"Could not record {sender.channel.value} delivery for {destination}: {e}") from e
            if outcome.success:
                delivered = True
            else:
                self._note_error(errors, f"{sender.channel.value} {destination}: {outcome.error_message}")
        return delivered

    def _note_error(self, errors: List[str], message: str) -> None:
        """Keep only the first sample_error_limit messages"""
        if len(errors) < self.sample_error_limit:
            errors.append(message)

    def _pause_after_failure(self, db: Session, campaign: Campaign, reason: str) -> None:
        try:
            db.rollback()
            db.refresh(campaign)
            if campaign.status == CampaignStatus.SENDING:
                self.state_machine.pause(db, campaign, reason)
        except SQLAlchemyError as pause_error:
            log.critical(f"🔥 Could not pause campaign {campaign.campaign_id}: {pause_error}")
