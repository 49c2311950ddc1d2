"""
Tests for the batch scheduler and delivery tracking.
"""
import asyncio

import pytest
from sqlalchemy.exc import SQLAlchemyError

from campaigner.core.exceptions import CampaignOrchestrationError
from campaigner.models.campaign import (
    CampaignChannel, CampaignRecipient, CampaignStatus, DeliveryChannel, DeliveryStatus,
)
from campaigner.models.contact import Contact
from campaigner.schemas.delivery import Recipient
from campaigner.services.campaign_state import CampaignStateMachine
from campaigner.services.delivery_tracker import DeliveryTracker
from campaigner.services.scheduler import BatchScheduler, partition


def _start(db, campaign, recipients):
    CampaignStateMachine().begin_sending(db, campaign, len(recipients))


def _records(db, campaign):
    return db.query(CampaignRecipient).filter(CampaignRecipient.campaign_pk == campaign.id).all()


class TestPartition:

    def test_chunks_keep_order(self):
        items = list(range(60))
        chunks = partition(items, 25)
        assert [len(c) for c in chunks] == [25, 25, 10]
        assert sum(chunks, []) == items

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            partition([1], 0)


class TestBatchScheduler:

    def test_sixty_recipients_run_in_three_batches_with_two_cooldowns(
        self, db, make_campaign, scheduler, sms_sender, sleeps, credentials
    ):
        campaign = make_campaign(channel=CampaignChannel.SMS)
        recipients = [Recipient(id=i, name=f"Client {i}", phone=f"+1555000{i:04d}") for i in range(1, 61)]
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert sleeps == [2, 2]
        assert len(sms_sender.calls) == 60
        assert result.sent_count == 60
        assert result.failed_count == 0
        assert result.status == CampaignStatus.COMPLETED
        assert campaign.completed_at is not None

    def test_single_batch_never_sleeps(self, db, make_campaign, scheduler, sleeps, credentials):
        campaign = make_campaign()
        recipients = [Recipient(id=1, name="Jane", phone="+15550000001")]
        _start(db, campaign, recipients)

        asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert sleeps == []

    def test_both_channel_records_and_counts(
        self, db, make_campaign, make_contact, scheduler, sms_sender, email_sender, credentials
    ):
        # A has phone and email, B has phone only and its SMS fails
        a = make_contact("Ann Lee", phone="+15550000001", email="ann@example.com")
        b = make_contact("Bob", phone="+15550000002")
        c = make_contact("Cat", email="cat@example.com")
        campaign = make_campaign(channel=CampaignChannel.BOTH, body="Hi {{firstName}} from {{businessName}}")
        recipients = [
            Recipient(id=a.id, name=a.name, phone=a.phone, email=a.email),
            Recipient(id=b.id, name=b.name, phone=b.phone),
            Recipient(id=c.id, name=c.name, email=c.email),
        ]
        sms_sender.fail.add("+15550000002")
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        records = _records(db, campaign)
        assert len(records) == 4
        by_key = {(r.contact_id, r.channel): r for r in records}
        assert by_key[(a.id, DeliveryChannel.SMS)].status == DeliveryStatus.SENT
        assert by_key[(a.id, DeliveryChannel.EMAIL)].status == DeliveryStatus.SENT
        assert by_key[(b.id, DeliveryChannel.SMS)].status == DeliveryStatus.FAILED
        assert by_key[(b.id, DeliveryChannel.SMS)].error_message == "SMS provider rejected +15550000002"
        assert by_key[(c.id, DeliveryChannel.EMAIL)].status == DeliveryStatus.SENT
        assert (b.id, DeliveryChannel.EMAIL) not in by_key
        assert (c.id, DeliveryChannel.SMS) not in by_key

        assert result.sent_count == 2
        assert result.failed_count == 1
        assert result.sent_count + result.failed_count == result.total_recipients
        assert result.sample_errors == ["SMS +15550000002: SMS provider rejected +15550000002"]

        assert sms_sender.calls[0]["body"] == "Hi Ann from Sparkle Cleaning"
        assert email_sender.calls[0]["subject"] == "Spring deals from Sparkle Cleaning"

    def test_one_successful_channel_counts_as_sent(
        self, db, make_campaign, scheduler, sms_sender, credentials
    ):
        campaign = make_campaign(channel=CampaignChannel.BOTH)
        recipients = [Recipient(id=1, name="Jane", phone="+15550000001", email="jane@example.com")]
        sms_sender.fail.add("+15550000001")
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert (result.sent_count, result.failed_count) == (1, 0)
        statuses = sorted(r.status.value for r in _records(db, campaign))
        assert statuses == ["FAILED", "SENT"]

    def test_success_stamps_contact_and_failure_does_not(
        self, db, make_campaign, make_contact, scheduler, sms_sender, credentials
    ):
        ok = make_contact("Ok", phone="+15550000001")
        bad = make_contact("Bad", phone="+15550000002")
        campaign = make_campaign()
        recipients = [Recipient(id=ok.id, name=ok.name, phone=ok.phone), Recipient(id=bad.id, name=bad.name, phone=bad.phone)]
        sms_sender.fail.add("+15550000002")
        _start(db, campaign, recipients)

        asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert db.get(Contact, ok.id).last_marketing_sms_at is not None
        assert db.get(Contact, bad.id).last_marketing_sms_at is None
        sent = [r for r in _records(db, campaign) if r.status == DeliveryStatus.SENT][0]
        assert sent.sent_at is not None
        assert sent.provider_message_id == "sms-1"

    def test_unexpected_recipient_error_is_counted_and_batch_continues(
        self, db, make_campaign, scheduler, sms_sender, credentials
    ):
        campaign = make_campaign()
        recipients = [Recipient(id=i, name=f"C{i}", phone=f"+1555000000{i}") for i in range(1, 4)]
        sms_sender.explode_for.add(2)
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert result.status == CampaignStatus.COMPLETED
        assert (result.sent_count, result.failed_count) == (2, 1)
        assert any("boom for recipient 2" in e for e in result.sample_errors)

    def test_sample_errors_are_capped(self, db, make_campaign, scheduler, sms_sender, credentials):
        campaign = make_campaign()
        recipients = [Recipient(id=i, name=f"C{i}", phone=f"+1555000{i:04d}") for i in range(1, 16)]
        sms_sender.fail.update(r.phone for r in recipients)
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert result.failed_count == 15
        assert len(result.sample_errors) == 10
        assert all(e.startswith("SMS +1555000") for e in result.sample_errors)

    def test_error_samples_stop_growing_at_limit(self, scheduler):
        errors = []
        for i in range(25):
            scheduler._note_error(errors, f"error {i}")
        assert errors == [f"error {i}" for i in range(10)]

    def test_cancel_pauses_before_next_batch(
        self, db, make_campaign, sms_sender, email_sender, credentials
    ):
        cancel = asyncio.Event()

        async def cancelling_sleep(seconds):
            cancel.set()

        scheduler = BatchScheduler(
            sms_sender=sms_sender, email_sender=email_sender, batch_size=2, sleep=cancelling_sleep
        )
        campaign = make_campaign()
        recipients = [Recipient(id=i, name=f"C{i}", phone=f"+1555000000{i}") for i in range(1, 6)]
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials, cancel_event=cancel))

        assert result.status == CampaignStatus.PAUSED
        assert len(sms_sender.calls) == 2
        assert (result.sent_count, result.failed_count) == (2, 0)
        assert campaign.last_error == "Cancelled by operator"

    def test_interrupted_run_pauses_campaign(self, db, make_campaign, sms_sender, email_sender, credentials):
        async def interrupted_sleep(seconds):
            raise asyncio.CancelledError()

        scheduler = BatchScheduler(
            sms_sender=sms_sender, email_sender=email_sender, batch_size=1, sleep=interrupted_sleep
        )
        campaign = make_campaign()
        recipients = [Recipient(id=i, name=f"C{i}", phone=f"+1555000000{i}") for i in range(1, 4)]
        _start(db, campaign, recipients)

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        db.refresh(campaign)
        assert campaign.status == CampaignStatus.PAUSED
        assert campaign.last_error == "Run interrupted before completion"
        assert campaign.sent_count == 1
        assert len(sms_sender.calls) == 1

    def test_tracking_failure_pauses_campaign(self, db, make_campaign, sms_sender, email_sender, credentials):
        class BrokenTracker(DeliveryTracker):
            def record(self, *args, **kwargs):
                raise SQLAlchemyError("disk full")

        async def no_sleep(seconds):
            return None

        scheduler = BatchScheduler(
            sms_sender=sms_sender, email_sender=email_sender, tracker=BrokenTracker(), sleep=no_sleep
        )
        campaign = make_campaign()
        recipients = [Recipient(id=1, name="Jane", phone="+15550000001")]
        _start(db, campaign, recipients)

        with pytest.raises(CampaignOrchestrationError) as exc_info:
            asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert exc_info.value.campaign_id == campaign.campaign_id
        db.refresh(campaign)
        assert campaign.status == CampaignStatus.PAUSED
        assert "disk full" in campaign.last_error
        assert _records(db, campaign) == []


class TestDeliveryTracker:

    def test_checkpoint_clamps_to_total(self, db, make_campaign):
        campaign = make_campaign()
        CampaignStateMachine().begin_sending(db, campaign, 3)

        DeliveryTracker().checkpoint(db, campaign, 2, 5)

        assert (campaign.sent_count, campaign.failed_count) == (2, 1)

    def test_checkpoint_refuses_terminal_campaign(self, db, make_campaign):
        campaign = make_campaign(status=CampaignStatus.COMPLETED)

        with pytest.raises(ValueError):
            DeliveryTracker().checkpoint(db, campaign, 1, 0)


class TestCampaignScenarios:
    """End-to-end runs through the segmenter and scheduler."""

    def test_both_channel_all_segment_writes_five_records(
        self, db, make_contact, make_campaign, service, sms_sender, email_sender
    ):
        make_contact("Ann", phone="+15550000001", email="ann@example.com")
        make_contact("Bob", phone="+15550000002", email="bob@example.com")
        cat = make_contact("Cat", email="cat@example.com")
        campaign = make_campaign(channel=CampaignChannel.BOTH)
        owner = {"user_id": "owner-1", "role": "OWNER"}

        result = asyncio.run(service.start_campaign(db, campaign.tenant_id, campaign.campaign_id, owner))

        records = _records(db, campaign)
        assert result.total_recipients == 3
        assert len(records) == 5
        assert [r for r in records if r.contact_id == cat.id and r.channel == DeliveryChannel.SMS] == []
        assert len(sms_sender.calls) == 2
        assert len(email_sender.calls) == 3
        assert result.sent_count + result.failed_count == result.total_recipients == 3

    def test_failing_on_every_channel_counts_as_failed(
        self, db, make_campaign, scheduler, sms_sender, email_sender, credentials
    ):
        campaign = make_campaign(channel=CampaignChannel.BOTH)
        recipients = [
            Recipient(id=1, name="Ok", phone="+15550000001", email="ok@example.com"),
            Recipient(id=2, name="Bad", phone="+15550000002", email="bad@example.com"),
        ]
        sms_sender.fail.add("+15550000002")
        email_sender.fail.add("bad@example.com")
        _start(db, campaign, recipients)

        result = asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert (result.sent_count, result.failed_count) == (1, 1)
        assert result.sent_count + result.failed_count == result.total_recipients

    def test_formatted_phone_is_recorded_as_sent(
        self, db, make_contact, make_campaign, service, sms_sender
    ):
        make_contact("Jane", phone="(555) 000-0001")
        campaign = make_campaign()
        owner = {"user_id": "owner-1", "role": "OWNER"}

        asyncio.run(service.start_campaign(db, campaign.tenant_id, campaign.campaign_id, owner))

        record = _records(db, campaign)[0]
        assert record.destination == "+15550000001"
        assert sms_sender.calls[0]["destination"] == record.destination

    def test_recipient_without_phone_never_reaches_sms_sender(
        self, db, make_campaign, scheduler, sms_sender, credentials
    ):
        campaign = make_campaign(channel=CampaignChannel.BOTH)
        recipients = [Recipient(id=1, name="Mail only", email="mail@example.com")]
        _start(db, campaign, recipients)

        asyncio.run(scheduler.run(db, campaign, recipients, credentials))

        assert sms_sender.calls == []
        assert [r.channel for r in _records(db, campaign)] == [DeliveryChannel.EMAIL]
