"""
Pytest configuration and fixtures for campaigner tests.
"""
import os
import tempfile

# Configure before any campaigner import reads the environment
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="campaigner-logs-")
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["RESEND_API_KEY"] = ""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campaigner.db.base import Base
from campaigner.db.session import get_db
from campaigner.main import app
from campaigner.models.campaign import Campaign, CampaignChannel, CampaignStatus
from campaigner.models.contact import Address, Booking, Contact
from campaigner.schemas.delivery import EmailCredentials, ProviderCredentials, SendResult, SmsCredentials
from campaigner.services import CampaignService, set_campaign_service
from campaigner.services.channels import EmailSender, SmsSender
from campaigner.services.scheduler import BatchScheduler

TENANT_ID = "tenant-a"
OTHER_TENANT_ID = "tenant-b"

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None


def get_test_db():
    """Get the shared test database session."""
    global _test_session
    try:
        yield _test_session
    finally:
        pass


class _FakeSenderMixin:
    """Records every call instead of talking to a provider."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.fail = set()
        self.explode_for = set()

    def has_address(self, recipient):
        if recipient.id in self.explode_for:
            raise RuntimeError(f"boom for recipient {recipient.id}")
        return super().has_address(recipient)

    async def _deliver(self, destination, body, credentials, subject, business_name):
        self.calls.append({
            "destination": destination,
            "body": body,
            "subject": subject,
            "business_name": business_name,
        })
        if destination in self.fail:
            return SendResult.failed(f"{self.channel.value} provider rejected {destination}")
        return SendResult.ok(f"{self.channel.value.lower()}-{len(self.calls)}")


class FakeSmsSender(_FakeSenderMixin, SmsSender):
    pass


class FakeEmailSender(_FakeSenderMixin, EmailSender):
    pass


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create a session
    _test_session = TestingSessionLocal()

    # Override the get_db dependency
    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    # Cleanup
    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None

    # Drop all tables
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sms_sender():
    return FakeSmsSender()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def sleeps():
    """Durations the scheduler asked to sleep for."""
    return []


@pytest.fixture
def scheduler(sms_sender, email_sender, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return BatchScheduler(
        sms_sender=sms_sender,
        email_sender=email_sender,
        batch_size=25,
        cooldown_seconds=2,
        sample_error_limit=10,
        sleep=fake_sleep,
    )


@pytest.fixture
def service(scheduler):
    return CampaignService(scheduler=scheduler, state_machine=scheduler.state_machine)


@pytest.fixture(scope="function")
def client(db, service):
    """Create a test client wired to the fake senders."""
    set_campaign_service(service)
    with TestClient(app) as c:
        yield c
    set_campaign_service(None)


@pytest.fixture
def credentials():
    return ProviderCredentials(
        business_name="Sparkle Cleaning",
        sms=SmsCredentials(account_sid="AC123", auth_token="secret-token", from_number="+15550001111"),
        email=EmailCredentials(api_key="re_test_key", from_address="marketing@sparkle.test"),
    )


@pytest.fixture
def manager_headers():
    return {"X-Tenant-Id": TENANT_ID, "X-User-Id": "owner-1", "X-User-Role": "OWNER"}


@pytest.fixture
def cleaner_headers():
    return {"X-Tenant-Id": TENANT_ID, "X-User-Id": "cleaner-1", "X-User-Role": "CLEANER"}


@pytest.fixture
def make_contact(db):
    """Factory for contacts, optionally with an address."""

    def _make(name="Client", phone=None, email=None, tags=None, tenant_id=TENANT_ID,
              marketing_opt_out=False, has_insurance=False, city=None, state=None):
        contact = Contact(
            tenant_id=tenant_id,
            name=name,
            phone=phone,
            email=email,
            tags=tags or [],
            marketing_opt_out=marketing_opt_out,
            has_insurance=has_insurance,
        )
        db.add(contact)
        db.flush()
        if city or state:
            db.add(Address(tenant_id=tenant_id, contact_id=contact.id, city=city, state=state))
        db.commit()
        db.refresh(contact)
        return contact

    return _make


@pytest.fixture
def make_booking(db):
    def _make(contact, scheduled_date, status="COMPLETED"):
        booking = Booking(
            tenant_id=contact.tenant_id,
            contact_id=contact.id,
            scheduled_date=scheduled_date,
            status=status,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def make_campaign(db):
    """Factory for campaigns stored directly in the database."""

    def _make(channel=CampaignChannel.SMS, segment=None, body="Hi {{clientName}}!", subject=None,
              status=CampaignStatus.DRAFT, tenant_id=TENANT_ID, name="Spring promo"):
        if channel != CampaignChannel.SMS and subject is None:
            subject = "Spring deals from {{businessName}}"
        campaign = Campaign(
            tenant_id=tenant_id,
            campaign_id=str(uuid.uuid4()),
            name=name,
            channel=channel,
            segment=segment or {"type": "ALL"},
            subject=subject,
            body=body,
            status=status,
        )
        db.add(campaign)
        db.commit()
        db.refresh(campaign)
        return campaign

    return _make
