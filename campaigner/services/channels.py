# campaigner/services/channels.py
"""
Outbound channel senders.

Each sender wraps one provider (Twilio for SMS, Resend for email) and
never raises: provider, network and configuration problems come back as
SendResult(success=False, error_message=...).
"""
from __future__ import annotations
import logging
import re
from typing import Optional

import httpx
from email_validator import EmailNotValidError, validate_email

from campaigner.core import config
from campaigner.core.logging_config import get_delivery_logger, log_api_request, log_api_response
from campaigner.models.campaign import DeliveryChannel
from campaigner.schemas.delivery import EmailCredentials, Recipient, SendResult, SmsCredentials
from campaigner.services.template_renderer import default_subject, render_email_html

log = logging.getLogger("campaigner.channels")
delivery_log = get_delivery_logger()

def normalize_phone(phone: Optional[str], default_country_code: str = None) -> Optional[str]:
    """
    Normalize a phone number to E.164 (+<country><number>).

    Formatting characters are dropped. Ten-digit national numbers get the
    default country code. Returns None when the number cannot be valid.
    """
    if not phone:
        return None
    raw = str(phone).strip()
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return None

    country_code = default_country_code or config.DEFAULT_COUNTRY_CODE
    if raw.startswith("+"):
        normalized = digits
    elif raw.startswith("00"):
        normalized = digits[2:]
    elif len(digits) == 10:
        normalized = f"{country_code}{digits}"
    else:
        normalized = digits

    if len(normalized) < 8 or len(normalized) > 15 or normalized.startswith("0"):
        return None
    return f"+{normalized}"


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


class ChannelSender:
    """Common contract for SMS and email senders"""

    channel: DeliveryChannel

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = None):
        self.transport = transport
        self.timeout = timeout if timeout is not None else config.PROVIDER_TIMEOUT_SECONDS

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    def destination_for(self, recipient: Recipient) -> Optional[str]:
        raise NotImplementedError

    def has_address(self, recipient: Recipient) -> bool:
        return bool(self.destination_for(recipient))

    async def send(self, destination: str, body: str, credentials, subject: Optional[str] = None,
                   business_name: str = "") -> SendResult:
        """Single delivery attempt, no retry. Never raises."""
        try:
            return await self._deliver(destination, body, credentials, subject, business_name)
        except Exception as e:
            log.exception(f"❌ Unexpected {self.channel.value} sender error for {destination}")
            return SendResult.failed(f"Unexpected {self.channel.value} error: {e}")

    async def _deliver(self, destination: str, body: str, credentials, subject: Optional[str],
                       business_name: str) -> SendResult:
        raise NotImplementedError


class SmsSender(ChannelSender):
    """Twilio REST API sender"""

    channel = DeliveryChannel.SMS

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = None,
                 api_base: str = None):
        super().__init__(transport, timeout)
        self.api_base = (api_base or config.TWILIO_API_BASE).rstrip("/")

    def destination_for(self, recipient: Recipient) -> Optional[str]:
        """E.164 number that will be sent to, or the raw value when it cannot be normalized"""
        raw = recipient.phone.strip() if recipient.phone else ""
        if not raw:
            return None
        return normalize_phone(raw) or raw

    async def _deliver(self, destination: str, body: str, credentials: SmsCredentials,
                       subject: Optional[str], business_name: str) -> SendResult:
        to = normalize_phone(destination)
        if not to:
            delivery_log.warning(f"❌ SMS rejected, invalid phone number: {destination}")
            return SendResult.failed(f"Invalid phone number: {destination}")

        if not credentials or not credentials.is_configured():
            delivery_log.warning("❌ SMS not sent, Twilio is not configured")
            return SendResult.failed("Twilio is not configured")

        url = f"{self.api_base}/Accounts/{credentials.account_sid}/Messages.json"
        payload = {"To": to, "From": credentials.from_number, "Body": body}
        log_api_request(log, "POST", url, data=payload)

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    data=payload,
                    auth=(credentials.account_sid, credentials.auth_token),
                )
        except httpx.HTTPError as e:
            log_api_response(log, 0, error=e)
            delivery_log.error(f"❌ SMS to {to} failed: {e}")
            return SendResult.failed(f"SMS request failed: {e}")

        if response.status_code >= 400:
            detail = _error_detail(response)
            log_api_response(log, response.status_code, detail)
            delivery_log.warning(f"❌ SMS to {to} rejected ({response.status_code}): {detail}")
            return SendResult.failed(f"Twilio error: {detail}")

        try:
            sid = response.json().get("sid")
        except ValueError:
            sid = None
        log_api_response(log, response.status_code, {"sid": sid})
        delivery_log.info(f"✅ SMS sent to {to}: {sid}")
        return SendResult.ok(sid)


class EmailSender(ChannelSender):
    """Resend REST API sender"""

    channel = DeliveryChannel.EMAIL

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = None,
                 api_url: str = None):
        super().__init__(transport, timeout)
        self.api_url = api_url or config.RESEND_API_URL

    def destination_for(self, recipient: Recipient) -> Optional[str]:
        return recipient.email.strip() if recipient.email and recipient.email.strip() else None

    async def _deliver(self, destination: str, body: str, credentials: EmailCredentials,
                       subject: Optional[str], business_name: str) -> SendResult:
        try:
            validate_email(destination, check_deliverability=False)
        except EmailNotValidError as e:
            delivery_log.warning(f"❌ Email rejected, invalid address {destination}: {e}")
            return SendResult.failed(f"Invalid email address {destination}: {e}")

        if not credentials or not credentials.is_configured():
            delivery_log.warning("❌ Email not sent, no email service configured")
            return SendResult.failed("No email service configured")

        business_name = business_name or "your cleaning service"
        payload = {
            "from": credentials.from_address,
            "to": [destination.strip()],
            "subject": subject or default_subject(business_name),
            "html": render_email_html(body, business_name),
        }
        headers = {"Authorization": f"Bearer {credentials.api_key}"}
        log_api_request(log, "POST", self.api_url, data={"to": payload["to"], "subject": payload["subject"]},
                        headers=headers)

        try:
            async with self._client() as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log_api_response(log, 0, error=e)
            delivery_log.error(f"❌ Email to {destination} failed: {e}")
            return SendResult.failed(f"Email request failed: {e}")

        if response.status_code >= 400:
            detail = _error_detail(response)
            log_api_response(log, response.status_code, detail)
            delivery_log.warning(f"❌ Email to {destination} rejected ({response.status_code}): {detail}")
            return SendResult.failed(f"Resend API error: {detail}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        log_api_response(log, response.status_code, {"id": message_id})
        delivery_log.info(f"✅ Email sent to {destination}: {message_id}")
        return SendResult.ok(message_id)

