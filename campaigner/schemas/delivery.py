# campaigner/schemas/delivery.py
"""Value types passed between the segmenter, channel senders and scheduler"""
from typing import Optional
from pydantic import BaseModel


class Recipient(BaseModel):
    """A contact resolved as eligible for one campaign run (not persisted)"""
    id: int
    name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def first_name(self) -> str:
        return self.name.split()[0] if self.name and self.name.strip() else ""


class SmsCredentials(BaseModel):
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


class EmailCredentials(BaseModel):
    api_key: Optional[str] = None
    from_address: Optional[str] = None

    def is_configured(self) -> bool:
        return bool(self.api_key)


class ProviderCredentials(BaseModel):
    """Tenant-scoped credentials handed to the senders on every call"""
    business_name: str = "your cleaning service"
    sms: SmsCredentials = SmsCredentials()
    email: EmailCredentials = EmailCredentials()


class SendResult(BaseModel):
    """Outcome of a single provider call"""
    success: bool
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, provider_message_id: Optional[str] = None) -> "SendResult":
        return cls(success=True, provider_message_id=provider_message_id)

    @classmethod
    def failed(cls, error_message: str) -> "SendResult":
        return cls(success=False, error_message=error_message)
