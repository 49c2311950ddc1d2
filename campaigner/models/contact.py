# campaigner/models/contact.py
"""
Contact (client) records owned by the CRUD layer.
The broadcast engine only reads them, except for the last-marketing stamps.
"""
from sqlalchemy import Column, String, Boolean, JSON, DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from campaigner.models.base import BaseModel


class Contact(BaseModel):
    __tablename__ = "contacts"

    name = Column(String(255), nullable=False, default="")
    phone = Column(String(50), index=True, nullable=True)
    email = Column(String(255), index=True, nullable=True)
    tags = Column(JSON, nullable=True, default=list)

    marketing_opt_out = Column(Boolean, default=False, nullable=False)
    has_insurance = Column(Boolean, default=False, nullable=False)

    # Stamped only after a successful marketing send
    last_marketing_sms_at = Column(DateTime, nullable=True)
    last_marketing_email_at = Column(DateTime, nullable=True)

    addresses = relationship("Address", back_populates="contact", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="contact", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Contact {self.name or self.phone or self.email}>"


class Address(BaseModel):
    __tablename__ = "addresses"

    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), index=True, nullable=False)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)

    contact = relationship("Contact", back_populates="addresses")


class Booking(BaseModel):
    """Only the fields the INACTIVE segment needs"""
    __tablename__ = "bookings"

    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), index=True, nullable=False)
    scheduled_date = Column(DateTime, nullable=False)
    status = Column(String(50), default="SCHEDULED", nullable=False)

    contact = relationship("Contact", back_populates="bookings")


Index('idx_booking_tenant_date', Booking.tenant_id, Booking.scheduled_date)
