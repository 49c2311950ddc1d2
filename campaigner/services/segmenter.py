# campaigner/services/segmenter.py
"""
Recipient segmentation - resolves a campaign's audience.

Every rule starts from the same baseline (tenant, not opted out of
marketing, has an address for the campaign channel) and narrows it.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Set

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from campaigner.models.base import utcnow
from campaigner.models.campaign import CampaignChannel
from campaigner.models.contact import Address, Booking, Contact
from campaigner.schemas.campaign import (
    InactiveSegment, InsuranceSegment, LocationSegment, SegmentRule, TagsSegment,
)
from campaigner.schemas.delivery import Recipient

log = logging.getLogger("campaigner.segmenter")

# Bookings in these states count as activity for the INACTIVE rule
ACTIVE_BOOKING_STATUSES = ("SCHEDULED", "COMPLETED", "CLEANER_COMPLETED")


def _has_value(column):
    return and_(column.isnot(None), column != "")


class RecipientSegmenter:
    """Resolve contacts eligible for a campaign"""

    def baseline_query(self, db: Session, tenant_id: str, channel: CampaignChannel):
        query = db.query(Contact).filter(
            Contact.tenant_id == tenant_id,
            Contact.marketing_opt_out == False,
        )
        if channel == CampaignChannel.SMS:
            query = query.filter(_has_value(Contact.phone))
        elif channel == CampaignChannel.EMAIL:
            query = query.filter(_has_value(Contact.email))
        else:
            query = query.filter(or_(_has_value(Contact.phone), _has_value(Contact.email)))
        return query

    def resolve(
        self,
        db: Session,
        tenant_id: str,
        rule: SegmentRule,
        channel: CampaignChannel,
        exclude_ids: Optional[Iterable[int]] = None,
        now: Optional[datetime] = None,
    ) -> List[Recipient]:
        """
        Return the contacts a campaign should reach.

        Ordering of the result is not meaningful.
        """
        query = self.baseline_query(db, tenant_id, channel)

        excluded = set(exclude_ids or [])
        if excluded:
            query = query.filter(Contact.id.notin_(sorted(excluded)))

        match rule:
            case TagsSegment(tags=tags) if tags:
                wanted = set(tags)
                contacts = [c for c in query.all() if wanted.intersection(c.tags or [])]

            case InactiveSegment(inactive_days=days):
                active_ids = self._active_contact_ids(db, tenant_id, days, now or utcnow())
                if active_ids:
                    query = query.filter(Contact.id.notin_(sorted(active_ids)))
                contacts = query.all()

            case LocationSegment(cities=cities, states=states) if cities or states:
                matching_ids = self._contact_ids_in_location(db, tenant_id, cities, states)
                contacts = query.filter(Contact.id.in_(sorted(matching_ids))).all() if matching_ids else []

            case InsuranceSegment(has_insurance=flag):
                contacts = query.filter(Contact.has_insurance == flag).all()

            case _:
                # ALL, or a rule with no parameters: baseline only
                contacts = query.all()

        recipients = [
            Recipient(id=c.id, name=c.name or "", phone=c.phone or None, email=c.email or None)
            for c in contacts
        ]
        log.info(f"🎯 Resolved {len(recipients)} recipients for tenant {tenant_id} ({rule.type}/{channel.value})")
        return recipients

    def opted_out_count(self, db: Session, tenant_id: str) -> int:
        return db.query(Contact).filter(
            Contact.tenant_id == tenant_id,
            Contact.marketing_opt_out == True,
        ).count()

    def _active_contact_ids(self, db: Session, tenant_id: str, days: int, now: datetime) -> Set[int]:
        cutoff = now - timedelta(days=days)
        rows = db.query(Booking.contact_id).filter(
            Booking.tenant_id == tenant_id,
            Booking.scheduled_date >= cutoff,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        ).distinct().all()
        return {row.contact_id for row in rows}

    def _contact_ids_in_location(
        self, db: Session, tenant_id: str, cities: List[str], states: List[str]
    ) -> Set[int]:
        conditions = []
        if cities:
            conditions.append(func.lower(Address.city).in_([c.strip().lower() for c in cities]))
        if states:
            conditions.append(func.lower(Address.state).in_([s.strip().lower() for s in states]))

        rows = db.query(Address.contact_id).join(Contact, Contact.id == Address.contact_id).filter(
            Contact.tenant_id == tenant_id,
            or_(*conditions),
        ).distinct().all()
        return {row.contact_id for row in rows}

