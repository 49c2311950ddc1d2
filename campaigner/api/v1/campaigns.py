# campaigner/api/v1/campaigns.py
import logging
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from campaigner.db.session import get_db
from campaigner.api.deps import get_current_user_flexible, require_campaign_manager
from campaigner.core.exceptions import CampaignError
from campaigner.models.campaign import CampaignStatus, DeliveryChannel, DeliveryStatus
from campaigner.schemas.campaign import (
    CampaignCreate, CampaignResponse, CampaignSendRequest, CampaignSendResult, CampaignStats,
    CampaignUpdate, DeliveryRecordResponse, RecipientPreviewResponse,
)
from campaigner.services import CampaignService, get_campaign_service

log = logging.getLogger("campaigner.api.campaigns")

router = APIRouter()


def _http_error(e: CampaignError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/", response_model=CampaignResponse, status_code=201)
def create_campaign(
    data: CampaignCreate,
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """
    Create a marketing campaign.

    `body` and `subject` may use {{clientName}}, {{firstName}} and
    {{businessName}} placeholders. Email and BOTH campaigns need a subject.
    """
    return service.create_campaign(db, user["tenant_id"], data, user_id=user.get("user_id"))


@router.get("/", response_model=List[CampaignResponse])
def list_campaigns(
    status: Optional[CampaignStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """List campaigns, newest first"""
    return service.list_campaigns(db, user["tenant_id"], status=status, skip=skip, limit=limit)


@router.get("/stats", response_model=CampaignStats)
def campaign_stats(
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    return service.get_stats(db, user["tenant_id"])


@router.get("/{campaign_id}", response_model=CampaignResponse)
def get_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """Get campaign details"""
    try:
        return service.get_campaign(db, user["tenant_id"], campaign_id)
    except CampaignError as e:
        raise _http_error(e)


@router.put("/{campaign_id}", response_model=CampaignResponse)
def update_campaign(
    campaign_id: str,
    data: CampaignUpdate,
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """Edit a campaign that has not started sending"""
    try:
        return service.update_campaign(db, user["tenant_id"], campaign_id, data)
    except CampaignError as e:
        raise _http_error(e)


@router.delete("/{campaign_id}")
def delete_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """Delete a campaign and its delivery records"""
    try:
        service.delete_campaign(db, user["tenant_id"], campaign_id)
    except CampaignError as e:
        raise _http_error(e)
    return {"ok": True, "campaign_id": campaign_id}


@router.get("/{campaign_id}/recipients/preview", response_model=RecipientPreviewResponse)
def preview_recipients(
    campaign_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """Who would receive this campaign if it were sent now"""
    try:
        return service.preview_recipients(db, user["tenant_id"], campaign_id, page=page, limit=limit)
    except CampaignError as e:
        raise _http_error(e)


@router.get("/{campaign_id}/deliveries", response_model=List[DeliveryRecordResponse])
def list_deliveries(
    campaign_id: str,
    status: Optional[DeliveryStatus] = None,
    channel: Optional[DeliveryChannel] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """Per-channel delivery records of a campaign"""
    try:
        return service.list_deliveries(
            db, user["tenant_id"], campaign_id, status=status, channel=channel, skip=skip, limit=limit
        )
    except CampaignError as e:
        raise _http_error(e)


@router.post("/{campaign_id}/send", response_model=CampaignSendResult)
async def send_campaign(
    campaign_id: str,
    data: Optional[CampaignSendRequest] = Body(None),
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(get_current_user_flexible),
    service: CampaignService = Depends(get_campaign_service)
):
    """
    Send a campaign now.

    Runs every batch before responding and returns the final counters with
    a sample of delivery errors. Contacts listed in `excluded_contact_ids`
    are skipped.
    """
    excluded = data.excluded_contact_ids if data else []
    log.info(f"📢 Send requested for campaign {campaign_id} by {user.get('user_id')}")
    try:
        return await service.start_campaign(
            db, user["tenant_id"], campaign_id, user, excluded_contact_ids=excluded
        )
    except CampaignError as e:
        log.error(f"❌ Campaign {campaign_id} send failed: {e.message}")
        raise _http_error(e)


@router.post("/{campaign_id}/cancel")
def cancel_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    user: Dict[str, Any] = Depends(require_campaign_manager),
    service: CampaignService = Depends(get_campaign_service)
):
    """Stop a running campaign before its next batch; it ends up PAUSED"""
    try:
        cancelled = service.cancel_campaign(db, user["tenant_id"], campaign_id)
    except CampaignError as e:
        raise _http_error(e)
    if not cancelled:
        raise HTTPException(404, "Campaign is not running")
    return {"ok": True, "campaign_id": campaign_id}
