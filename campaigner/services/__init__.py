# campaigner/services/__init__.py
"""
Service layer initialization.
Provides singleton instances of services.
"""
from typing import Optional
from campaigner.services.campaign_service import CampaignService
from campaigner.services.scheduler import BatchScheduler

# Global campaign service instance
_campaign_service: Optional[CampaignService] = None

def set_campaign_service(service: Optional[CampaignService]):
    """Set global CampaignService instance (tests swap in fake senders here)"""
    global _campaign_service
    _campaign_service = service

def get_campaign_service() -> CampaignService:
    """Get CampaignService instance, created on first use"""
    global _campaign_service
    if _campaign_service is None:
        _campaign_service = CampaignService(scheduler=BatchScheduler())
    return _campaign_service

__all__ = [
    'CampaignService',
    'BatchScheduler',
    'set_campaign_service',
    'get_campaign_service'
]
