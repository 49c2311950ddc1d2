# campaigner/api/v1/router.py
"""Main API router combining all v1 endpoints"""
from fastapi import APIRouter

from campaigner.api.v1 import campaigns

api_router = APIRouter()

# Include all routers
api_router.include_router(campaigns.router, prefix="/campaigns", tags=["Campaigns"])
