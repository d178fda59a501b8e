"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from clinic_billing.api.v1.endpoints import bills

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(bills.router, prefix="/bills", tags=["Billing"])
