from typing import Optional
from pydantic import BaseModel
from uuid import UUID


class CallerIdentity(BaseModel):
    """Authenticated caller, as asserted by the access token"""
    user_id: UUID
    tenant_id: UUID
    role: Optional[str] = None
