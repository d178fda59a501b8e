"""Base Models and Mixins for DRY principles"""

import uuid
from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.orm import declared_attr

from clinic_billing.database import Base
from clinic_billing.utils.time import get_utc_now


class BaseModel(Base):
    """
    Base model class with common fields for all models.

    Provides:
    - UUID primary key
    - created_at timestamp
    - updated_at timestamp
    """
    __abstract__ = True

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)


class TenantScopedMixin:
    """
    Mixin for multi-tenant models.

    Provides:
    - tenant_id column (tenants are resolved outside this service, so no FK)
    """

    @declared_attr
    def tenant_id(cls):
        return Column(Uuid(as_uuid=True), nullable=False, index=True)
