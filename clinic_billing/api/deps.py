"""API Dependencies"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from clinic_billing.config import settings
from clinic_billing.database import get_db
from clinic_billing.core.security import decode_token
from clinic_billing.repositories.base import BillRepository
from clinic_billing.repositories.memory import InMemoryBillRepository
from clinic_billing.repositories.sql import SqlBillRepository
from clinic_billing.schemas.auth import CallerIdentity

# Security scheme for bearer token
security = HTTPBearer()

_memory_repository: Optional[InMemoryBillRepository] = None


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CallerIdentity:
    """
    Resolve the caller from a JWT access token.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        Caller identity with tenant scope

    Raises:
        HTTPException: If the token is invalid or lacks user/tenant claims
    """
    payload = decode_token(credentials.credentials)
    if not payload:
        raise _credentials_error()

    # Check token type
    if payload.get("type") != "access":
        raise _credentials_error("Invalid token type")

    user_id_str: Optional[str] = payload.get("sub")
    tenant_id_str: Optional[str] = payload.get("tenant_id")
    if not user_id_str or not tenant_id_str:
        raise _credentials_error()

    try:
        return CallerIdentity(
            user_id=UUID(user_id_str),
            tenant_id=UUID(tenant_id_str),
            role=payload.get("role"),
        )
    except ValueError:
        raise _credentials_error("Invalid user or tenant ID")


def get_memory_repository() -> InMemoryBillRepository:
    """Process-wide in-memory store (BILLING_REPOSITORY=memory)"""
    global _memory_repository
    if _memory_repository is None:
        _memory_repository = InMemoryBillRepository()
    return _memory_repository


async def get_bill_repository(
    db: AsyncSession = Depends(get_db),
) -> BillRepository:
    """Bill store selected by configuration"""
    if settings.uses_memory_repository:
        return get_memory_repository()
    return SqlBillRepository(db)
