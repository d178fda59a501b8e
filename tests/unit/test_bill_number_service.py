"""Unit tests for BillNumberService."""

import asyncio
import uuid
from datetime import date

import pytest

from clinic_billing.config import settings
from clinic_billing.core.exceptions import IdentifierExhaustionError
from clinic_billing.services.bill_number_service import BillNumberService

DAY = date(2024, 1, 15)


def test_format_pads_to_three_digits():
    assert BillNumberService.format_bill_number(DAY, 1) == "BILL-20240115-001"
    assert BillNumberService.format_bill_number(DAY, 42) == "BILL-20240115-042"


def test_format_widens_past_999():
    assert BillNumberService.format_bill_number(DAY, 999) == "BILL-20240115-999"
    assert BillNumberService.format_bill_number(DAY, 1000) == "BILL-20240115-1000"


def test_format_custom_prefix():
    assert BillNumberService.format_bill_number(DAY, 7, prefix="INV") == "INV-20240115-007"


@pytest.mark.asyncio
async def test_sequence_restarts_each_day(memory_repo, tenant_id):
    first = await BillNumberService.generate(memory_repo, tenant_id, DAY)
    second = await BillNumberService.generate(memory_repo, tenant_id, DAY)
    next_day = await BillNumberService.generate(memory_repo, tenant_id, date(2024, 1, 16))
    assert (first, second, next_day) == (
        "BILL-20240115-001",
        "BILL-20240115-002",
        "BILL-20240116-001",
    )


@pytest.mark.asyncio
async def test_sequences_are_per_tenant(memory_repo):
    a = await BillNumberService.generate(memory_repo, uuid.uuid4(), DAY)
    b = await BillNumberService.generate(memory_repo, uuid.uuid4(), DAY)
    assert a == b == "BILL-20240115-001"


@pytest.mark.asyncio
async def test_concurrent_generation_is_unique(memory_repo, tenant_id):
    numbers = await asyncio.gather(
        *(BillNumberService.generate(memory_repo, tenant_id, DAY) for _ in range(50))
    )
    assert len(set(numbers)) == 50
    assert sorted(numbers) == [f"BILL-20240115-{n:03d}" for n in range(1, 51)]


@pytest.mark.asyncio
async def test_exhausted_sequence_fails(memory_repo, tenant_id, monkeypatch):
    monkeypatch.setattr(settings, "BILL_SEQUENCE_MAX", 2)
    await BillNumberService.generate(memory_repo, tenant_id, DAY)
    await BillNumberService.generate(memory_repo, tenant_id, DAY)
    with pytest.raises(IdentifierExhaustionError):
        await BillNumberService.generate(memory_repo, tenant_id, DAY)
