"""Unit tests that do not require a running API or external services."""
import pytest
from pydantic import ValidationError

from clinic_billing.config import Settings, settings


def test_settings_load():
    """Settings load from environment (e.g. CI env vars)."""
    assert settings.API_V1_PREFIX == "/api/v1"
    assert settings.APP_NAME == "Clinic Billing Ledger"


def test_environment_flag():
    """Environment flags reflect ENVIRONMENT value."""
    assert settings.ENVIRONMENT.lower() in ("development", "test", "production")
    assert settings.is_development == (settings.ENVIRONMENT.lower() == "development")
    assert settings.is_production == (settings.ENVIRONMENT.lower() == "production")


def test_billing_defaults():
    assert settings.BILL_NUMBER_PREFIX == "BILL"
    assert settings.DEFAULT_DUE_DAYS == 15
    assert settings.BILL_SEQUENCE_MAX >= 999
    assert settings.MAX_PAGE_SIZE == 100


def test_repository_choice_normalized():
    s = Settings(DATABASE_URL="sqlite+aiosqlite://", SECRET_KEY="x", BILLING_REPOSITORY=" Memory ")
    assert s.BILLING_REPOSITORY == "memory"
    assert s.uses_memory_repository


def test_unknown_repository_rejected():
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="sqlite+aiosqlite://", SECRET_KEY="x", BILLING_REPOSITORY="redis")


def test_origins_parsed_to_list():
    s = Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        SECRET_KEY="x",
        ALLOWED_ORIGINS="http://a.test, http://b.test",
    )
    assert s.ALLOWED_ORIGINS == ["http://a.test", "http://b.test"]
