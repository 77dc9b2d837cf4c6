"""
Shared test fixtures
"""
from datetime import datetime, timedelta, timezone

import pytest

from config.settings import Settings
from halalcert.database import DatabaseManager
from halalcert.models import ApplicationStatus
from halalcert.service import CertificateService


class FrozenClock:
    """Controllable clock for expiry scenarios"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database"""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'certificates.db'}",
        base_url="https://halal.example.org/",
        certificate_prefix="HAL",
        authority_name="Test Halal Authority",
        api_key=None,
        log_file=tmp_path / "logs" / "test.log"
    )


@pytest.fixture
def db_manager(settings):
    manager = DatabaseManager(settings.database_url)
    manager.create_tables()
    yield manager
    manager.dispose()


@pytest.fixture
def service(db_manager, settings, clock):
    return CertificateService(db_manager=db_manager, settings=settings, clock=clock)


@pytest.fixture
def store(service):
    """Registered store"""
    return service.register_store(
        name="Al Noor Butchery",
        address="12 King Street",
        city="Sydney",
        state="NSW",
        postcode="2000",
        business_type="Butcher"
    )


@pytest.fixture
def approved_application(service, store):
    return service.register_application(store.id, ApplicationStatus.APPROVED)


@pytest.fixture
def issued_certificate(service, store, approved_application):
    """Active certificate of the store"""
    return service.issue_certificate(store.id, approved_application.id, "admin")
