import pytest
from django.core.cache import cache

from clinic.services import sms as sms_service
from clinic.tests.factories import FakeGateway


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def gateway(monkeypatch):
    """Install a recording gateway as the process-wide SMS gateway."""
    fake = FakeGateway()
    monkeypatch.setattr(sms_service, '_gateway', fake)
    return fake
