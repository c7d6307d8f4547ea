"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport

from parceltrack.app.main import app
from parceltrack.app.core.dependencies import get_delivery_service
from parceltrack.app.domain.persistence.codec import PersistenceCodec
from parceltrack.app.models.member import Member
from parceltrack.app.services.delivery_service import DeliveryService


@pytest.fixture
def codec(tmp_path):
    """Codec writing to a per-test directory."""
    return PersistenceCodec(tmp_path / "couriers.csv", tmp_path / "deliveries.csv")


@pytest.fixture
def service(codec):
    """Fresh, empty delivery service backed by tmp files."""
    svc = DeliveryService(codec=codec)
    svc.load()
    return svc


@pytest.fixture
def sender():
    return Member("Alice", "M1001", "Student")


@pytest.fixture
def receiver():
    return Member("Bob", "M2002", "Teacher")


@pytest.fixture
def make_delivery(service, sender):
    """Create a delivery for `sender` addressed to Bob."""
    def _make(priority="MEDIUM", item="Lab notes", member=None):
        return service.create_delivery(
            member or sender,
            receiver_name="Bob",
            receiver_phone="555-0100",
            receiver_address="Block C, Room 12",
            item=item,
            priority=priority,
        )
    return _make


@pytest.fixture
async def client(service):
    """Async client wired to the per-test service."""
    app.dependency_overrides[get_delivery_service] = lambda: service
    app.state.delivery_service = service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}
