"""
Service dependencies for FastAPI.

The delivery service is created once at startup (see main.lifespan) and
shared by every request through app.state.
"""

from fastapi import Request

from parceltrack.app.core.config import Settings, settings
from parceltrack.app.domain.persistence.codec import PersistenceCodec
from parceltrack.app.services.audit import AuditTrail
from parceltrack.app.services.delivery_service import DeliveryService


def build_delivery_service(config: Settings = settings) -> DeliveryService:
    """
    Create a delivery service wired to the configured record files.

    Args:
        config: Settings to read file locations and persistence toggle from

    Returns:
        A service that has not been loaded yet
    """
    codec = None
    if config.persistence_enabled:
        codec = PersistenceCodec(config.couriers_path, config.deliveries_path)
    return DeliveryService(codec=codec, audit=AuditTrail(max_size=config.audit_trail_size))


def get_delivery_service(request: Request) -> DeliveryService:
    """FastAPI dependency returning the application's delivery service."""
    return request.app.state.delivery_service
