"""
Admin API Endpoints.

Courier management, delivery housekeeping, dashboard and audit trail.
Admin password checks happen outside this service.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status

from parceltrack.app.core.dependencies import get_delivery_service
from parceltrack.app.models.delivery_enums import DeliveryStatus
from parceltrack.app.schemas.analytics import (
    AuditEventResponse,
    AuditTrailResponse,
    BacklogResponse,
    DashboardStats,
)
from parceltrack.app.schemas.courier import CourierCreate, CourierListResponse, CourierResponse
from parceltrack.app.schemas.delivery import DeliveryListResponse, DeliveryResponse
from parceltrack.app.services.delivery_service import DeliveryService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/couriers", response_model=CourierResponse, status_code=status.HTTP_201_CREATED)
def add_courier(
    courier_data: CourierCreate,
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Add a courier.

    Validates:
    - Name and ID are not empty
    - ID is not already taken

    Queued deliveries are assigned to the new courier immediately.
    """
    courier = service.add_courier(courier_data.name, courier_data.id, courier_data.pin)
    return CourierResponse.from_courier(courier)


@router.get("/couriers", response_model=CourierListResponse)
def list_couriers(service: DeliveryService = Depends(get_delivery_service)):
    """List couriers in dispatch order."""
    couriers = service.list_couriers()
    return CourierListResponse(
        couriers=[CourierResponse.from_courier(c) for c in couriers],
        total=len(couriers)
    )


@router.delete("/couriers/{courier_id}")
def delete_courier(
    courier_id: str = Path(..., description="Courier ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Delete a courier.

    Rejected with 409 while the courier holds an ASSIGNED or
    OUT_FOR_DELIVERY delivery.
    """
    courier = service.delete_courier(courier_id)
    return {
        "courier_id": courier.id,
        "deleted": True
    }


@router.get("/deliveries", response_model=DeliveryListResponse)
def list_deliveries(
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status", description="Filter by status"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """List all deliveries, optionally filtered by status."""
    deliveries = service.list_deliveries(status_filter)
    return DeliveryListResponse(
        deliveries=[DeliveryResponse.from_delivery(d) for d in deliveries],
        total=len(deliveries)
    )


@router.delete("/deliveries/{delivery_id}")
def delete_delivery(
    delivery_id: str = Path(..., description="Delivery ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Delete a delivery.

    Only REQUESTED or COMPLETED deliveries can be deleted; in-flight work
    is rejected with 409.
    """
    delivery = service.delete_delivery(delivery_id)
    return {
        "delivery_id": delivery.delivery_id,
        "deleted": True
    }


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard(service: DeliveryService = Depends(get_delivery_service)):
    """Delivery counts by status and courier performance."""
    return service.dashboard()


@router.get("/backlog", response_model=BacklogResponse)
def get_backlog(service: DeliveryService = Depends(get_delivery_service)):
    """Deliveries waiting for a courier, oldest first."""
    backlog = service.backlog()
    return BacklogResponse(delivery_ids=backlog, size=len(backlog))


@router.get("/audit", response_model=AuditTrailResponse)
def get_audit_trail(
    action: Optional[str] = Query(None, description="Filter by action"),
    limit: int = Query(100, ge=1, le=500),
    service: DeliveryService = Depends(get_delivery_service)
):
    """Recent audit events, most recent first."""
    events = service.audit.get_audit_trail(action=action, limit=limit)
    return AuditTrailResponse(
        events=[AuditEventResponse(**e.to_dict()) for e in events],
        total=len(events)
    )
