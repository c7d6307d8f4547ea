"""
Courier API Endpoints.

Couriers move their assigned deliveries through the lifecycle and adjust
ETAs. PIN checks happen outside this service; the courier is identified by
the ID in the path.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path

from parceltrack.app.core.dependencies import get_delivery_service
from parceltrack.app.schemas.courier import CourierRatingResponse
from parceltrack.app.schemas.delivery import (
    DeliveryListResponse,
    DeliveryResponse,
    EtaUpdate,
    NotDeliveredRequest,
)
from parceltrack.app.services.delivery_service import DeliveryService

router = APIRouter(prefix="/courier", tags=["Courier - Delivery Progress"])


@router.get("/couriers/{courier_id}/deliveries", response_model=DeliveryListResponse)
def list_courier_deliveries(
    courier_id: str = Path(..., description="Courier ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """List every delivery assigned to the courier."""
    deliveries = service.list_courier_deliveries(courier_id)
    return DeliveryListResponse(
        deliveries=[DeliveryResponse.from_delivery(d) for d in deliveries],
        total=len(deliveries)
    )


@router.post("/couriers/{courier_id}/deliveries/{delivery_id}/out-for-delivery", response_model=DeliveryResponse)
def mark_out_for_delivery(
    courier_id: str = Path(..., description="Courier ID"),
    delivery_id: str = Path(..., description="Delivery ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """Mark an ASSIGNED delivery OUT_FOR_DELIVERY (assigned courier only)."""
    return DeliveryResponse.from_delivery(service.mark_out_for_delivery(delivery_id, courier_id))


@router.post("/couriers/{courier_id}/deliveries/{delivery_id}/delivered", response_model=DeliveryResponse)
def mark_delivered(
    courier_id: str = Path(..., description="Courier ID"),
    delivery_id: str = Path(..., description="Delivery ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Mark a delivery DELIVERED (assigned courier only).

    The courier becomes available and queued deliveries are re-dispatched.
    """
    return DeliveryResponse.from_delivery(service.mark_delivered(delivery_id, courier_id))


@router.post("/couriers/{courier_id}/deliveries/{delivery_id}/not-delivered", response_model=DeliveryResponse)
def mark_not_delivered(
    courier_id: str = Path(..., description="Courier ID"),
    delivery_id: str = Path(..., description="Delivery ID"),
    report: Optional[NotDeliveredRequest] = None,
    service: DeliveryService = Depends(get_delivery_service)
):
    """Report a failed attempt (assigned courier only). The courier becomes available."""
    note = report.note if report is not None else None
    delivery = service.mark_not_delivered(delivery_id, courier_id, note=note)
    return DeliveryResponse.from_delivery(delivery)


@router.patch("/couriers/{courier_id}/deliveries/{delivery_id}/eta", response_model=DeliveryResponse)
def update_eta(
    courier_id: str = Path(..., description="Courier ID"),
    delivery_id: str = Path(..., description="Delivery ID"),
    eta: EtaUpdate = ...,
    service: DeliveryService = Depends(get_delivery_service)
):
    """Override the ETA of an ASSIGNED or OUT_FOR_DELIVERY delivery (assigned courier only)."""
    delivery = service.update_eta(delivery_id, courier_id, eta.estimated_minutes)
    return DeliveryResponse.from_delivery(delivery)


@router.get("/couriers/{courier_id}/rating", response_model=CourierRatingResponse)
def get_courier_rating(
    courier_id: str = Path(..., description="Courier ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """Average rating of the courier (0.0 when unrated)."""
    courier = service.get_courier(courier_id)
    return CourierRatingResponse(
        courier_id=courier.id,
        average_rating=round(courier.average_rating, 2),
        ratings_count=courier.ratings_count,
    )
