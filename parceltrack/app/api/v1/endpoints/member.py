"""
Member API Endpoints.

Members request deliveries, list what they sent, confirm receipt and rate,
and fetch receipts. The member identifies itself in the request body.
"""

from fastapi import APIRouter, Depends, Path, status

from parceltrack.app.core.dependencies import get_delivery_service
from parceltrack.app.schemas.delivery import (
    DeliveryConfirm,
    DeliveryCreate,
    DeliveryCreateResponse,
    DeliveryListResponse,
    DeliveryResponse,
    ReceiptRequest,
    ReceiptResponse,
)
from parceltrack.app.services.delivery_service import DeliveryService

router = APIRouter(prefix="/member", tags=["Member - Deliveries"])


@router.post("/deliveries", response_model=DeliveryCreateResponse, status_code=status.HTTP_201_CREATED)
def create_delivery(
    delivery_data: DeliveryCreate,
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Request a new delivery.

    The delivery is assigned to the first available courier; if none is
    free it is queued and `queued` is true.
    """
    delivery = service.create_delivery(
        member=delivery_data.member.to_member(),
        receiver_name=delivery_data.receiver_name,
        receiver_phone=delivery_data.receiver_phone,
        receiver_address=delivery_data.receiver_address,
        item=delivery_data.item,
        priority=delivery_data.priority,
        category=delivery_data.category,
    )
    response = DeliveryResponse.from_delivery(delivery)
    return DeliveryCreateResponse(
        **response.model_dump(),
        queued=delivery.delivery_id in service.backlog(),
    )


@router.get("/members/{member_id}/deliveries", response_model=DeliveryListResponse)
def list_member_deliveries(
    member_id: str = Path(..., description="Member ID"),
    service: DeliveryService = Depends(get_delivery_service)
):
    """List deliveries sent by a member."""
    deliveries = service.list_member_deliveries(member_id)
    return DeliveryListResponse(
        deliveries=[DeliveryResponse.from_delivery(d) for d in deliveries],
        total=len(deliveries)
    )


@router.post("/deliveries/{delivery_id}/confirm", response_model=DeliveryResponse)
def confirm_delivery(
    delivery_id: str = Path(..., description="Delivery ID"),
    confirmation: DeliveryConfirm = ...,
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Confirm receipt and optionally rate the courier.

    Validates:
    - Member is the sender or the named receiver
    - Rating, if given, is between 1 and 5
    - Delivery is DELIVERED or NOT_DELIVERED
    """
    delivery = service.confirm_delivery(
        delivery_id,
        confirmation.member.to_member(),
        rating=confirmation.rating,
        review=confirmation.review,
    )
    return DeliveryResponse.from_delivery(delivery)


@router.post("/deliveries/{delivery_id}/receipt", response_model=ReceiptResponse)
def get_receipt(
    delivery_id: str = Path(..., description="Delivery ID"),
    receipt_request: ReceiptRequest = ...,
    service: DeliveryService = Depends(get_delivery_service)
):
    """Delivery receipt, available to the sender or the named receiver."""
    delivery = service.get_receipt(delivery_id, receipt_request.member.to_member())
    return ReceiptResponse.from_delivery(delivery)
