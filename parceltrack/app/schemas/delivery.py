"""
Delivery Pydantic schemas.

Defines request and response models for delivery requests, courier progress
updates and receipt confirmation.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from parceltrack.app.models.delivery import Delivery
from parceltrack.app.models.delivery_enums import Category, DeliveryStatus, Priority
from parceltrack.app.models.member import Member


class MemberInfo(BaseModel):
    """Identity of the member acting on a delivery."""
    name: str = Field(..., min_length=1, max_length=100, description="Member name")
    id: Optional[str] = Field(None, max_length=50, description="Member ID (generated if omitted)")
    role: Optional[str] = Field(None, max_length=50, description="Student, Teacher, Staff, ...")

    def to_member(self) -> Member:
        return Member(self.name.strip(), (self.id or "").strip() or None, (self.role or "").strip() or None)


class DeliveryCreate(BaseModel):
    """Schema for requesting a new delivery."""
    member: MemberInfo
    receiver_name: str = Field(..., max_length=100, description="Receiver name")
    receiver_phone: str = Field(..., max_length=30, description="Receiver phone")
    receiver_address: str = Field(..., max_length=300, description="Receiver address")
    item: str = Field(..., max_length=200, description="Item description")
    priority: Optional[str] = Field(None, description="HIGH, MEDIUM or LOW; anything else is UNKNOWN")
    category: Optional[Category] = None


class DeliveryConfirm(BaseModel):
    """Schema for confirming receipt and rating a delivery."""
    member: MemberInfo
    rating: Optional[int] = Field(None, description="Rating from 1 to 5")
    review: Optional[str] = Field(None, max_length=500)


class ReceiptRequest(BaseModel):
    """Schema for requesting a delivery receipt."""
    member: MemberInfo


class NotDeliveredRequest(BaseModel):
    """Schema for reporting a failed delivery attempt."""
    note: Optional[str] = Field(None, max_length=500)


class EtaUpdate(BaseModel):
    """Schema for overriding a delivery ETA."""
    estimated_minutes: int


class DeliveryResponse(BaseModel):
    """Schema for delivery response."""
    id: int
    sender_id: str
    sender_name: str
    sender_role: str
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    item: str
    priority: Priority
    category: Category
    status: DeliveryStatus
    assigned_courier_id: Optional[str]
    assigned_courier_name: Optional[str]
    rating: Optional[int]
    review: Optional[str]
    estimated_minutes: int
    requested_at: datetime
    assigned_at: Optional[datetime]
    out_for_delivery_at: Optional[datetime]
    delivered_at: Optional[datetime]
    not_delivered_at: Optional[datetime]
    completed_at: Optional[datetime]

    @classmethod
    def from_delivery(cls, delivery: Delivery) -> "DeliveryResponse":
        courier = delivery.assigned_courier
        return cls(
            id=delivery.delivery_id,
            sender_id=delivery.sender.id,
            sender_name=delivery.sender.name,
            sender_role=delivery.sender.role,
            receiver_name=delivery.receiver_name,
            receiver_phone=delivery.receiver_phone,
            receiver_address=delivery.receiver_address,
            item=delivery.item,
            priority=delivery.priority,
            category=delivery.category,
            status=delivery.status,
            assigned_courier_id=delivery.assigned_courier_id,
            assigned_courier_name=courier.name if courier is not None else None,
            rating=delivery.rating,
            review=delivery.review,
            estimated_minutes=delivery.estimated_minutes,
            requested_at=delivery.requested_at,
            assigned_at=delivery.assigned_at,
            out_for_delivery_at=delivery.out_for_delivery_at,
            delivered_at=delivery.delivered_at,
            not_delivered_at=delivery.not_delivered_at,
            completed_at=delivery.completed_at,
        )


class DeliveryCreateResponse(DeliveryResponse):
    """Response after a delivery request; `queued` is set when no courier was free."""
    queued: bool


class DeliveryListResponse(BaseModel):
    """Schema for delivery list."""
    deliveries: List[DeliveryResponse]
    total: int


class ReceiptResponse(BaseModel):
    """Printable summary of a delivery."""
    delivery_id: int
    sender_name: str
    sender_id: str
    receiver_name: str
    item: str
    category: Category
    priority: Priority
    courier_id: Optional[str]
    courier_name: Optional[str]
    status: DeliveryStatus
    rating: Optional[int]
    review: Optional[str]
    requested_at: datetime

    @classmethod
    def from_delivery(cls, delivery: Delivery) -> "ReceiptResponse":
        courier = delivery.assigned_courier
        return cls(
            delivery_id=delivery.delivery_id,
            sender_name=delivery.sender.name,
            sender_id=delivery.sender.id,
            receiver_name=delivery.receiver_name,
            item=delivery.item,
            category=delivery.category,
            priority=delivery.priority,
            courier_id=delivery.assigned_courier_id,
            courier_name=courier.name if courier is not None else None,
            status=delivery.status,
            rating=delivery.rating,
            review=delivery.review,
            requested_at=delivery.requested_at,
        )
